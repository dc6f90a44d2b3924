from typing import Optional
from splunk_operator.types.base import BaseModel


class StorageClassSpec(BaseModel):
    """Storage of one of the etc/var volumes."""

    storage_class_name: Optional[str]
    storage_capacity: Optional[str]
    ephemeral_storage: bool
