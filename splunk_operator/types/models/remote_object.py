from datetime import datetime
from typing import Optional
from splunk_operator.types.base import BaseModel


class RemoteObject(BaseModel):
    """An object listed from remote storage, passed through as reported."""

    key: str
    etag: Optional[str]
    last_modified: Optional[datetime]
    size: Optional[int]
    storage_class: Optional[str]
