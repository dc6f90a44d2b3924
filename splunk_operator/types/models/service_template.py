from typing import Dict, Optional
from splunk_operator.types.base import BaseModel


class MetadataTemplate(BaseModel):
    labels: Optional[Dict[str, str]]
    annotations: Optional[Dict[str, str]]


class ServiceTemplate(BaseModel):
    """Overrides applied to the client service."""

    metadata: Optional[MetadataTemplate]
    type: Optional[str]
