from typing import List, Optional
from splunk_operator.types.base import BaseModel
from splunk_operator.types.models.app_framework import VolumeSpec


class IndexSpec(BaseModel):
    """An index whose buckets live on a remote volume."""

    name: str
    remote_path: Optional[str]
    vol_name: Optional[str]
    max_global_data_size_mb: Optional[int]
    max_global_raw_data_size_mb: Optional[int]


class SmartStoreDefaults(BaseModel):
    vol_name: Optional[str]
    max_global_data_size_mb: Optional[int]
    max_global_raw_data_size_mb: Optional[int]


class SmartStoreSpec(BaseModel):
    """Remote-storage backed index configuration."""

    volumes: List[VolumeSpec]
    indexes: List[IndexSpec]
    defaults: Optional[SmartStoreDefaults]

    def is_configured(self) -> bool:
        return bool(self.volumes)

    def find_volume(self, name: str) -> Optional[VolumeSpec]:
        return next((v for v in self.volumes or [] if v.name == name), None)
