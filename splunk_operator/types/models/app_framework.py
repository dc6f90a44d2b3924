from enum import Enum
from typing import List, Optional
from splunk_operator.types.base import BaseModel


class AppScope(Enum):
    LOCAL = "local"
    CLUSTER = "cluster"
    CLUSTER_WITH_PRE_CONFIG = "clusterWithPreConfig"
    PREMIUM_APPS = "premiumApps"


class RemoteStorageType(Enum):
    S3 = "s3"


class VolumeSpec(BaseModel):
    """Remote storage volume: endpoint, path, provider and credentials."""

    name: str
    endpoint: Optional[str]
    path: str
    secret_ref: Optional[str]
    provider: Optional[str]
    storage_type: Optional[str]
    region: Optional[str]


class AppSourceDefaultSpec(BaseModel):
    """Volume binding and scope shared by all app sources."""

    vol_name: Optional[str]
    scope: Optional[str]


class AppSourceSpec(BaseModel):
    """A named remote location app packages are listed from."""

    name: str
    location: str
    vol_name: Optional[str]
    scope: Optional[str]


class AppFrameworkSpec(BaseModel):
    """App framework configuration of a descriptor."""

    defaults: Optional[AppSourceDefaultSpec]
    volumes: List[VolumeSpec]
    app_sources: List[AppSourceSpec]
    apps_repo_poll_interval: Optional[int]

    def is_configured(self) -> bool:
        return bool(self.app_sources)

    def find_volume(self, name: str) -> Optional[VolumeSpec]:
        return next((v for v in self.volumes or [] if v.name == name), None)
