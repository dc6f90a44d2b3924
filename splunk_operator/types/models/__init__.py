from .phase import Phase
from .remote_object import RemoteObject
from .storage import StorageClassSpec
from .service_template import MetadataTemplate, ServiceTemplate
from .app_framework import (
    AppScope,
    RemoteStorageType,
    VolumeSpec,
    AppSourceDefaultSpec,
    AppSourceSpec,
    AppFrameworkSpec,
)
from .smartstore import IndexSpec, SmartStoreDefaults, SmartStoreSpec
from .app_context import AppSourceStatus, AppContext
from .standalone_spec import (
    EnvVar,
    ObjectMeta,
    StandaloneSpec,
    StandaloneStatus,
    Standalone,
)
from .standalone_resources import StandaloneResources
