from .remote_object import RemoteObjectSchema
from .storage import StorageClassSpecSchema
from .service_template import MetadataTemplateSchema, ServiceTemplateSchema
from .app_framework import (
    VolumeSpecSchema,
    AppSourceDefaultSpecSchema,
    AppSourceSpecSchema,
    AppFrameworkSpecSchema,
)
from .smartstore import IndexSpecSchema, SmartStoreDefaultsSchema, SmartStoreSpecSchema
from .app_context import AppSourceStatusSchema, AppContextSchema
from .standalone import (
    EnvVarSchema,
    ObjectMetaSchema,
    StandaloneSpecSchema,
    StandaloneStatusSchema,
    StandaloneSchema,
)
