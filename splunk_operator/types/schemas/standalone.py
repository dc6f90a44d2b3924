from marshmallow import fields
from splunk_operator.types.base import BaseSchema, EXCLUDE
from splunk_operator.types.models.standalone_spec import (
    EnvVar,
    ObjectMeta,
    StandaloneSpec,
    StandaloneStatus,
    Standalone,
)
from splunk_operator.types.schemas.app_context import AppContextSchema
from splunk_operator.types.schemas.app_framework import AppFrameworkSpecSchema
from splunk_operator.types.schemas.smartstore import SmartStoreSpecSchema
from splunk_operator.types.schemas.storage import StorageClassSpecSchema
from splunk_operator.types.schemas.service_template import ServiceTemplateSchema


class EnvVarSchema(BaseSchema):
    __model__ = EnvVar

    name = fields.Str(data_key="name", required=True)
    value = fields.Str(data_key="value", allow_none=True, load_default=None)


class ObjectMetaSchema(BaseSchema):
    __model__ = ObjectMeta

    name = fields.Str(data_key="name", required=True)
    namespace = fields.Str(data_key="namespace", required=True)
    uid = fields.Str(data_key="uid", allow_none=True, load_default=None)
    resource_version = fields.Str(
        data_key="resourceVersion", allow_none=True, load_default=None
    )
    generation = fields.Int(data_key="generation", allow_none=True, load_default=None)
    creation_timestamp = fields.Str(
        data_key="creationTimestamp", allow_none=True, load_default=None
    )
    deletion_timestamp = fields.Str(
        data_key="deletionTimestamp", allow_none=True, load_default=None
    )
    finalizers = fields.List(fields.Str(), data_key="finalizers", load_default=list)
    labels = fields.Dict(
        keys=fields.Str(), values=fields.Str(), data_key="labels", load_default=dict
    )
    annotations = fields.Dict(
        keys=fields.Str(),
        values=fields.Str(),
        data_key="annotations",
        load_default=dict,
    )


class StandaloneSpecSchema(BaseSchema):
    __model__ = StandaloneSpec

    replicas = fields.Int(data_key="replicas", load_default=1)
    image = fields.Str(data_key="image", allow_none=True, load_default=None)
    image_pull_policy = fields.Str(
        data_key="imagePullPolicy", load_default="IfNotPresent"
    )
    etc_volume_storage_config = fields.Nested(
        StorageClassSpecSchema(),
        data_key="etcVolumeStorageConfig",
        load_default=lambda: StorageClassSpecSchema().load({}),
    )
    var_volume_storage_config = fields.Nested(
        StorageClassSpecSchema(),
        data_key="varVolumeStorageConfig",
        load_default=lambda: StorageClassSpecSchema().load({}),
    )
    smartstore = fields.Nested(
        SmartStoreSpecSchema(),
        data_key="smartstore",
        load_default=lambda: SmartStoreSpecSchema().load({}),
    )
    app_repo = fields.Nested(
        AppFrameworkSpecSchema(),
        data_key="appRepo",
        load_default=lambda: AppFrameworkSpecSchema().load({}),
    )
    service_template = fields.Nested(
        ServiceTemplateSchema(),
        data_key="serviceTemplate",
        allow_none=True,
        load_default=lambda: ServiceTemplateSchema().load({}),
    )
    extra_env = fields.List(
        fields.Nested(EnvVarSchema()), data_key="extraEnv", load_default=list
    )
    defaults = fields.Str(data_key="defaults", allow_none=True, load_default=None)
    defaults_url = fields.Str(data_key="defaultsUrl", allow_none=True, load_default=None)
    resources = fields.Dict(data_key="resources", allow_none=True, load_default=None)


class StandaloneStatusSchema(BaseSchema):
    __model__ = StandaloneStatus

    phase = fields.Str(data_key="phase", allow_none=True, load_default=None)
    replicas = fields.Int(data_key="replicas", load_default=0)
    ready_replicas = fields.Int(data_key="readyReplicas", load_default=0)
    selector = fields.Str(data_key="selector", allow_none=True, load_default=None)
    resource_rev_map = fields.Dict(
        keys=fields.Str(),
        values=fields.Str(),
        data_key="resourceRevMap",
        load_default=dict,
    )
    app_context = fields.Nested(
        AppContextSchema(),
        data_key="appContext",
        allow_none=True,
        load_default=None,
    )
    conditions = fields.List(fields.Dict(), data_key="conditions", load_default=list)
    message = fields.Str(data_key="message", allow_none=True, load_default=None)


class StandaloneSchema(BaseSchema):
    """Standalone custom resource as seen by the operator."""

    __model__ = Standalone

    class Meta:
        unknown = EXCLUDE
        ordered = True

    api_version = fields.Str(
        data_key="apiVersion", load_default="enterprise.splunk.com/v4"
    )
    kind = fields.Str(data_key="kind", load_default="Standalone")
    metadata = fields.Nested(ObjectMetaSchema(), data_key="metadata", required=True)
    spec = fields.Nested(
        StandaloneSpecSchema(),
        data_key="spec",
        load_default=lambda: StandaloneSpecSchema().load({}),
    )
    status = fields.Nested(
        StandaloneStatusSchema(),
        data_key="status",
        allow_none=True,
        load_default=lambda: StandaloneStatusSchema().load({}),
    )
