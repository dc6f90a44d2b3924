from marshmallow import fields
from splunk_operator.types.base import BaseSchema
from splunk_operator.types.models.app_framework import (
    VolumeSpec,
    AppSourceDefaultSpec,
    AppSourceSpec,
    AppFrameworkSpec,
)


class VolumeSpecSchema(BaseSchema):
    __model__ = VolumeSpec

    name = fields.Str(data_key="name", required=True)
    endpoint = fields.Str(data_key="endpoint", allow_none=True, load_default=None)
    path = fields.Str(data_key="path", required=True)
    secret_ref = fields.Str(data_key="secretRef", allow_none=True, load_default=None)
    provider = fields.Str(data_key="provider", allow_none=True, load_default=None)
    storage_type = fields.Str(
        data_key="storageType", allow_none=True, load_default=None
    )
    region = fields.Str(data_key="region", allow_none=True, load_default=None)


class AppSourceDefaultSpecSchema(BaseSchema):
    __model__ = AppSourceDefaultSpec

    vol_name = fields.Str(data_key="volName", allow_none=True, load_default=None)
    scope = fields.Str(data_key="scope", allow_none=True, load_default=None)


class AppSourceSpecSchema(BaseSchema):
    __model__ = AppSourceSpec

    name = fields.Str(data_key="name", required=True)
    location = fields.Str(data_key="location", required=True)
    vol_name = fields.Str(data_key="volName", allow_none=True, load_default=None)
    scope = fields.Str(data_key="scope", allow_none=True, load_default=None)


class AppFrameworkSpecSchema(BaseSchema):
    """App framework configuration: volumes, app sources and polling."""

    __model__ = AppFrameworkSpec

    defaults = fields.Nested(
        AppSourceDefaultSpecSchema(),
        data_key="defaults",
        allow_none=True,
        load_default=lambda: AppSourceDefaultSpecSchema().load({}),
    )
    volumes = fields.List(
        fields.Nested(VolumeSpecSchema()), data_key="volumes", load_default=list
    )
    app_sources = fields.List(
        fields.Nested(AppSourceSpecSchema()), data_key="appSources", load_default=list
    )
    apps_repo_poll_interval = fields.Int(
        data_key="appsRepoPollIntervalSeconds", allow_none=True, load_default=None
    )
