from marshmallow import fields
from splunk_operator.types.base import BaseSchema
from splunk_operator.types.models.app_context import AppSourceStatus, AppContext
from splunk_operator.types.schemas.remote_object import RemoteObjectSchema


class AppSourceStatusSchema(BaseSchema):
    __model__ = AppSourceStatus

    objects = fields.List(
        fields.Nested(RemoteObjectSchema()), data_key="objects", load_default=list
    )
    last_listed = fields.DateTime(
        data_key="lastListed", allow_none=True, load_default=None
    )
    error = fields.Str(data_key="error", allow_none=True, load_default=None)


class AppContextSchema(BaseSchema):
    __model__ = AppContext

    spec_hash = fields.Str(data_key="specHash", allow_none=True, load_default=None)
    apps_repo_poll_interval = fields.Int(
        data_key="appsRepoPollIntervalSeconds", allow_none=True, load_default=None
    )
    last_app_info_check_time = fields.DateTime(
        data_key="lastAppInfoCheckTime", allow_none=True, load_default=None
    )
    app_sources = fields.Dict(
        keys=fields.Str(),
        values=fields.Nested(AppSourceStatusSchema()),
        data_key="appSources",
        load_default=dict,
    )
