from marshmallow import fields
from splunk_operator.types.base import BaseSchema
from splunk_operator.types.models.remote_object import RemoteObject


class RemoteObjectSchema(BaseSchema):
    __model__ = RemoteObject

    key = fields.Str(data_key="key", required=True)
    etag = fields.Str(data_key="etag", allow_none=True, load_default=None)
    last_modified = fields.DateTime(
        data_key="lastModified", allow_none=True, load_default=None
    )
    size = fields.Int(data_key="size", allow_none=True, load_default=None)
    storage_class = fields.Str(
        data_key="storageClass", allow_none=True, load_default=None
    )
