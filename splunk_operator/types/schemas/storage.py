from marshmallow import fields
from splunk_operator.types.base import BaseSchema
from splunk_operator.types.models.storage import StorageClassSpec


class StorageClassSpecSchema(BaseSchema):
    """etc/var volume storage configuration."""

    __model__ = StorageClassSpec

    storage_class_name = fields.Str(
        data_key="storageClassName", allow_none=True, load_default=None
    )
    storage_capacity = fields.Str(
        data_key="storageCapacity", allow_none=True, load_default=None
    )
    ephemeral_storage = fields.Bool(data_key="ephemeralStorage", load_default=False)
