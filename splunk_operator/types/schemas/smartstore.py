from marshmallow import fields
from splunk_operator.types.base import BaseSchema
from splunk_operator.types.models.smartstore import (
    IndexSpec,
    SmartStoreDefaults,
    SmartStoreSpec,
)
from splunk_operator.types.schemas.app_framework import VolumeSpecSchema


class IndexSpecSchema(BaseSchema):
    __model__ = IndexSpec

    name = fields.Str(data_key="name", required=True)
    remote_path = fields.Str(data_key="remotePath", allow_none=True, load_default=None)
    vol_name = fields.Str(data_key="volName", allow_none=True, load_default=None)
    max_global_data_size_mb = fields.Int(
        data_key="maxGlobalDataSizeMB", allow_none=True, load_default=None
    )
    max_global_raw_data_size_mb = fields.Int(
        data_key="maxGlobalRawDataSizeMB", allow_none=True, load_default=None
    )


class SmartStoreDefaultsSchema(BaseSchema):
    __model__ = SmartStoreDefaults

    vol_name = fields.Str(data_key="volName", allow_none=True, load_default=None)
    max_global_data_size_mb = fields.Int(
        data_key="maxGlobalDataSizeMB", allow_none=True, load_default=None
    )
    max_global_raw_data_size_mb = fields.Int(
        data_key="maxGlobalRawDataSizeMB", allow_none=True, load_default=None
    )


class SmartStoreSpecSchema(BaseSchema):
    __model__ = SmartStoreSpec

    volumes = fields.List(
        fields.Nested(VolumeSpecSchema()), data_key="volumes", load_default=list
    )
    indexes = fields.List(
        fields.Nested(IndexSpecSchema()), data_key="indexes", load_default=list
    )
    defaults = fields.Nested(
        SmartStoreDefaultsSchema(),
        data_key="defaults",
        allow_none=True,
        load_default=lambda: SmartStoreDefaultsSchema().load({}),
    )
