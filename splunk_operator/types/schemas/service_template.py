from marshmallow import fields
from splunk_operator.types.base import BaseSchema
from splunk_operator.types.models.service_template import (
    MetadataTemplate,
    ServiceTemplate,
)


class MetadataTemplateSchema(BaseSchema):
    __model__ = MetadataTemplate

    labels = fields.Dict(
        keys=fields.Str(), values=fields.Str(), data_key="labels", load_default=None
    )
    annotations = fields.Dict(
        keys=fields.Str(),
        values=fields.Str(),
        data_key="annotations",
        load_default=None,
    )


class ServiceTemplateSchema(BaseSchema):
    __model__ = ServiceTemplate

    metadata = fields.Nested(
        MetadataTemplateSchema(),
        data_key="metadata",
        allow_none=True,
        load_default=lambda: MetadataTemplateSchema().load({}),
    )
    type = fields.Str(data_key="type", allow_none=True, load_default=None)
