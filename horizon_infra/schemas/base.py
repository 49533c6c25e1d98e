from pydantic import BaseModel
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    """Schema serialized with camelCase keys, accepting either case on input"""

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True
