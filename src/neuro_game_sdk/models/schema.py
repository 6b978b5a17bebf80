"""
Schema nodes describing an action payload to the remote agent.

Serialized with ``exclude_none=True`` so unset descriptions and enums are
left off the wire.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class ObjectSchema(BaseModel):
    type: Literal["object"] = "object"
    description: Optional[str] = None
    required: list[str] = []
    properties: dict[str, "SchemaNode"] = {}


class StringSchema(BaseModel):
    type: Literal["string"] = "string"
    description: Optional[str] = None
    # Used for real enums and for host-restricted free text alike
    enum: Optional[list[str]] = None


class NumberSchema(BaseModel):
    type: Literal["number"] = "number"
    description: Optional[str] = None


class IntegerSchema(BaseModel):
    type: Literal["integer"] = "integer"
    description: Optional[str] = None


class ArraySchema(BaseModel):
    type: Literal["array"] = "array"
    description: Optional[str] = None
    items: Optional["SchemaNode"] = None


class BooleanSchema(BaseModel):
    type: Literal["boolean"] = "boolean"
    description: Optional[str] = None


class NullSchema(BaseModel):
    type: Literal["null"] = "null"
    description: Optional[str] = None


SchemaNode = Annotated[
    Union[ObjectSchema, StringSchema, NumberSchema, IntegerSchema, ArraySchema, BooleanSchema, NullSchema],
    Field(discriminator="type"),
]

ObjectSchema.model_rebuild()
ArraySchema.model_rebuild()
