"""
Schema derivation: describe an action payload type to the Neuro API.

The payload type's annotations drive the result:

- ``bool`` -> boolean, ``int`` -> integer, ``float`` -> number
- ``str`` -> string, restricted to the action's limited responses for that field
- ``Enum`` -> string with the member values as ``enum`` (int and float values as text)
- ``list[X]`` and friends -> array of ``X`` (field path ``"[<path>]"``)
- pydantic models and dataclasses -> object, ``dict`` -> object without properties

``Optional[X]`` and ``Annotated[X, ...]`` are unwrapped. Anything else raises
``SchemaDerivationError``.
"""

import collections.abc
import dataclasses
import enum
import types
from typing import Annotated, Any, Callable, Optional, Sequence, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel
from pydantic.fields import FieldInfo

from neuro_game_sdk.errors import SchemaDerivationError
from neuro_game_sdk.models.schema import (
    ArraySchema,
    BooleanSchema,
    IntegerSchema,
    NumberSchema,
    ObjectSchema,
    SchemaNode,
    StringSchema,
)

LimitedResponseResolver = Callable[[str], Sequence[str]]

_SEQUENCE_ORIGINS = (
    list,
    set,
    frozenset,
    tuple,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Set,
    collections.abc.MutableSet,
    collections.abc.Iterable,
)
_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)


def _no_limited_responses(field_path: str) -> Sequence[str]:
    return []


def _type_name(type_: Any) -> str:
    return getattr(type_, "__name__", None) or repr(type_)


def _unwrap(type_: Any, description: Optional[str]) -> tuple[Any, Optional[str]]:
    """Strip ``Annotated`` and ``Optional`` wrappers, collecting a Field description."""
    while True:
        origin = get_origin(type_)
        if origin is Annotated:
            inner, *metadata = get_args(type_)
            for meta in metadata:
                if description is None and isinstance(meta, FieldInfo) and meta.description:
                    description = meta.description
            type_ = inner
            continue
        if origin is Union or origin is types.UnionType:
            members = [arg for arg in get_args(type_) if arg is not type(None)]
            if len(members) != 1:
                raise SchemaDerivationError(f"{type_!r} is a union, which has no schema representation", type_)
            type_ = members[0]
            continue
        return type_, description


def _sequence_item_type(type_: Any) -> Any:
    args = get_args(type_)
    if get_origin(type_) is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return args[0]
        raise SchemaDerivationError(f"{type_!r} is a fixed-size tuple, use tuple[X, ...] instead", type_)
    if len(args) != 1:
        raise SchemaDerivationError(f"{type_!r} does not declare its element type", type_)
    return args[0]


def _enum_wire_values(type_: type[enum.Enum]) -> list[str]:
    # int and float enums accept their value as a numeric string when decoding
    if issubclass(type_, str):
        return [member.value for member in type_]
    if issubclass(type_, (int, float)):
        return [str(member.value) for member in type_]
    if all(isinstance(member.value, str) for member in type_):
        return [member.value for member in type_]
    raise SchemaDerivationError(
        f"{_type_name(type_)} has non-string values; derive it from str, int or float to send it as a string enum",
        type_,
    )


def derive_schema(
    type_: Any,
    field_path: Optional[str] = None,
    limited_response_resolver: Optional[LimitedResponseResolver] = None,
    description: Optional[str] = None,
) -> SchemaNode:
    """Derive the schema node for ``type_``.

    ``field_path`` is the name handed to ``limited_response_resolver``; it
    defaults to the type's own name. Nested fields use their wire name and
    list elements wrap the parent's path in brackets.
    """
    resolver = limited_response_resolver or _no_limited_responses
    type_, description = _unwrap(type_, description)
    path = field_path if field_path is not None else _type_name(type_)
    origin = get_origin(type_)

    if type_ is bool:
        return BooleanSchema(description=description)
    if type_ is int:
        return IntegerSchema(description=description)
    if type_ is float:
        return NumberSchema(description=description)
    if type_ is str:
        limited = list(resolver(path))
        return StringSchema(description=description, enum=limited or None)
    if isinstance(type_, type) and issubclass(type_, enum.Enum):
        return StringSchema(description=description, enum=_enum_wire_values(type_))
    if origin in _SEQUENCE_ORIGINS:
        item_type = _sequence_item_type(type_)
        return ArraySchema(
            description=description,
            items=derive_schema(item_type, f"[{path}]", resolver),
        )
    if isinstance(type_, type) and issubclass(type_, BaseModel):
        return _derive_model(type_, description, resolver)
    if dataclasses.is_dataclass(type_) and isinstance(type_, type):
        return _derive_dataclass(type_, description, resolver)
    if type_ is dict or origin in _MAPPING_ORIGINS:
        return ObjectSchema(description=description)

    raise SchemaDerivationError(f"{_type_name(type_)} has an unsupported type for schema derivation: {type_!r}", type_)


def _derive_model(
    model: type[BaseModel],
    description: Optional[str],
    resolver: LimitedResponseResolver,
) -> ObjectSchema:
    required: list[str] = []
    properties: dict[str, SchemaNode] = {}
    for name, field in model.model_fields.items():
        wire_name = field.alias or name
        if field.is_required():
            required.append(wire_name)
        properties[wire_name] = derive_schema(field.annotation, wire_name, resolver, field.description)
    return ObjectSchema(description=description, required=required, properties=properties)


def _derive_dataclass(
    cls: type,
    description: Optional[str],
    resolver: LimitedResponseResolver,
) -> ObjectSchema:
    required: list[str] = []
    properties: dict[str, SchemaNode] = {}
    hints = get_type_hints(cls, include_extras=True)
    for field in dataclasses.fields(cls):
        if field.default is dataclasses.MISSING and field.default_factory is dataclasses.MISSING:
            required.append(field.name)
        properties[field.name] = derive_schema(
            hints.get(field.name, field.type),
            field.name,
            resolver,
            field.metadata.get("description"),
        )
    return ObjectSchema(description=description, required=required, properties=properties)
