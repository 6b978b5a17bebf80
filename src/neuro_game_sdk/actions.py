"""
Actions a game exposes to the Neuro API.

Subclass ``NeuroAction`` for actions that take a payload, or
``NeuroActionWithoutResponse`` for actions that take none.
"""

import logging
from abc import ABC, abstractmethod
from functools import cached_property
from typing import Any, Generic, Optional, TypeVar

from pydantic import TypeAdapter

from neuro_game_sdk.models.messages import ActionDescription
from neuro_game_sdk.models.schema import SchemaNode
from neuro_game_sdk.schema import derive_schema

T = TypeVar("T")


class NeuroAction(ABC, Generic[T]):
    """A named capability offered to the remote agent.

    ``payload_type`` is any type the schema deriver understands (usually a
    pydantic model). Leave it as ``None`` for actions without a payload.
    """

    def __init__(self, name: str, description: str, payload_type: Optional[Any] = None):
        self.name = name
        self.description = description
        self.payload_type = payload_type
        self.logger = logging.getLogger(f"neuro_game_sdk.action.{name}")

    @property
    def takes_payload(self) -> bool:
        return self.payload_type is not None

    @cached_property
    def schema(self) -> Optional[SchemaNode]:
        if self.payload_type is None:
            return None
        return derive_schema(self.payload_type, limited_response_resolver=self.limited_response_resolver)

    @cached_property
    def _adapter(self) -> TypeAdapter:
        return TypeAdapter(self.payload_type)

    @abstractmethod
    def validate(self, data: T) -> Optional[str]:
        """Return an error message to reject ``data``, or ``None`` to accept it."""

    @abstractmethod
    def success_message(self, data: T) -> str:
        ...

    @abstractmethod
    async def process(self, data: T) -> None:
        """Carry out the action. Runs as a detached task; errors are only logged."""

    def limited_response_resolver(self, field_path: str) -> list[str]:
        """Restrict the string field at ``field_path`` to a fixed set of responses."""
        return []

    def deserialize(self, raw: str) -> T:
        """Decode the JSON-encoded ``data`` of an action request.

        Raises ``pydantic.ValidationError`` if it does not match ``payload_type``.
        """
        return self._adapter.validate_json(raw)

    def describe(self) -> ActionDescription:
        return ActionDescription(name=self.name, description=self.description, schema=self.schema)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class NeuroActionWithoutResponse(NeuroAction[None]):
    """Action with no payload.

    Always valid. ``success_message`` and ``process`` receive ``None`` whatever
    data the server sent along.
    """

    def __init__(self, name: str, description: str):
        super().__init__(name, description, None)

    def validate(self, data: None = None) -> Optional[str]:
        return None
