"""
Wire messages exchanged with the Neuro API server.

Every frame is a single JSON object ``{"command", "game", "data"}``. The
``game`` field is filled in by the socket manager right before a frame is
written, so messages are built without it.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from neuro_game_sdk.models.schema import SchemaNode


class Command:
    """Command names of the Neuro API."""
    # Game -> server
    STARTUP = "startup"
    CONTEXT = "context"
    ACTIONS_REGISTER = "actions/register"
    ACTIONS_UNREGISTER = "actions/unregister"
    ACTIONS_FORCE = "actions/force"
    ACTION_RESULT = "action/result"
    # Server -> game
    ACTION = "action"


class NeuroMessage(BaseModel):
    command: str
    game: Optional[str] = None
    data: Optional[dict[str, Any]] = None


class Context(BaseModel):
    message: str
    silent: bool


class ActionDescription(BaseModel):
    name: str
    description: str
    # "schema" would shadow a BaseModel attribute
    schema_: Optional[SchemaNode] = Field(default=None, alias="schema")

    model_config = {"populate_by_name": True}


class RegisterActions(BaseModel):
    actions: list[ActionDescription]


class UnregisterActions(BaseModel):
    action_names: list[str]


class ForceActions(BaseModel):
    state: Optional[str] = None
    query: str
    ephemeral_context: bool = False
    action_names: list[str]


class ActionExecute(BaseModel):
    """Inbound ``action`` payload. ``data`` is a JSON-encoded string."""
    id: str
    name: str
    data: Optional[str] = None


class ActionResult(BaseModel):
    id: str
    success: bool
    message: Optional[str] = None
