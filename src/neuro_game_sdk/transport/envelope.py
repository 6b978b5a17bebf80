"""
Envelope construction and parsing for Neuro API frames.
"""

from typing import Optional, Sequence

from pydantic import BaseModel

from neuro_game_sdk.models.messages import (
    ActionDescription,
    ActionResult,
    Command,
    Context,
    ForceActions,
    NeuroMessage,
    RegisterActions,
    UnregisterActions,
)


def build_message(command: str, data: Optional[BaseModel] = None) -> NeuroMessage:
    """Wrap a payload model in an envelope. ``game`` is left for the sender to stamp."""
    payload = data.model_dump(by_alias=True, exclude_none=True) if data is not None else None
    return NeuroMessage(command=command, data=payload)


def build_startup() -> NeuroMessage:
    return build_message(Command.STARTUP)


def build_context(message: str, silent: bool) -> NeuroMessage:
    return build_message(Command.CONTEXT, Context(message=message, silent=silent))


def build_register_actions(actions: Sequence[ActionDescription]) -> NeuroMessage:
    return build_message(Command.ACTIONS_REGISTER, RegisterActions(actions=list(actions)))


def build_unregister_actions(action_names: Sequence[str]) -> NeuroMessage:
    return build_message(Command.ACTIONS_UNREGISTER, UnregisterActions(action_names=list(action_names)))


def build_force_actions(
    state: Optional[str],
    query: str,
    ephemeral_context: bool,
    action_names: Sequence[str],
) -> NeuroMessage:
    return build_message(
        Command.ACTIONS_FORCE,
        ForceActions(
            state=state,
            query=query,
            ephemeral_context=ephemeral_context,
            action_names=list(action_names),
        ),
    )


def build_action_result(id: str, success: bool, message: Optional[str] = None) -> NeuroMessage:
    return build_message(Command.ACTION_RESULT, ActionResult(id=id, success=success, message=message))


def to_frame(message: NeuroMessage, game: Optional[str]) -> str:
    """Serialize an envelope to a text frame, stamping the game name."""
    return message.model_copy(update={"game": game}).model_dump_json(exclude_none=True)


def parse_message(text: str) -> NeuroMessage:
    """Parse an inbound text frame. Raises ``pydantic.ValidationError`` if invalid."""
    return NeuroMessage.model_validate_json(text)
