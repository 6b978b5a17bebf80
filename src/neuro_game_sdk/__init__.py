"""
neuro-game-sdk: Neuro API game SDK for Python.

Expose game actions to a remote agent over a reconnecting websocket.
"""

from neuro_game_sdk.client import NeuroGame, AsyncNeuroGame
from neuro_game_sdk.actions import NeuroAction, NeuroActionWithoutResponse
from neuro_game_sdk.config import SDKConfig, load_config
from neuro_game_sdk.errors import NeuroSDKError, SchemaDerivationError, ConfigError, ConnectionError
from neuro_game_sdk.models.messages import Command
from neuro_game_sdk.schema import derive_schema
from neuro_game_sdk.transport.websocket import CloseReason

__version__ = "0.1.0"
__all__ = [
    "NeuroGame",
    "AsyncNeuroGame",
    "NeuroAction",
    "NeuroActionWithoutResponse",
    "SDKConfig",
    "load_config",
    "NeuroSDKError",
    "SchemaDerivationError",
    "ConfigError",
    "ConnectionError",
    "Command",
    "derive_schema",
    "CloseReason",
]
