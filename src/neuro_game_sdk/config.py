"""
SDK configuration.

Values are resolved from, lowest to highest priority: defaults, the JSON
config file (``~/.neuro/config.json``), the ``NEURO_SDK_WS_URL`` and
``NEURO_SDK_GAME`` environment variables, and explicit overrides.
"""

import json
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from neuro_game_sdk.errors import ConfigError

DEFAULT_URL = "ws://localhost:8000"
CONFIG_FILE = Path.home() / ".neuro" / "config.json"
ENV_URL = "NEURO_SDK_WS_URL"
ENV_GAME = "NEURO_SDK_GAME"


class SDKConfig(BaseModel):
    game: Optional[str] = None
    url: str = DEFAULT_URL
    invalid_url_interval: float = Field(default=1.0, gt=0)
    reconnect_delay: float = Field(default=2.0, gt=0)
    ping_interval: Optional[float] = Field(default=5.0, gt=0)

    def socket_options(self) -> dict[str, Any]:
        return {
            "invalid_url_interval": self.invalid_url_interval,
            "reconnect_delay": self.reconnect_delay,
            "ping_interval": self.ping_interval,
        }


def read_config_file(path: Optional[Path] = None) -> dict[str, Any]:
    path = path or CONFIG_FILE
    try:
        values = json.loads(path.read_text())
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file {path} is not valid JSON: {e}")
    if not isinstance(values, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return values


def write_config_file(values: Mapping[str, Any], path: Optional[Path] = None) -> None:
    path = path or CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(dict(values), indent=2))


def load_config(
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> SDKConfig:
    values = read_config_file(path)
    env = os.environ if env is None else env
    if env.get(ENV_URL):
        values["url"] = env[ENV_URL]
    if env.get(ENV_GAME):
        values["game"] = env[ENV_GAME]
    values.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return SDKConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"Invalid SDK configuration: {e}", details={"errors": e.errors(include_url=False)})
