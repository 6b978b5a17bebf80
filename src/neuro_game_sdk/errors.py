"""
Neuro Game SDK error types.
"""

from typing import Any, Optional


class NeuroSDKError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class SchemaDerivationError(NeuroSDKError):
    """Raised when a payload type cannot be described as a schema."""

    def __init__(self, message: str, type_: Any = None):
        super().__init__("schema_error", message, {"type": repr(type_)} if type_ is not None else None)
        self.type = type_


class ConfigError(NeuroSDKError):
    def __init__(self, message: str, code: str = "config_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class ConnectionError(NeuroSDKError):
    def __init__(self, message: str):
        super().__init__("connection_error", message)
