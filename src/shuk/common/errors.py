"""Base error definitions for shuk."""

from typing import Any, Dict


class ShukError(Exception):
    """Base exception for all shuk errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


class LocalIoError(ShukError):
    """Local file could not be opened, read or seeked."""
    pass


class RemoteServiceError(ShukError):
    """The object store rejected a call for a reason other than not-found."""
    pass


class ForeignObjectError(ShukError):
    """Remote object is not managed by shuk and must not be touched."""
    pass


class ConfigurationError(ShukError):
    """Configuration is missing or invalid."""
    pass
