"""
Error types for pipbin.

Every error carries a user-facing ``message``: the line written back to the
SSH client or used as the plain-text HTTP error body.
"""
from typing import Optional

from pipbin.models import Greeting


class PipError(Exception):
    """Base class for all pipbin errors."""

    default_message = "X something went wrong"

    def __init__(self, detail: str = "", message: Optional[str] = None):
        super().__init__(detail or self.default_message)
        self.message = message or self.default_message


class ConfigError(PipError):
    """Missing or invalid configuration. Fatal at startup."""

    default_message = "X invalid configuration"


class InvalidSession(PipError):
    """The transport gave no identity for the session."""

    default_message = "somehow you managed to break ssh?"


class StorageFailure(PipError):
    """A persistence read or write failed (anything except not-found)."""

    default_message = "X there was an error talking to the db"


class DuplicateUser(StorageFailure):
    """A user record with that name already exists."""


class Unauthorized(PipError):
    """An existing user presented a key that is not registered to them."""

    default_message = "🔒 your key doesn't match. try another?"
    greeting = Greeting.UNAUTHORIZED

    def __init__(self, user, detail: str = "unauthorized", message: Optional[str] = None):
        super().__init__(detail, message)
        self.user = user


class ClassifierUnavailable(PipError):
    """The language classifier failed its startup health check."""

    default_message = "X language detection is unavailable"


class ClassifierRequestFailure(PipError):
    """A single classify call failed."""

    default_message = "X could not detect the language"


class TransportReadFailure(PipError):
    """Reading the piped content failed for a reason other than end-of-stream."""

    default_message = "X could not read your paste"


class PasteTooLarge(PipError):
    """The piped content exceeds the per-paste size cap."""

    default_message = "X your paste is too large"


class PasteNotFound(PipError):
    """No paste is stored under the requested id."""

    default_message = "paste not found"


class RenderFailure(PipError):
    """Converting a stored paste for display failed."""

    default_message = "Error converting markdown"
