"""Error taxonomy for the card rendering pipeline.

Errors raised while rendering a single record derive from ``CardError`` and are
turned into that record's result by the card renderer. ``ConfigurationError``
and ``BatchSetupError`` are fatal to a whole run and reach the caller.
"""

from typing import Optional


class CardError(Exception):
    """Base class for failures scoped to one card."""

    kind = "CardError"

    def __init__(self, message: str, *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ValidationError(CardError):
    """Malformed or incomplete card request."""

    kind = "ValidationError"

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.index = index


class TemplateNotFound(CardError):
    """The template reference does not resolve in the design file."""

    kind = "TemplateNotFound"


class RemoteUnavailable(CardError):
    """Network or auth failure talking to the design tool."""

    kind = "RemoteUnavailable"

    def __init__(
        self,
        message: str,
        *,
        transient: bool = False,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause=cause)
        # Connectivity problems and 5xx responses are worth retrying
        self.transient = transient


class CompositionFailed(CardError):
    """Base image could not be decoded or the overlay could not be merged."""

    kind = "CompositionFailed"


class UploadRejected(CardError):
    """Hosting service refused the upload (credentials or configuration)."""

    kind = "UploadRejected"


class UploadFailed(CardError):
    """Transient network or service error while uploading."""

    kind = "UploadFailed"


class CardTimeout(CardError):
    """A remote call or readiness wait exceeded its time budget."""

    kind = "Timeout"


class ConfigurationError(Exception):
    """Invalid process-level configuration, e.g. no default template."""


class BatchSetupError(Exception):
    """A batch could not start: missing credentials, browser launch failure, etc."""
