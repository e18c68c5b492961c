"""Error taxonomy shared by the engine and its transports."""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a failed operation."""

    NETWORK_FAILURE = "network_failure"
    VALIDATION_FAILURE = "validation_failure"
    MODERATION_REJECTION = "moderation_rejection"
    RATE_LIMITED = "rate_limited"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class EngineError:
    """Structured failure handed to the caller instead of an exception."""

    kind: ErrorKind
    message: str

    @property
    def is_retryable(self) -> bool:
        """Resubmitting the same request may succeed."""
        return self.kind != ErrorKind.VALIDATION_FAILURE

    @property
    def is_soft(self) -> bool:
        """Not a malfunction: the presentation layer may style it as a notice."""
        return self.kind in (ErrorKind.MODERATION_REJECTION, ErrorKind.RATE_LIMITED)


class RemoteCallError(Exception):
    """A remote operation failed. Raised by transports."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code


class TurnInProgressError(RuntimeError):
    """A turn is already being sent or reconciled."""


def classify_error(exc: BaseException) -> EngineError:
    """Convert any exception raised by a remote call into an EngineError."""
    if isinstance(exc, RemoteCallError):
        return EngineError(kind=exc.kind, message=exc.message)
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return EngineError(
            kind=ErrorKind.NETWORK_FAILURE,
            message=str(exc) or "Connection to the server failed.",
        )
    return EngineError(
        kind=ErrorKind.UNCLASSIFIED,
        message=str(exc) or exc.__class__.__name__,
    )


def validation_error(message: str) -> EngineError:
    return EngineError(kind=ErrorKind.VALIDATION_FAILURE, message=message)
