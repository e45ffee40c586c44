class VitrineError(Exception):
    """Base error for Vitrine."""


class RecoverableError(VitrineError):
    """Indicates the operation can be retried safely."""


class PermanentError(VitrineError):
    """Indicates the operation should not be retried."""


class CodecError(PermanentError):
    """Media could not be decoded, probed or encoded."""


class ValidationError(VitrineError):
    """Input validation failure."""


class AuthError(VitrineError):
    """Authentication failure."""


class OperationError(VitrineError):
    """Caller-facing failure of a callable operation."""

    code = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthenticatedError(OperationError):
    code = "unauthenticated"


class InvalidArgumentError(OperationError):
    code = "invalid-argument"


class NotFoundError(OperationError):
    code = "not-found"


class PreconditionError(OperationError):
    code = "failed-precondition"
