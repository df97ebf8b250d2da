from collections.abc import Generator
from contextlib import contextmanager
from enum import Enum
from typing import Any, Optional

__all__ = (
    "RESOURCE_NOT_FOUND_CODE",
    "BatchExecutionError",
    "ImproperConfigurationError",
    "LocalIOError",
    "MissingParameterError",
    "ParameterError",
    "RequestError",
    "RetryBudgetExhaustedError",
    "SQLStageError",
    "ServerError",
    "StageOperation",
    "StageTransferError",
    "StreamConsumedError",
    "TransferError",
    "TransferInterruptedError",
    "TransientServiceError",
    "UnauthorizedError",
    "UnsupportedParameterTypeError",
    "wrap_local_io",
)

RESOURCE_NOT_FOUND_CODE = 1003


class SQLStageError(Exception):
    """Base exception class from which all sqlstage exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``SQLStageError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class ImproperConfigurationError(SQLStageError):
    """Improper Configuration error.

    Raised when a transfer client, session or statement is built with settings that cannot work.
    """


# -- Parameter Errors --
class ParameterError(SQLStageError):
    """Base class for parameter-related errors."""

    sql: Optional[str]

    def __init__(self, message: str, sql: Optional[str] = None) -> None:
        """Initialize with optional SQL context."""
        detail_message = message
        if sql:
            detail_message = f"{message}\nSQL: {sql}"
        super().__init__(detail=detail_message)
        self.sql = sql


class MissingParameterError(ParameterError):
    """Raised when a row is added before every placeholder has been bound."""


class UnsupportedParameterTypeError(ParameterError):
    """Raised when a value cannot be rendered as a column literal."""


# -- Transfer Errors --
class TransferError(SQLStageError):
    """Base class for HTTP transfer failures."""


class UnauthorizedError(TransferError):
    """The server rejected the request credentials. Never retried."""

    status_code: int = 401


class TransientServiceError(TransferError):
    """The service was temporarily unavailable or the request could not be sent."""

    status_code: Optional[int]

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RequestError(TransferError):
    """The server answered with a non-success status other than 401 or 503+."""

    status_code: int

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class RetryBudgetExhaustedError(TransferError):
    """Raised once the attempt or elapsed-time ceiling of a retry policy is reached."""

    attempts: int
    elapsed: float
    last_cause: Optional[BaseException]

    def __init__(self, attempts: int, elapsed: float, last_cause: Optional[BaseException] = None) -> None:
        message = f"Error executing transfer (attempts: {attempts}, duration: {elapsed:.3f}s)"
        if last_cause is not None:
            message = f"{message}: {last_cause}"
        super().__init__(message)
        self.attempts = attempts
        self.elapsed = elapsed
        self.last_cause = last_cause


class TransferInterruptedError(TransferError):
    """The backoff wait between two attempts was interrupted."""


class StreamConsumedError(TransferError):
    """A one-shot request body was read a second time."""


class StageOperation(str, Enum):
    """Stage transfer operations used to tag wrapped failures."""

    UPLOAD = "upload"
    PRESIGNED_UPLOAD = "presigned_upload"
    DOWNLOAD = "download"
    PRESIGN = "presign"

    def __str__(self) -> str:
        return self.value


class StageTransferError(SQLStageError):
    """A stage upload, download or presign request failed terminally."""

    kind: StageOperation

    def __init__(self, message: str, kind: StageOperation) -> None:
        super().__init__(detail=f"{kind} failed: {message}")
        self.kind = kind


# -- Execution Errors --
class ServerError(SQLStageError):
    """Error reported by the server for a SQL statement.

    SQL executors raise this with the server's numeric error code so callers can
    distinguish conditions such as a missing stage object.
    """

    code: Optional[int]

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code

    @property
    def is_not_found(self) -> bool:
        return self.code == RESOURCE_NOT_FOUND_CODE


class BatchExecutionError(SQLStageError):
    """A batch insert could not be completed."""


class LocalIOError(BatchExecutionError):
    """Reading or writing the local temporary batch file failed."""


@contextmanager
def wrap_local_io(message: str) -> Generator[None, None, None]:
    """Convert :class:`OSError` raised inside the block into :class:`LocalIOError`."""
    try:
        yield
    except OSError as exc:
        raise LocalIOError(f"{message}: {exc}") from exc
