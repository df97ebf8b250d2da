"""Bounded-retry HTTP execution for stage transfers."""

import logging
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import TYPE_CHECKING, Optional

import httpx
from mypy_extensions import mypyc_attr

from sqlstage.config import DEFAULT_CHUNK_SIZE, RetryPolicy
from sqlstage.exceptions import (
    RequestError,
    RetryBudgetExhaustedError,
    StreamConsumedError,
    TransferError,
    TransferInterruptedError,
    TransientServiceError,
    UnauthorizedError,
)
from sqlstage.utils.logging import get_logger, log_with_context

if TYPE_CHECKING:
    from sqlstage.transfer._request import TransferRequest
    from sqlstage.typing import Clock, Sleeper

__all__ = ("AttemptOutcome", "OutcomeKind", "RetryingTransport", "classify_response")

HTTP_UNAUTHORIZED = 401
HTTP_SERVICE_UNAVAILABLE = 503


class OutcomeKind(Enum):
    """How a single attempt ended."""

    SUCCESS = auto()
    RETRYABLE = auto()
    FATAL = auto()


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of one attempt: the response on success, the cause otherwise."""

    kind: OutcomeKind
    response: Optional[httpx.Response] = None
    cause: Optional[TransferError] = None

    @classmethod
    def success(cls, response: httpx.Response) -> "AttemptOutcome":
        return cls(OutcomeKind.SUCCESS, response=response)

    @classmethod
    def retryable(cls, cause: TransferError) -> "AttemptOutcome":
        return cls(OutcomeKind.RETRYABLE, cause=cause)

    @classmethod
    def fatal(cls, cause: TransferError) -> "AttemptOutcome":
        return cls(OutcomeKind.FATAL, cause=cause)


def classify_response(response: httpx.Response) -> AttemptOutcome:
    """Map an HTTP response onto an attempt outcome.

    2xx is a success, 401 is fatal, 503 and above are transient, every other
    status is a request error. Both of the latter are retried.
    """
    if response.is_success:
        return AttemptOutcome.success(response)
    status = response.status_code
    reason = response.reason_phrase
    if status == HTTP_UNAUTHORIZED:
        return AttemptOutcome.fatal(UnauthorizedError(f"Unauthorized user: {status} {reason}"))
    if status >= HTTP_SERVICE_UNAVAILABLE:
        return AttemptOutcome.retryable(TransientServiceError(f"Service unavailable: {status} {reason}", status))
    return AttemptOutcome.retryable(RequestError(f"Request failed: {status} {reason}", status))


@mypyc_attr(allow_interpreted_subclasses=True)
class RetryingTransport:
    """Executes a :class:`TransferRequest` under a :class:`RetryPolicy`.

    The clock and sleep functions are injectable so the policy can be exercised
    without real delays. When ``interrupt`` is given, backoff waits are done on
    that event instead and setting it aborts the request with
    :class:`TransferInterruptedError`.
    """

    __slots__ = ("_chunk_size", "_client", "_clock", "_interrupt", "_logger", "_sleep", "policy")

    def __init__(
        self,
        client: httpx.Client,
        policy: Optional[RetryPolicy] = None,
        *,
        clock: "Optional[Clock]" = None,
        sleep: "Optional[Sleeper]" = None,
        interrupt: Optional[threading.Event] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self.policy = policy or RetryPolicy()
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self._interrupt = interrupt
        self._chunk_size = chunk_size
        self._logger = logger or get_logger("transfer")

    def execute(self, request: "TransferRequest", *, stream: bool = False) -> httpx.Response:
        """Run ``request`` until it succeeds, fails fatally or exhausts the budget.

        Args:
            request: The request to execute.
            stream: Leave the successful response open so the caller can read the
                body incrementally. The caller must close it.

        Raises:
            UnauthorizedError: The server rejected the credentials.
            RetryBudgetExhaustedError: Attempt or elapsed-time ceiling reached.
            TransferInterruptedError: The backoff wait was interrupted.

        Returns:
            The successful response. Unless ``stream`` is set its body is already
            read and the response is closed.
        """
        policy = self.policy if request.replayable else replace(self.policy, max_attempts=1)
        start = self._clock()
        attempts = 0
        cause: Optional[TransferError] = None
        while True:
            if attempts > 0:
                elapsed = self._clock() - start
                if policy.is_exhausted(attempts, elapsed):
                    log_with_context(
                        self._logger,
                        logging.WARNING,
                        "transfer retry budget exhausted",
                        method=request.method,
                        attempts=attempts,
                        elapsed=round(elapsed, 3),
                        cause=cause,
                    )
                    raise RetryBudgetExhaustedError(attempts, elapsed, cause) from cause
                self._backoff(policy.delay_for(attempts))

            attempts += 1
            outcome = self._attempt(request, stream=stream)
            if outcome.kind is OutcomeKind.SUCCESS:
                return outcome.response  # type: ignore[return-value]
            if outcome.kind is OutcomeKind.FATAL:
                raise outcome.cause  # type: ignore[misc]
            cause = outcome.cause
            self._logger.debug("transfer attempt %d of %s failed: %s", attempts, request.method, cause)

    def _attempt(self, request: "TransferRequest", *, stream: bool) -> AttemptOutcome:
        response: Optional[httpx.Response] = None
        reader = None
        keep_open = False
        try:
            http_request, reader = request.build(self._client, self._chunk_size)
            response = self._client.send(http_request, stream=True)
            outcome = classify_response(response)
            if outcome.kind is OutcomeKind.SUCCESS:
                if stream:
                    keep_open = True
                else:
                    response.read()
            return outcome
        except StreamConsumedError as exc:
            return AttemptOutcome.fatal(exc)
        except Exception as exc:  # noqa: BLE001
            error = TransientServiceError(f"Error sending request: {exc}")
            error.__cause__ = exc
            return AttemptOutcome.retryable(error)
        finally:
            if response is not None and not keep_open:
                response.close()
            if reader is not None:
                reader.close()

    def _backoff(self, delay: float) -> None:
        if self._interrupt is None:
            self._sleep(delay)
            return
        if self._interrupt.wait(delay):
            msg = "transfer was interrupted while waiting to retry"
            raise TransferInterruptedError(msg)
