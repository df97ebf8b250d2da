"""Tests for the bounded-retry transport."""

import io
import itertools
import threading
from pathlib import Path

import httpx
import pytest

from sqlstage.config import RetryPolicy
from sqlstage.exceptions import (
    RequestError,
    RetryBudgetExhaustedError,
    TransferInterruptedError,
    TransientServiceError,
    UnauthorizedError,
)
from sqlstage.transfer import (
    FileBody,
    OutcomeKind,
    RetryingTransport,
    StreamingBody,
    TransferRequest,
    classify_response,
)

URL = "https://storage.example.com/object"


@pytest.mark.parametrize(
    ("status", "kind", "error_type"),
    [
        (200, OutcomeKind.SUCCESS, None),
        (204, OutcomeKind.SUCCESS, None),
        (401, OutcomeKind.FATAL, UnauthorizedError),
        (503, OutcomeKind.RETRYABLE, TransientServiceError),
        (504, OutcomeKind.RETRYABLE, TransientServiceError),
        (500, OutcomeKind.RETRYABLE, RequestError),
        (404, OutcomeKind.RETRYABLE, RequestError),
        (302, OutcomeKind.RETRYABLE, RequestError),
    ],
)
def test_classify_response(status, kind, error_type) -> None:
    outcome = classify_response(httpx.Response(status))

    assert outcome.kind is kind
    if error_type is None:
        assert outcome.cause is None
        assert outcome.response is not None
    else:
        assert isinstance(outcome.cause, error_type)


def test_success_on_first_attempt_does_not_sleep(transport, server, sleeps) -> None:
    server.queue(httpx.Response(200, content=b"payload"))

    response = transport.execute(TransferRequest("GET", URL))

    assert response.content == b"payload"
    assert len(server.requests) == 1
    assert sleeps == []


def test_transient_failures_are_retried_with_increasing_backoff(transport, server, sleeps) -> None:
    server.queue(httpx.Response(503), httpx.Response(503), httpx.Response(200, content=b"third"))

    response = transport.execute(TransferRequest("GET", URL))

    assert response.content == b"third"
    assert len(server.requests) == 3
    assert sleeps == pytest.approx([0.1, 0.2])
    assert sleeps[0] < sleeps[1]


def test_unauthorized_is_never_retried(transport, server, sleeps) -> None:
    server.queue(httpx.Response(401))

    with pytest.raises(UnauthorizedError):
        transport.execute(TransferRequest("GET", URL))

    assert len(server.requests) == 1
    assert sleeps == []


def test_attempt_ceiling_raises_budget_exhausted(transport, server, sleeps) -> None:
    server.queue(*(httpx.Response(500) for _ in range(10)))

    with pytest.raises(RetryBudgetExhaustedError) as exc_info:
        transport.execute(TransferRequest("GET", URL))

    error = exc_info.value
    assert error.attempts == 5
    assert len(server.requests) == 5
    assert sleeps == pytest.approx([0.1, 0.2, 0.3, 0.4])
    assert isinstance(error.last_cause, RequestError)
    assert error.last_cause.status_code == 500
    assert error.__cause__ is error.last_cause
    assert "attempts: 5" in str(error)


def test_service_unavailable_until_exhausted_keeps_transient_cause(transport, server) -> None:
    server.queue(*(httpx.Response(503) for _ in range(5)))

    with pytest.raises(RetryBudgetExhaustedError) as exc_info:
        transport.execute(TransferRequest("GET", URL))

    assert isinstance(exc_info.value.last_cause, TransientServiceError)
    assert exc_info.value.last_cause.status_code == 503


def test_elapsed_ceiling_stops_before_attempt_ceiling(http_client, server, sleeps) -> None:
    ticks = itertools.count(0, 100)
    transport = RetryingTransport(
        http_client, RetryPolicy(max_elapsed=150), clock=lambda: next(ticks), sleep=sleeps.append
    )
    server.queue(*(httpx.Response(503) for _ in range(5)))

    with pytest.raises(RetryBudgetExhaustedError) as exc_info:
        transport.execute(TransferRequest("GET", URL))

    assert exc_info.value.attempts == 2
    assert exc_info.value.elapsed == 200
    assert len(server.requests) == 2
    assert sleeps == pytest.approx([0.1])


def test_send_errors_are_retried(transport, server, sleeps) -> None:
    def refuse(request: httpx.Request) -> Exception:
        return httpx.ConnectError("connection refused", request=request)

    server.queue(refuse, httpx.Response(200, content=b"ok"))

    response = transport.execute(TransferRequest("GET", URL))

    assert response.content == b"ok"
    assert len(server.requests) == 2
    assert sleeps == pytest.approx([0.1])


def test_send_error_becomes_transient_cause(transport, server) -> None:
    def refuse(request: httpx.Request) -> Exception:
        return httpx.ConnectError("connection refused", request=request)

    server.queue(*(refuse for _ in range(5)))

    with pytest.raises(RetryBudgetExhaustedError) as exc_info:
        transport.execute(TransferRequest("GET", URL))

    cause = exc_info.value.last_cause
    assert isinstance(cause, TransientServiceError)
    assert isinstance(cause.__cause__, httpx.ConnectError)


def test_one_shot_body_gets_a_single_attempt(transport, server, sleeps) -> None:
    server.queue(httpx.Response(503), httpx.Response(200))
    body = StreamingBody(io.BytesIO(b"once"))

    with pytest.raises(RetryBudgetExhaustedError) as exc_info:
        transport.execute(TransferRequest("PUT", URL, body=body))

    assert exc_info.value.attempts == 1
    assert len(server.requests) == 1
    assert sleeps == []
    assert body.consumed
    assert transport.policy.max_attempts == 5


def test_file_body_is_resent_on_retry(transport, server, tmp_path: Path) -> None:
    source = tmp_path / "rows.csv"
    source.write_bytes(b"1,2\n3,4\n")
    server.queue(httpx.Response(503), httpx.Response(200))

    transport.execute(TransferRequest("PUT", URL, body=FileBody(source)))

    assert [request.content for request in server.requests] == [b"1,2\n3,4\n", b"1,2\n3,4\n"]


def test_interrupt_aborts_backoff(http_client, server, sleeps) -> None:
    interrupt = threading.Event()
    interrupt.set()
    transport = RetryingTransport(http_client, sleep=sleeps.append, interrupt=interrupt)
    server.queue(httpx.Response(503), httpx.Response(200))

    with pytest.raises(TransferInterruptedError):
        transport.execute(TransferRequest("GET", URL))

    assert len(server.requests) == 1
    assert sleeps == []


def test_stream_leaves_successful_response_open(transport, server) -> None:
    server.queue(httpx.Response(200, stream=httpx.ByteStream(b"streamed")))

    response = transport.execute(TransferRequest("GET", URL), stream=True)
    try:
        assert not response.is_closed
        assert b"".join(response.iter_bytes()) == b"streamed"
    finally:
        response.close()


def test_configured_attempt_ceiling_is_honored(http_client, server, sleeps) -> None:
    transport = RetryingTransport(http_client, RetryPolicy(max_attempts=2), sleep=sleeps.append)
    server.queue(*(httpx.Response(503) for _ in range(5)))

    with pytest.raises(RetryBudgetExhaustedError) as exc_info:
        transport.execute(TransferRequest("GET", URL))

    assert exc_info.value.attempts == 2
    assert sleeps == pytest.approx([0.1])
    assert transport.policy.max_attempts == 2
