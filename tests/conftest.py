from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest

from sqlstage.config import RetryPolicy, StageConfig
from sqlstage.session import StageSession
from sqlstage.stage import StageAttachment
from sqlstage.transfer import RetryingTransport


BASE_URI = "http://localhost:8000"
PRESIGN_HOST = "https://storage.example.com"


class RecordingExecutor:
    """SQL executor double that records every statement it receives.

    ``PRESIGN`` statements are answered with a URL on ``PRESIGN_HOST`` unless a
    handler registered with :meth:`on` matches the statement first.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, StageAttachment | None]] = []
        self._handlers: list[tuple[str, Callable[[str, StageAttachment | None], Any]]] = []

    def on(self, prefix: str, result: Any) -> None:
        handler = result if callable(result) else (lambda _sql, _attachment: result)
        self._handlers.insert(0, (prefix.upper(), handler))

    @property
    def statements(self) -> list[str]:
        return [sql for sql, _ in self.calls]

    def statements_starting_with(self, prefix: str) -> list[str]:
        return [sql for sql in self.statements if sql.upper().startswith(prefix.upper())]

    def execute(self, sql: str, attachment: StageAttachment | None = None) -> Iterator[Any]:
        self.calls.append((sql, attachment))
        for prefix, handler in self._handlers:
            if sql.upper().startswith(prefix):
                result = handler(sql, attachment)
                if isinstance(result, BaseException):
                    raise result
                return iter(result)
        if sql.upper().startswith("PRESIGN"):
            location = sql.split(" ", 2)[2]
            path = location.split("/", 1)[1]
            return iter([("PUT", '{"x-amz-meta-origin": "sqlstage"}', f"{PRESIGN_HOST}/stage/{path}?sig=abc")])
        return iter([])


class StubServer:
    """``httpx.MockTransport`` handler playing both the server and object storage.

    Queued responses (or exceptions, or callables taking the request) are served
    first. Afterwards ``PUT`` stores the body under the URL path and ``GET``
    returns whatever was stored there.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.stored: dict[str, bytes] = {}
        self._queue: list[Any] = []

    def queue(self, *responses: Any) -> None:
        self._queue.extend(responses)

    def put_object(self, path: str, content: bytes) -> None:
        self.stored[path] = content

    @property
    def puts(self) -> list[httpx.Request]:
        return [request for request in self.requests if request.method == "PUT"]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._queue:
            scripted = self._queue.pop(0)
            if callable(scripted):
                scripted = scripted(request)
            if isinstance(scripted, BaseException):
                raise scripted
            return scripted
        if request.method == "PUT":
            self.stored[request.url.path] = request.content
            return httpx.Response(200)
        if request.url.path in self.stored:
            return httpx.Response(200, content=self.stored[request.url.path])
        return httpx.Response(404)


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def server() -> StubServer:
    return StubServer()


@pytest.fixture
def http_client(server: StubServer) -> Iterator[httpx.Client]:
    with httpx.Client(transport=httpx.MockTransport(server)) as client:
        yield client


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def transport(http_client: httpx.Client, sleeps: list[float]) -> RetryingTransport:
    return RetryingTransport(http_client, RetryPolicy(), sleep=sleeps.append)


@pytest.fixture
def stage_config(tmp_path: Path) -> StageConfig:
    return StageConfig(temp_dir=str(tmp_path))


@pytest.fixture
def session(
    executor: RecordingExecutor, http_client: httpx.Client, stage_config: StageConfig, sleeps: list[float]
) -> StageSession:
    return StageSession(executor, http_client, BASE_URI, stage_config, sleep=sleeps.append)
