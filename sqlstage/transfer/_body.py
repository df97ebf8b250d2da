"""Request payloads that are read lazily from a byte source.

Two kinds of body exist and the difference is part of the type:

- :class:`FileBody` re-opens its file for every attempt, so a request carrying it
  can be retried.
- :class:`StreamingBody` wraps a caller-owned stream that can only be read once;
  requests carrying it get exactly one attempt.
"""

import io
import os
from abc import ABC, abstractmethod
from collections.abc import Iterator
from pathlib import Path
from typing import IO, ClassVar, Optional, Union

from sqlstage.exceptions import StreamConsumedError, TransferError

__all__ = ("FileBody", "RequestBody", "StreamingBody", "iter_body_chunks")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class RequestBody(ABC):
    """A payload the retrying transport can send without buffering it."""

    __slots__ = ("content_type",)

    replayable: ClassVar[bool] = False

    def __init__(self, content_type: Optional[str] = None) -> None:
        self.content_type = content_type or DEFAULT_CONTENT_TYPE

    @property
    @abstractmethod
    def content_length(self) -> Optional[int]:
        """Declared length in bytes, or ``None`` when unknown (chunked transfer)."""

    @abstractmethod
    def open(self) -> IO[bytes]:
        """Return a reader positioned at the start of the payload for one attempt."""


class FileBody(RequestBody):
    """Body backed by a local file that is opened afresh for each attempt."""

    __slots__ = ("_size", "path")

    replayable: ClassVar[bool] = True

    def __init__(
        self, path: Union[str, "os.PathLike[str]"], size: Optional[int] = None, content_type: Optional[str] = None
    ) -> None:
        super().__init__(content_type)
        self.path = Path(path)
        self._size = size

    @property
    def content_length(self) -> Optional[int]:
        if self._size is not None:
            return self._size
        try:
            return self.path.stat().st_size
        except OSError:
            return None

    def open(self) -> IO[bytes]:
        return self.path.open("rb")

    def __repr__(self) -> str:
        return f"FileBody(path={str(self.path)!r})"


class StreamingBody(RequestBody):
    """Body backed by a readable stream owned by the caller.

    When ``size`` is not given the declared length falls back to the bytes
    currently available in the source: a seekable source reports what remains
    after its current position, anything else (or an empty remainder) reports an
    unknown length. Callers that know the true length should pass it.
    """

    __slots__ = ("_consumed", "_size", "source")

    replayable: ClassVar[bool] = False

    def __init__(self, source: IO[bytes], size: Optional[int] = None, content_type: Optional[str] = None) -> None:
        if source is None:
            msg = "source stream is required"
            raise TypeError(msg)
        super().__init__(content_type)
        self.source = source
        self._size = size
        self._consumed = False

    @property
    def content_length(self) -> Optional[int]:
        if self._size is not None:
            return self._size
        return _available_bytes(self.source)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def open(self) -> IO[bytes]:
        """Return a forward-only reader starting at the source's current position."""
        if self._consumed:
            msg = "streaming request body was already consumed and cannot be re-read"
            raise StreamConsumedError(msg)
        self._consumed = True
        return _ForwardReader(self.source)  # type: ignore[return-value]

    def __repr__(self) -> str:
        return f"StreamingBody(source={self.source!r}, size={self._size!r})"


class _ForwardReader(io.RawIOBase):
    """Non-seekable view of a stream; closing it closes the stream."""

    def __init__(self, source: IO[bytes]) -> None:
        super().__init__()
        self._source = source

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: "bytearray | memoryview") -> int:
        data = self._source.read(len(buffer))
        size = len(data)
        buffer[:size] = data
        return size

    def close(self) -> None:
        if not self.closed:
            self._source.close()
        super().close()


def _available_bytes(source: IO[bytes]) -> Optional[int]:
    try:
        if not source.seekable():
            return None
        position = source.tell()
        end = source.seek(0, io.SEEK_END)
        source.seek(position)
    except (AttributeError, OSError, ValueError):
        return None
    remaining = end - position
    return remaining if remaining > 0 else None


def iter_body_chunks(reader: IO[bytes], chunk_size: int) -> Iterator[bytes]:
    """Copy ``reader`` out in chunks and close it once the copy ends.

    Raises:
        TransferError: If reading the source fails.
    """
    try:
        while True:
            chunk = reader.read(chunk_size)
            if not chunk:
                break
            yield chunk
    except OSError as exc:
        msg = f"writing request body failed: {exc}"
        raise TransferError(msg) from exc
    finally:
        reader.close()
