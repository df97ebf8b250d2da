"""Stage object naming and stage-level file transfer.

Staged objects live under a timestamp-and-UUID prefix so concurrent uploads never
collide, e.g. ``2024/3/7/14/5/9/<uuid>/batch.csv`` inside the user stage ``~``.
"""

import gzip
import logging
import os
import shutil
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Optional, Union
from uuid import uuid4

from sqlstage.config import StageConfig
from sqlstage.exceptions import (
    ServerError,
    SQLStageError,
    StageOperation,
    StageTransferError,
    wrap_local_io,
)
from sqlstage.transfer import FileBody, StreamingBody
from sqlstage.utils.logging import get_logger, log_with_context
from sqlstage.utils.serializers import SerializationError, from_json

if TYPE_CHECKING:
    from sqlstage.protocols import SQLExecutorProtocol
    from sqlstage.transfer import RequestBody, StageTransferClient

__all__ = (
    "PresignedRequest",
    "StageAttachment",
    "StageFileTransfer",
    "StagedFile",
    "build_stage_prefix",
)

GZIP_SUFFIX = ".gz"


@dataclass(frozen=True)
class StageAttachment:
    """Reference telling the server to source an INSERT from a staged object."""

    location: str
    file_format_options: Optional[Mapping[str, str]] = None
    copy_options: Optional[Mapping[str, str]] = None


def build_stage_prefix(now: Optional[datetime] = None, unique_id: Optional[str] = None) -> str:
    """Return a ``Y/M/D/H/M/S/<uuid>/`` prefix; date parts are not zero padded."""
    now = now or datetime.now()
    unique_id = unique_id or str(uuid4())
    return f"{now.year}/{now.month}/{now.day}/{now.hour}/{now.minute}/{now.second}/{unique_id}/"


@dataclass(frozen=True)
class StagedFile:
    """A remote object inside a stage."""

    file_name: str
    prefix: str = ""
    stage: str = "~"

    @classmethod
    def create(cls, file_name: str, stage: str = "~", now: Optional[datetime] = None) -> "StagedFile":
        """Name a new object under a collision-resistant prefix."""
        return cls(file_name=file_name, prefix=build_stage_prefix(now), stage=stage)

    @property
    def relative_path(self) -> str:
        return f"{self.prefix}{self.file_name}"

    @property
    def location(self) -> str:
        return f"@{self.stage}/{self.relative_path}"

    def attachment(self, **options: Any) -> StageAttachment:
        return StageAttachment(location=self.location, **options)


@dataclass(frozen=True)
class PresignedRequest:
    """Method, headers and URL returned by a ``PRESIGN`` statement."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Any) -> "PresignedRequest":
        method, headers, url = row[0], row[1], row[2]
        if isinstance(headers, (str, bytes)):
            headers = from_json(headers) if headers else {}
        if not isinstance(headers, Mapping):
            msg = f"unexpected presign headers value: {headers!r}"
            raise StageTransferError(msg, StageOperation.PRESIGN)
        return cls(method=str(method), url=str(url), headers={str(k): str(v) for k, v in headers.items()})


class StageFileTransfer:
    """Moves files between local storage and stages.

    Uploads ask the server for a presigned URL (``PRESIGN UPLOAD``) unless
    ``presigned_url_disabled`` is set, in which case they go through the stable
    multipart endpoint. Downloads always go through ``PRESIGN DOWNLOAD``.
    """

    __slots__ = ("_logger", "client", "config", "executor")

    def __init__(
        self,
        executor: "SQLExecutorProtocol",
        client: "StageTransferClient",
        config: Optional[StageConfig] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.executor = executor
        self.client = client
        self.config = config or client.config
        self._logger = logger or get_logger("stage")

    def presign(self, action: str, location: str) -> PresignedRequest:
        """Run ``PRESIGN <action> <location>`` and return the first row."""
        sql = f"PRESIGN {action.upper()} {location}"
        try:
            rows = iter(self.executor.execute(sql))
            row = next(rows, None)
            for _ in rows:
                pass
        except SQLStageError as exc:
            raise StageTransferError(f"{sql}: {exc}", StageOperation.PRESIGN) from exc
        if row is None:
            msg = f"{sql} returned no rows"
            raise StageTransferError(msg, StageOperation.PRESIGN)
        try:
            return PresignedRequest.from_row(row)
        except SerializationError as exc:
            raise StageTransferError(f"{sql}: {exc}", StageOperation.PRESIGN) from exc

    def upload(self, staged: StagedFile, body: "RequestBody") -> StageAttachment:
        """Upload ``body`` as ``staged`` and return the attachment referencing it."""
        if self.config.presigned_url_disabled:
            self.client.upload_to_stage(body, staged.stage, staged.prefix, staged.file_name)
        else:
            presigned = self.presign("UPLOAD", staged.location)
            self.client.upload_presigned(body, presigned.url, presigned.headers)
        return staged.attachment()

    def upload_stream(
        self,
        stage_name: Optional[str],
        dest_prefix: str,
        source: IO[bytes],
        dest_file_name: str,
        compress: bool = False,
        size: Optional[int] = None,
    ) -> StagedFile:
        """Upload a readable stream as one object with no split.

        The stream is read once; it is closed when the upload finishes. With
        ``compress`` the data is gzipped to a temporary file first, which also
        makes the upload retryable, and ``.gz`` is appended to the file name.
        """
        stage = stage_name or self.config.default_stage
        prefix = _normalize_prefix(dest_prefix)
        if not compress:
            staged = StagedFile(file_name=dest_file_name, prefix=prefix, stage=stage)
            try:
                self.upload(staged, StreamingBody(source, size=size))
            finally:
                source.close()
            return staged

        file_name = dest_file_name if dest_file_name.endswith(GZIP_SUFFIX) else f"{dest_file_name}{GZIP_SUFFIX}"
        staged = StagedFile(file_name=file_name, prefix=prefix, stage=stage)
        compressed = self._compress_to_file(source)
        try:
            self.upload(staged, FileBody(compressed))
        finally:
            _discard(compressed, self._logger)
        return staged

    def upload_file(
        self,
        path: "Union[str, os.PathLike[str]]",
        stage_name: Optional[str] = None,
        dest_prefix: Optional[str] = None,
        dest_file_name: Optional[str] = None,
    ) -> StagedFile:
        """Upload a local file. Without ``dest_prefix`` a fresh collision-resistant prefix is used."""
        local = Path(path)
        stage = stage_name or self.config.default_stage
        file_name = dest_file_name or local.name
        if dest_prefix is None:
            staged = StagedFile.create(file_name, stage=stage)
        else:
            staged = StagedFile(file_name=file_name, prefix=_normalize_prefix(dest_prefix), stage=stage)
        self.upload(staged, FileBody(local))
        return staged

    def download_stream(self, stage_name: Optional[str], source_file_name: str, decompress: bool = False) -> IO[bytes]:
        """Return a stream over a staged object; the caller must close it."""
        presigned = self.presign("DOWNLOAD", _location(stage_name or self.config.default_stage, source_file_name))
        stream = self.client.download_stream(presigned.url, presigned.headers)
        if decompress:
            return _DecompressingStream(stream)  # type: ignore[return-value]
        return stream  # type: ignore[return-value]

    def download_file(
        self,
        stage_name: Optional[str],
        source_file_name: str,
        destination: "Union[str, os.PathLike[str]]",
    ) -> Path:
        """Download a staged object into ``destination``."""
        presigned = self.presign("DOWNLOAD", _location(stage_name or self.config.default_stage, source_file_name))
        return self.client.download_to_file(presigned.url, destination, presigned.headers)

    def remove(self, location: str) -> bool:
        """Remove a staged object, best effort.

        Returns ``True`` when the object is gone, including when the server
        reports it was not found. Any other failure is logged and reported as
        ``False``; it is never raised.
        """
        sql = f"REMOVE {location}"
        try:
            for _ in self.executor.execute(sql):
                pass
        except ServerError as exc:
            if exc.is_not_found:
                log_with_context(self._logger, logging.DEBUG, "staged object already absent", location=location)
                return True
            log_with_context(
                self._logger, logging.WARNING, "staged object cleanup failed", location=location, error=exc
            )
            return False
        except Exception as exc:  # noqa: BLE001
            log_with_context(
                self._logger, logging.WARNING, "staged object cleanup failed", location=location, error=exc
            )
            return False
        log_with_context(self._logger, logging.DEBUG, "staged object removed", location=location)
        return True

    def _compress_to_file(self, source: IO[bytes]) -> Path:
        with wrap_local_io("compressing upload stream"):
            fd, name = tempfile.mkstemp(prefix="sqlstage_upload_", suffix=GZIP_SUFFIX, dir=self.config.temp_dir)
            try:
                with os.fdopen(fd, "wb") as raw, gzip.GzipFile(fileobj=raw, mode="wb") as compressed:
                    shutil.copyfileobj(source, compressed, self.config.chunk_size)
            except BaseException:
                _discard(Path(name), self._logger)
                raise
            finally:
                source.close()
        return Path(name)


class _DecompressingStream(gzip.GzipFile):
    """Gzip reader that also closes the underlying response stream."""

    def __init__(self, stream: IO[bytes]) -> None:
        super().__init__(fileobj=stream, mode="rb")
        self._source = stream

    def close(self) -> None:
        try:
            super().close()
        finally:
            stream = getattr(self, "_source", None)
            if stream is not None:
                stream.close()


def _normalize_prefix(prefix: str) -> str:
    prefix = prefix.strip("/")
    return f"{prefix}/" if prefix else ""


def _location(stage: str, file_name: str) -> str:
    return f"@{stage}/{file_name.lstrip('/')}"


def _discard(path: Path, logger: logging.Logger) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("could not delete temporary file %s: %s", path, exc)
