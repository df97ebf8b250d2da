"""HTTP client for moving files in and out of stages."""

import io
import logging
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

import httpx
from mypy_extensions import mypyc_attr

from sqlstage.config import StageConfig
from sqlstage.exceptions import StageOperation, StageTransferError, TransferError
from sqlstage.transfer._request import TransferRequest
from sqlstage.transfer._retry import RetryingTransport
from sqlstage.utils.logging import get_logger, log_with_context

if TYPE_CHECKING:
    import os

    from sqlstage.transfer._body import RequestBody

__all__ = ("ResponseStream", "StageTransferClient")


@mypyc_attr(allow_interpreted_subclasses=True)
class StageTransferClient:
    """Builds stage upload and download requests and runs them through a :class:`RetryingTransport`.

    Uploads go either to the server's stable upload endpoint as a multipart form,
    or straight to object storage through a presigned URL. Terminal upload
    failures are raised as :class:`StageTransferError`. Downloads surface
    transport errors unchanged and only wrap local write or stream failures.
    """

    __slots__ = ("_base_url", "_logger", "config", "transport")

    def __init__(
        self,
        client: httpx.Client,
        base_uri: str,
        config: Optional[StageConfig] = None,
        *,
        transport: Optional[RetryingTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config or StageConfig()
        self._base_url = httpx.URL(base_uri)
        self._logger = logger or get_logger("transfer.client")
        self.transport = transport or RetryingTransport(
            client, self.config.retry, chunk_size=self.config.chunk_size, logger=self._logger
        )

    @property
    def upload_url(self) -> str:
        return str(self._base_url.join(self.config.upload_path))

    def upload_to_stage(self, body: "RequestBody", stage_name: str, relative_path: str, file_name: str) -> None:
        """Upload ``body`` as ``<relative_path><file_name>`` in ``stage_name`` through the stable endpoint."""
        request = TransferRequest(
            method="PUT",
            url=self.upload_url,
            headers={"stage_name": stage_name, "relative_path": relative_path},
            body=body,
            multipart_field="upload",
            file_name=file_name,
        )
        self._logger.debug("uploading %s to stage %s at %s", file_name, stage_name, relative_path)
        try:
            self.transport.execute(request)
        except TransferError as exc:
            raise StageTransferError(str(exc), StageOperation.UPLOAD) from exc
        log_with_context(
            self._logger,
            logging.DEBUG,
            "stage upload complete",
            stage=stage_name,
            relative_path=relative_path,
            file_name=file_name,
            size=body.content_length,
        )

    def upload_presigned(
        self, body: "RequestBody", presigned_url: str, headers: Optional[Mapping[str, str]] = None
    ) -> None:
        """PUT ``body`` to a one-time presigned URL."""
        request = TransferRequest(method="PUT", url=presigned_url, headers=dict(headers or {}), body=body)
        try:
            self.transport.execute(request)
        except TransferError as exc:
            raise StageTransferError(str(exc), StageOperation.PRESIGNED_UPLOAD) from exc
        log_with_context(
            self._logger, logging.DEBUG, "presigned upload complete", size=body.content_length
        )

    def download_to_file(
        self,
        url: str,
        destination: "Union[str, os.PathLike[str]]",
        headers: Optional[Mapping[str, str]] = None,
    ) -> Path:
        """Stream the object at ``url`` into ``destination``.

        Returns:
            The destination path.
        """
        target = Path(destination)
        response = self.transport.execute(TransferRequest("GET", url, dict(headers or {})), stream=True)
        try:
            with target.open("wb") as sink:
                for chunk in response.iter_bytes(self.config.chunk_size):
                    sink.write(chunk)
        except (OSError, httpx.HTTPError) as exc:
            msg = f"writing {target} failed: {exc}"
            raise StageTransferError(msg, StageOperation.DOWNLOAD) from exc
        finally:
            response.close()
        log_with_context(self._logger, logging.DEBUG, "download complete", destination=str(target))
        return target

    def download_stream(self, url: str, headers: Optional[Mapping[str, str]] = None) -> "ResponseStream":
        """Return a readable stream over the object at ``url``.

        The caller owns the stream and must close it.
        """
        response = self.transport.execute(TransferRequest("GET", url, dict(headers or {})), stream=True)
        return ResponseStream(response, self.config.chunk_size)


class ResponseStream(io.RawIOBase):
    """Read-only file object over a streaming :class:`httpx.Response`.

    Closing the stream closes the response.
    """

    def __init__(self, response: httpx.Response, chunk_size: int) -> None:
        super().__init__()
        self.response = response
        self._chunks: Iterator[bytes] = response.iter_bytes(chunk_size)
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        view = memoryview(buffer).cast("B")
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
            except httpx.HTTPError as exc:
                msg = f"reading response stream failed: {exc}"
                raise StageTransferError(msg, StageOperation.DOWNLOAD) from exc
        size = min(len(view), len(self._pending))
        view[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size

    def close(self) -> None:
        if not self.closed:
            self.response.close()
        super().close()
