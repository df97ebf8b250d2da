from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import IO, TYPE_CHECKING, Optional

from sqlstage.transfer._body import iter_body_chunks

if TYPE_CHECKING:
    import httpx

    from sqlstage.transfer._body import RequestBody

__all__ = ("TransferRequest",)


@dataclass(frozen=True)
class TransferRequest:
    """Immutable description of one HTTP interaction.

    A fresh :class:`httpx.Request` is built from it for every attempt. When
    ``multipart_field`` is set the body is sent as the single file part of a
    multipart form, otherwise it is streamed as the raw request content.
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: "Optional[RequestBody]" = None
    multipart_field: Optional[str] = None
    file_name: Optional[str] = None

    @property
    def replayable(self) -> bool:
        return self.body is None or self.body.replayable

    def build(self, client: "httpx.Client", chunk_size: int) -> "tuple[httpx.Request, Optional[IO[bytes]]]":
        """Build the request for one attempt.

        Returns:
            The request and the body reader opened for it, which the caller closes
            once the attempt is over.
        """
        headers = dict(self.headers)
        if self.body is None:
            return client.build_request(self.method, self.url, headers=headers), None

        reader = self.body.open()
        if self.multipart_field is not None:
            files = {self.multipart_field: (self.file_name or "upload", reader, self.body.content_type)}
            return client.build_request(self.method, self.url, headers=headers, files=files), reader

        length = self.body.content_length
        if length is not None and not _has_header(headers, "content-length"):
            headers["Content-Length"] = str(length)
        request = client.build_request(
            self.method, self.url, headers=headers, content=iter_body_chunks(reader, chunk_size)
        )
        return request, reader


def _has_header(headers: Mapping[str, str], name: str) -> bool:
    return any(key.lower() == name for key in headers)
