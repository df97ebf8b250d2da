"""Stage transfer layer: retrying HTTP execution, streaming bodies and the transfer client."""

from sqlstage.transfer._body import FileBody, RequestBody, StreamingBody
from sqlstage.transfer._request import TransferRequest
from sqlstage.transfer._retry import AttemptOutcome, OutcomeKind, RetryingTransport, classify_response
from sqlstage.transfer.client import ResponseStream, StageTransferClient

__all__ = (
    "AttemptOutcome",
    "FileBody",
    "OutcomeKind",
    "RequestBody",
    "ResponseStream",
    "RetryingTransport",
    "StageTransferClient",
    "StreamingBody",
    "TransferRequest",
    "classify_response",
)
