"""sqlstage: staged batch inserts and resilient stage transfers for analytical databases."""

from sqlstage import batch, exceptions, stage, transfer, typing, utils
from sqlstage.__metadata__ import __version__
from sqlstage.batch import BatchAccumulator, BatchInsertOrchestrator, BatchInsertTemplate, PreparedBatchStatement
from sqlstage.config import RetryPolicy, StageConfig
from sqlstage.exceptions import (
    BatchExecutionError,
    SQLStageError,
    StageTransferError,
    TransferError,
    UnauthorizedError,
)
from sqlstage.protocols import PlaceholderBinderProtocol, SQLExecutorProtocol
from sqlstage.session import StageSession
from sqlstage.stage import StageAttachment, StagedFile, StageFileTransfer
from sqlstage.transfer import FileBody, RetryingTransport, StageTransferClient, StreamingBody

__all__ = (
    "BatchAccumulator",
    "BatchExecutionError",
    "BatchInsertOrchestrator",
    "BatchInsertTemplate",
    "FileBody",
    "PlaceholderBinderProtocol",
    "PreparedBatchStatement",
    "RetryPolicy",
    "RetryingTransport",
    "SQLExecutorProtocol",
    "SQLStageError",
    "StageAttachment",
    "StageConfig",
    "StageFileTransfer",
    "StageSession",
    "StageTransferClient",
    "StageTransferError",
    "StagedFile",
    "StreamingBody",
    "TransferError",
    "UnauthorizedError",
    "__version__",
    "batch",
    "exceptions",
    "stage",
    "transfer",
    "typing",
    "utils",
)
