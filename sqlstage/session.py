"""Entry point wiring a SQL executor and an HTTP client into stage transfers and batch statements."""

import logging
import threading
from typing import IO, TYPE_CHECKING, Optional, Union

import httpx

from sqlstage.batch import BatchInsertOrchestrator, PreparedBatchStatement
from sqlstage.config import StageConfig
from sqlstage.stage import StagedFile, StageFileTransfer
from sqlstage.transfer import RetryingTransport, StageTransferClient

if TYPE_CHECKING:
    import os
    from pathlib import Path

    from sqlstage.protocols import SQLExecutorProtocol
    from sqlstage.typing import Clock, Sleeper

__all__ = ("StageSession",)


class StageSession:
    """Stage transfers and staged batch inserts for one server connection.

    Args:
        executor: Runs SQL statements (``PRESIGN``, ``REMOVE`` and attached inserts).
        http_client: Client used for every upload and download; authentication is
            configured on it by the caller.
        base_uri: Server base URI used to reach the stable upload endpoint.
        config: Stage settings; defaults to :class:`StageConfig`.
        clock: Monotonic clock for retry budgets.
        sleep: Backoff sleep function.
        interrupt: Event that aborts a transfer waiting to retry.
        logger: Logger used by every component of the session.
    """

    __slots__ = ("config", "executor", "orchestrator", "stage_transfer", "transfer_client")

    def __init__(
        self,
        executor: "SQLExecutorProtocol",
        http_client: httpx.Client,
        base_uri: str,
        config: Optional[StageConfig] = None,
        *,
        clock: "Optional[Clock]" = None,
        sleep: "Optional[Sleeper]" = None,
        interrupt: Optional[threading.Event] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config or StageConfig()
        self.executor = executor
        transport = RetryingTransport(
            http_client,
            self.config.retry,
            clock=clock,
            sleep=sleep,
            interrupt=interrupt,
            chunk_size=self.config.chunk_size,
            logger=logger,
        )
        self.transfer_client = StageTransferClient(
            http_client, base_uri, self.config, transport=transport, logger=logger
        )
        self.stage_transfer = StageFileTransfer(executor, self.transfer_client, self.config, logger=logger)
        self.orchestrator = BatchInsertOrchestrator(executor, self.stage_transfer, self.config, logger=logger)

    def prepare(self, sql: str) -> PreparedBatchStatement:
        """Prepare ``sql`` for batched execution."""
        return PreparedBatchStatement(sql, self.orchestrator)

    def upload_stream(
        self,
        stage_name: Optional[str],
        dest_prefix: str,
        source: IO[bytes],
        dest_file_name: str,
        compress: bool = False,
        size: Optional[int] = None,
    ) -> StagedFile:
        return self.stage_transfer.upload_stream(stage_name, dest_prefix, source, dest_file_name, compress, size)

    def download_stream(self, stage_name: Optional[str], source_file_name: str, decompress: bool = False) -> IO[bytes]:
        return self.stage_transfer.download_stream(stage_name, source_file_name, decompress)

    def download_file(
        self,
        stage_name: Optional[str],
        source_file_name: str,
        destination: "Union[str, os.PathLike[str]]",
    ) -> "Path":
        return self.stage_transfer.download_file(stage_name, source_file_name, destination)
