"""End-to-end batch insert through a staged file."""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from sqlstage.config import StageConfig
from sqlstage.exceptions import BatchExecutionError, SQLStageError
from sqlstage.stage import StagedFile
from sqlstage.transfer import FileBody
from sqlstage.utils.logging import get_logger, log_with_context

if TYPE_CHECKING:
    from sqlstage.batch.accumulator import BatchAccumulator
    from sqlstage.protocols import SQLExecutorProtocol
    from sqlstage.stage import StageAttachment, StageFileTransfer
    from sqlstage.typing import RowCursor

__all__ = ("BatchInsertOrchestrator",)


class BatchInsertOrchestrator:
    """Runs a buffered batch as serialize, upload, attached INSERT and cleanup.

    Each :meth:`execute_batch` call uploads at most one object and always tries
    to remove it before returning, whether the insert succeeded or not. Cleanup
    failures are logged, never raised.
    """

    __slots__ = ("_logger", "config", "executor", "transfer")

    def __init__(
        self,
        executor: "SQLExecutorProtocol",
        transfer: "StageFileTransfer",
        config: Optional[StageConfig] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.executor = executor
        self.transfer = transfer
        self.config = config or transfer.config
        self._logger = logger or get_logger("batch")

    def execute_batch(self, accumulator: "BatchAccumulator", original_sql: str) -> list[int]:
        """Execute the buffered rows of ``accumulator`` and empty it.

        When the statement is not a batch insert, or no rows were added, the
        original SQL is executed once as-is and no file is staged.

        Raises:
            BatchExecutionError: Serializing, uploading or executing failed.

        Returns:
            One update count per buffered row, each ``1``.
        """
        rows = accumulator.snapshot()
        try:
            if not accumulator.is_active or not rows:
                self._drain(original_sql)
                return [0] * len(rows)

            local_path = accumulator.write_csv(self.config.temp_dir, self.config.null_literal)
            staged = StagedFile.create(local_path.name, stage=self.config.default_stage)
            try:
                attachment = self._upload(staged, local_path)
                self._drain(accumulator.sql, attachment)
            finally:
                self.drop_stage_attachment(staged.attachment())
        finally:
            accumulator.clear()

        log_with_context(self._logger, logging.DEBUG, "batch insert complete", rows=len(rows), location=staged.location)
        return [1] * len(rows)

    def drop_stage_attachment(self, attachment: "Optional[StageAttachment]") -> bool:
        """Remove the staged object behind ``attachment``.

        Returns:
            ``True`` when the object is gone or was never there, ``False`` when
            removal failed.
        """
        if attachment is None:
            return True
        return self.transfer.remove(attachment.location)

    def _upload(self, staged: StagedFile, local_path: Path) -> "StageAttachment":
        try:
            return self.transfer.upload(staged, FileBody(local_path))
        except SQLStageError as exc:
            msg = f"uploading batch to {staged.location} failed: {exc}"
            raise BatchExecutionError(msg) from exc
        finally:
            self._discard_local(local_path)

    def _drain(self, sql: str, attachment: "Optional[StageAttachment]" = None) -> None:
        try:
            cursor: RowCursor = self.executor.execute(sql, attachment)
            for _ in cursor:
                pass
        except Exception as exc:
            msg = f"executing batch statement failed: {exc}"
            raise BatchExecutionError(msg) from exc

    def _discard_local(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            self._logger.warning("could not delete local batch file %s: %s", path, exc)
