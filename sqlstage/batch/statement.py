"""Prepared statement surface for staged batch inserts."""

from typing import TYPE_CHECKING, Any, Optional

from sqlstage.batch._literals import format_literal
from sqlstage.batch._template import BatchInsertTemplate
from sqlstage.batch.accumulator import BatchAccumulator
from sqlstage.exceptions import SQLStageError

if TYPE_CHECKING:
    from types import TracebackType

    from sqlstage.batch.orchestrator import BatchInsertOrchestrator
    from sqlstage.typing import ColumnLiteral

__all__ = ("PreparedBatchStatement",)


class PreparedBatchStatement:
    """A prepared statement that buffers rows and inserts them through a stage.

    Example:
        >>> with session.prepare("INSERT INTO t VALUES (?, ?)") as statement:
        ...     statement.set_value(1, 1)
        ...     statement.set_value(2, 2)
        ...     statement.add_batch()
        ...     statement.execute_batch()
        [1]
    """

    __slots__ = ("_accumulator", "_closed", "_orchestrator", "sql")

    def __init__(self, sql: str, orchestrator: "BatchInsertOrchestrator") -> None:
        self.sql = sql
        self._orchestrator = orchestrator
        self._accumulator = BatchAccumulator(BatchInsertTemplate.try_parse(sql))
        self._closed = False

    @property
    def is_batch_insert(self) -> bool:
        return self._accumulator.is_active

    @property
    def batch_size(self) -> int:
        return len(self._accumulator)

    @property
    def closed(self) -> bool:
        return self._closed

    def set_value(self, index: int, value: Any) -> None:
        """Bind a Python value to the 1-based placeholder ``index``."""
        self._check_open()
        self._accumulator.bind(index, format_literal(value))

    def bind_literal(self, index: int, literal: "ColumnLiteral") -> None:
        """Bind an already rendered literal to the 1-based placeholder ``index``."""
        self._check_open()
        self._accumulator.bind(index, literal)

    def add_batch(self) -> None:
        self._check_open()
        self._accumulator.add_bound_row()

    def clear_parameters(self) -> None:
        self._check_open()
        self._accumulator.reset_bindings()

    def clear_batch(self) -> None:
        self._check_open()
        self._accumulator.clear()

    def execute_batch(self) -> list[int]:
        """Insert every buffered row; see :meth:`BatchInsertOrchestrator.execute_batch`."""
        self._check_open()
        return self._orchestrator.execute_batch(self._accumulator, self.sql)

    def close(self) -> None:
        if not self._closed:
            self._accumulator.clear()
            self._closed = True

    def __enter__(self) -> "PreparedBatchStatement":
        return self

    def __exit__(
        self,
        exc_type: "Optional[type[BaseException]]",
        exc_val: "Optional[BaseException]",
        exc_tb: "Optional[TracebackType]",
    ) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            msg = "statement is closed"
            raise SQLStageError(msg)
