"""Row buffering for batch inserts."""

import csv
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from sqlstage.exceptions import ParameterError, SQLStageError, wrap_local_io

if TYPE_CHECKING:
    from sqlstage.protocols import PlaceholderBinderProtocol
    from sqlstage.typing import ColumnLiteral, Row

__all__ = ("BatchAccumulator",)

BATCH_FILE_PREFIX = "sqlstage_batch_"
BATCH_FILE_SUFFIX = ".csv"


class BatchAccumulator:
    """Buffers rows for one statement until the batch is executed.

    Without a binder, or with one that does not describe an INSERT template, the
    accumulator is inert: binds and appends are ignored and it never holds rows.
    """

    __slots__ = ("_binder", "_rows", "_width")

    def __init__(self, binder: "Optional[PlaceholderBinderProtocol]" = None) -> None:
        self._binder = binder
        self._rows: list[Row] = []
        self._width: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self._binder is not None and self._binder.is_insert_template

    @property
    def sql(self) -> str:
        """The INSERT statement the buffered rows are staged for."""
        if self._binder is None or not self.is_active:
            msg = "statement is not a batch insert"
            raise SQLStageError(msg)
        return self._binder.sql

    def bind(self, index: int, literal: "ColumnLiteral") -> None:
        if self._binder is not None and self.is_active:
            self._binder.bind(index, literal)

    def reset_bindings(self) -> None:
        if self._binder is not None:
            self._binder.reset()

    def append(self, row: "Sequence[ColumnLiteral]") -> None:
        """Append one row of literals. Rows must all have the same width."""
        if not self.is_active:
            return
        frozen = tuple(row)
        if self._width is not None and len(frozen) != self._width:
            msg = f"Row has {len(frozen)} values, expected {self._width}"
            raise ParameterError(msg)
        self._width = len(frozen)
        self._rows.append(frozen)

    def add_bound_row(self) -> None:
        """Append the binder's current values as a row and reset the bindings."""
        if self._binder is None or not self.is_active:
            return
        self.append(self._binder.current_values())
        self._binder.reset()

    def clear(self) -> None:
        """Discard every buffered row and the active bindings."""
        self._rows.clear()
        self._width = None
        self.reset_bindings()

    def snapshot(self) -> "tuple[Row, ...]":
        return tuple(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def write_csv(self, directory: Optional[str] = None, null_literal: str = "\\N") -> Path:
        """Write the buffered rows to a new temporary CSV file.

        Values are written as-is, comma separated, one row per ``\\n`` terminated
        line; fields holding a delimiter, quote or line break are quoted. The
        caller owns and deletes the file.

        Raises:
            LocalIOError: If the file cannot be created or written.
        """
        with wrap_local_io("writing batch file"):
            fd, name = tempfile.mkstemp(prefix=BATCH_FILE_PREFIX, suffix=BATCH_FILE_SUFFIX, dir=directory)
            path = Path(name)
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                    writer = csv.writer(handle, lineterminator="\n")
                    for row in self._rows:
                        writer.writerow(null_literal if value is None else value for value in row)
            except BaseException:
                path.unlink(missing_ok=True)
                raise
        return path
