from collections.abc import Iterable, Sequence
from typing import Any, Callable, Optional

from typing_extensions import TypeAlias

__all__ = ("Clock", "ColumnLiteral", "Row", "RowCursor", "Sleeper")

ColumnLiteral: TypeAlias = Optional[str]
"""A column value already rendered into its wire text, or ``None`` for SQL NULL."""

Row: TypeAlias = tuple[Optional[str], ...]
"""One buffered row: column literals in placeholder order."""

RowCursor: TypeAlias = Iterable[Sequence[Any]]
"""Rows returned by a SQL executor; drained to completion by callers."""

Clock: TypeAlias = Callable[[], float]
Sleeper: TypeAlias = Callable[[float], None]
