"""Decomposition of ``INSERT ... VALUES`` statements into a staged-insert template."""

import re
from typing import Optional

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError

from sqlstage.exceptions import MissingParameterError, ParameterError
from sqlstage.typing import ColumnLiteral, Row

__all__ = ("BatchInsertTemplate",)

_INSERT_VALUES_RE = re.compile(r"^\s*(insert\s+into\s+.+?)\s+values\b\s*(.*?)\s*;?\s*$", re.IGNORECASE | re.DOTALL)


def _count_placeholders(sql: str) -> Optional[int]:
    """Return the number of ``?`` placeholders of a single-row VALUES clause.

    ``None`` means the statement does not have the shape a staged insert needs:
    exactly one row made only of positional placeholders, matching the column
    list when one is given.
    """
    try:
        expression = sqlglot.parse_one(sql.strip().rstrip(";"))
    except ParseError:
        return None
    if not isinstance(expression, exp.Insert):
        return None
    values = expression.expression
    if not isinstance(values, exp.Values) or len(values.expressions) != 1:
        return None
    row = values.expressions[0]
    items = row.expressions if isinstance(row, exp.Tuple) else [row]
    if not items or not all(isinstance(item, exp.Placeholder) and item.args.get("this") is None for item in items):
        return None
    target = expression.this
    if isinstance(target, exp.Schema) and target.expressions and len(target.expressions) != len(items):
        return None
    return len(items)


class BatchInsertTemplate:
    """An INSERT statement split into its target and its placeholder bindings.

    Accepts ``INSERT INTO t [(cols)] VALUES (?, ...)`` and the bare
    ``INSERT INTO t [(cols)] VALUES`` form, for which the column count follows
    the highest bound index. :attr:`sql` is the statement sent together with a
    stage attachment. Placeholder indexes are 1-based.
    """

    __slots__ = ("_bindings", "original_sql", "placeholder_count", "sql")

    def __init__(self, original_sql: str, sql: str, placeholder_count: Optional[int] = None) -> None:
        self.original_sql = original_sql
        self.sql = sql
        self.placeholder_count = placeholder_count
        self._bindings: dict[int, ColumnLiteral] = {}

    @classmethod
    def try_parse(cls, sql: str) -> "Optional[BatchInsertTemplate]":
        """Return a template for ``sql``, or ``None`` when it is not a batch insert."""
        match = _INSERT_VALUES_RE.match(sql)
        if match is None:
            return None
        target, values = match.groups()
        count: Optional[int] = None
        if values:
            count = _count_placeholders(sql)
            if count is None:
                return None
        return cls(original_sql=sql, sql=f"{' '.join(target.split())} VALUES", placeholder_count=count)

    @property
    def is_insert_template(self) -> bool:
        return True

    def bind(self, index: int, literal: ColumnLiteral) -> None:
        if index < 1 or (self.placeholder_count is not None and index > self.placeholder_count):
            msg = f"Parameter index {index} is out of range"
            raise ParameterError(msg, self.original_sql)
        self._bindings[index] = literal

    def current_values(self) -> Row:
        count = self.placeholder_count if self.placeholder_count is not None else max(self._bindings, default=0)
        if count == 0:
            msg = "No parameters are bound"
            raise MissingParameterError(msg, self.original_sql)
        missing = [index for index in range(1, count + 1) if index not in self._bindings]
        if missing:
            msg = f"Parameters not bound: {', '.join(str(index) for index in missing)}"
            raise MissingParameterError(msg, self.original_sql)
        return tuple(self._bindings[index] for index in range(1, count + 1))

    def reset(self) -> None:
        self._bindings.clear()

    def __repr__(self) -> str:
        return f"BatchInsertTemplate(sql={self.sql!r}, placeholder_count={self.placeholder_count!r})"
