"""Protocols for the collaborators sqlstage drives but does not implement.

The SQL execution service and the placeholder binder are supplied by the
surrounding driver; these protocols describe the only operations used here.
"""

from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sqlstage.stage import StageAttachment
    from sqlstage.typing import ColumnLiteral, Row, RowCursor

__all__ = ("PlaceholderBinderProtocol", "SQLExecutorProtocol")


@runtime_checkable
class SQLExecutorProtocol(Protocol):
    """Executes one statement, optionally sourcing data from a staged file.

    Server-side failures should be raised as :class:`sqlstage.exceptions.ServerError`
    carrying the server error code.
    """

    def execute(self, sql: str, attachment: "Optional[StageAttachment]" = None) -> "RowCursor":
        """Execute ``sql`` and return a cursor over the result rows."""
        ...


@runtime_checkable
class PlaceholderBinderProtocol(Protocol):
    """Collects literals for the ``?`` placeholders of one INSERT template."""

    @property
    def is_insert_template(self) -> bool:
        """Whether the statement could be decomposed into template plus placeholders."""
        ...

    @property
    def sql(self) -> str:
        """The INSERT statement to run against a staged file."""
        ...

    def bind(self, index: int, literal: "ColumnLiteral") -> None:
        """Bind the literal for the 1-based placeholder ``index``."""
        ...

    def current_values(self) -> "Row":
        """Return the currently bound literals in placeholder order."""
        ...

    def reset(self) -> None:
        """Forget all bound literals."""
        ...
