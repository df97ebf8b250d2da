"""Tests for INSERT template detection and placeholder binding."""

import pytest

from sqlstage.batch import BatchInsertTemplate
from sqlstage.exceptions import MissingParameterError, ParameterError


@pytest.mark.parametrize(
    ("sql", "expected_sql", "count"),
    [
        ("INSERT INTO t VALUES (?, ?)", "INSERT INTO t VALUES", 2),
        ("insert into db.t (a, b, c) values (?, ?, ?);", "insert into db.t (a, b, c) VALUES", 3),
        ("INSERT INTO t\n  VALUES\n  (?)", "INSERT INTO t VALUES", 1),
        ("INSERT INTO t VALUES", "INSERT INTO t VALUES", None),
        ("INSERT INTO t (a, b) VALUES", "INSERT INTO t (a, b) VALUES", None),
    ],
)
def test_batch_insert_shapes(sql, expected_sql, count) -> None:
    template = BatchInsertTemplate.try_parse(sql)

    assert template is not None
    assert template.is_insert_template
    assert template.sql == expected_sql
    assert template.placeholder_count == count
    assert template.original_sql == sql


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT * FROM t",
        "DELETE FROM t WHERE a = ?",
        "INSERT INTO t SELECT * FROM s",
        "INSERT INTO t VALUES (?, 'literal')",
        "INSERT INTO t VALUES (?, ?), (?, ?)",
        "INSERT INTO t (a, b) VALUES (?)",
        "INSERT INTO t VALUES (:a, :b)",
    ],
)
def test_non_batch_statements_are_rejected(sql) -> None:
    assert BatchInsertTemplate.try_parse(sql) is None


def test_bind_and_collect_values() -> None:
    template = BatchInsertTemplate.try_parse("INSERT INTO t VALUES (?, ?)")
    assert template is not None

    template.bind(2, "b")
    template.bind(1, "a")

    assert template.current_values() == ("a", "b")


def test_rebinding_overwrites_previous_literal() -> None:
    template = BatchInsertTemplate.try_parse("INSERT INTO t VALUES (?)")
    assert template is not None

    template.bind(1, "old")
    template.bind(1, None)

    assert template.current_values() == (None,)


@pytest.mark.parametrize("index", [0, 3, -1])
def test_bind_out_of_range(index) -> None:
    template = BatchInsertTemplate.try_parse("INSERT INTO t VALUES (?, ?)")
    assert template is not None

    with pytest.raises(ParameterError, match="out of range"):
        template.bind(index, "x")


def test_missing_parameter_is_reported() -> None:
    template = BatchInsertTemplate.try_parse("INSERT INTO t VALUES (?, ?, ?)")
    assert template is not None
    template.bind(1, "a")

    with pytest.raises(MissingParameterError) as exc_info:
        template.current_values()

    assert "2, 3" in str(exc_info.value)
    assert exc_info.value.sql == "INSERT INTO t VALUES (?, ?, ?)"


def test_bare_values_width_follows_highest_index() -> None:
    template = BatchInsertTemplate.try_parse("INSERT INTO t VALUES")
    assert template is not None
    template.bind(1, "a")
    template.bind(2, "b")

    assert template.current_values() == ("a", "b")


def test_bare_values_gap_is_missing() -> None:
    template = BatchInsertTemplate.try_parse("INSERT INTO t VALUES")
    assert template is not None
    template.bind(3, "c")

    with pytest.raises(MissingParameterError):
        template.current_values()


def test_nothing_bound_is_missing() -> None:
    template = BatchInsertTemplate.try_parse("INSERT INTO t VALUES")
    assert template is not None

    with pytest.raises(MissingParameterError, match="No parameters"):
        template.current_values()


def test_reset_clears_bindings() -> None:
    template = BatchInsertTemplate.try_parse("INSERT INTO t VALUES (?)")
    assert template is not None
    template.bind(1, "a")

    template.reset()

    with pytest.raises(MissingParameterError):
        template.current_values()


@pytest.mark.parametrize("sql", ["INSERT INTO t VALUES (?, ?", "INSERT INTO t VALUES ((?)"])
def test_unparseable_values_clause_is_not_batch_shaped(sql) -> None:
    assert BatchInsertTemplate.try_parse(sql) is None
