"""Tests for statement splitting and comment detection."""

import pytest

from dbbatch.utils import is_comment, split_statements


@pytest.mark.parametrize(
    "sql",
    ["SELECT 1", "  UPDATE t SET a = 1  ", "\nINSERT INTO t VALUES (1)\n"],
)
def test_single_statement_is_trimmed(sql):
    assert split_statements(sql) == [sql.strip()]


def test_splits_on_semicolons_and_keeps_terminator():
    assert split_statements("INSERT INTO a VALUES (1); UPDATE b SET x = 2;") == [
        "INSERT INTO a VALUES (1);",
        "UPDATE b SET x = 2;",
    ]


def test_trailing_semicolon_does_not_add_statement():
    assert split_statements("DELETE FROM t;   \n") == ["DELETE FROM t;"]


def test_semicolons_in_quotes_are_ignored():
    sql = "INSERT INTO t VALUES ('a;b', \"c;d\"); SELECT `we;ird` FROM t"
    assert split_statements(sql) == [
        "INSERT INTO t VALUES ('a;b', \"c;d\");",
        "SELECT `we;ird` FROM t",
    ]


def test_escaped_quote_inside_literal():
    sql = r"INSERT INTO t VALUES ('it\'s; fine'); DELETE FROM t"
    assert len(split_statements(sql)) == 2


def test_semicolons_in_parentheses_are_ignored():
    assert split_statements("CALL p(a; b); CALL q((c; d))") == [
        "CALL p(a; b);",
        "CALL q((c; d))",
    ]


@pytest.mark.parametrize(
    ("sql", "expected"),
    [
        ("a", 1),
        ("a;b", 2),
        ("a;b;c", 3),
        ("a;b;", 2),
        ("a;;b", 3),
        ("a';';b", 2),
        ("(a;b);c", 2),
    ],
)
def test_count_follows_unquoted_semicolons(sql, expected):
    assert len(split_statements(sql)) == expected


def test_blank_input_gives_nothing():
    assert split_statements("  \n ") == []


@pytest.mark.parametrize(
    "sql", ["-- note", "/* block */", "# hash", "-- one\n-- two", "#nospace"]
)
def test_pure_comments(sql):
    assert is_comment(sql)


@pytest.mark.parametrize("sql", ["SELECT 1", "-- lead\nDELETE FROM t", "/* x */ UPDATE t SET a=1"])
def test_statements_with_code_are_not_comments(sql):
    assert not is_comment(sql)


@pytest.mark.parametrize(
    "sql",
    [
        "-- don't touch;\nDELETE FROM a; DELETE FROM b",
        "/* it's; here */ DELETE FROM a; DELETE FROM b",
        "# don't;\nDELETE FROM a; DELETE FROM b",
        "#don't;\nDELETE FROM a; DELETE FROM b",
    ],
)
def test_quotes_and_semicolons_in_comments_are_ignored(sql):
    pieces = split_statements(sql)
    assert len(pieces) == 2
    assert pieces[0].endswith("DELETE FROM a;")
    assert pieces[1] == "DELETE FROM b"


def test_trailing_comment_becomes_its_own_piece():
    pieces = split_statements("DELETE FROM a; -- done")
    assert pieces == ["DELETE FROM a;", "-- done"]
    assert is_comment(pieces[1])
