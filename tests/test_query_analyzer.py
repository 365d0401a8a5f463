"""Test query analysis: tables, aliases, JOIN conditions and WHERE text."""

import pytest

from queryseed.exceptions import ParseError
from queryseed.query_analyzer import QueryAnalyzer


@pytest.fixture
def analyzer() -> QueryAnalyzer:
    return QueryAnalyzer()


def test_single_table_without_where(analyzer):
    """Test a bare SELECT * FROM table."""
    analyzed = analyzer.analyze("SELECT * FROM users")

    assert [ref.name for ref in analyzed.tables] == ["users"]
    assert analyzed.tables[0].alias == "users"
    assert analyzed.where_clause == ""
    assert analyzed.join_clauses == []


def test_joins_with_aliases(analyzer):
    """Test JOIN ... ON tables keep FROM/JOIN order and their aliases."""
    analyzed = analyzer.analyze(
        """
        SELECT u.first_name, c.name
        FROM users u
        INNER JOIN companies AS c ON u.company_id = c.id
        LEFT JOIN user_roles ur ON ur.user_id = u.id
        WHERE u.is_active = TRUE
        ORDER BY u.first_name
        """
    )

    assert [(ref.name, ref.alias) for ref in analyzed.tables] == [
        ("users", "u"),
        ("companies", "c"),
        ("user_roles", "ur"),
    ]
    assert [join.join_type for join in analyzed.join_clauses] == ["INNER JOIN", "LEFT JOIN"]
    assert analyzed.join_clauses[0].condition == "u.company_id = c.id"
    assert analyzed.where_clause == "u.is_active = TRUE"


def test_self_join_keeps_both_aliases(analyzer):
    """Test a table joined to itself appears once per alias."""
    analyzed = analyzer.analyze(
        "SELECT e.id FROM users e JOIN users m ON e.manager_id = m.id"
    )

    assert [ref.alias for ref in analyzed.tables] == ["e", "m"]
    assert analyzed.table_names == ["users"]
    assert len(analyzed.tables_named("USERS")) == 2


def test_quoted_and_qualified_names(analyzer):
    """Test schema qualifiers and identifier quoting are stripped."""
    analyzed = analyzer.analyze('SELECT * FROM "app"."Users" AS "u" WHERE "u"."id" > 5')

    ref = analyzed.tables[0]
    assert ref.name == "Users"
    assert ref.schema == "app"
    assert ref.alias == "u"
    assert ref.render() == '"app"."Users"'


def test_comma_separated_from_list(analyzer):
    """Test old-style comma joins."""
    analyzed = analyzer.analyze(
        "SELECT * FROM users u, companies c WHERE u.company_id = c.id"
    )

    assert [ref.alias for ref in analyzed.tables] == ["u", "c"]
    assert analyzed.where_clause == "u.company_id = c.id"


def test_where_stops_at_group_by(analyzer):
    """Test trailing clauses are not part of the WHERE text."""
    analyzed = analyzer.analyze(
        "SELECT company_id, COUNT(*) FROM users WHERE salary > 100 GROUP BY company_id LIMIT 5"
    )

    assert analyzed.where_clause == "salary > 100"


def test_keywords_inside_literals_are_ignored(analyzer):
    """Test a WHERE keyword inside a string does not end the FROM clause."""
    analyzed = analyzer.analyze(
        "SELECT * FROM companies c WHERE c.name = 'Where From Inc' -- trailing comment"
    )

    assert [ref.alias for ref in analyzed.tables] == ["c"]
    assert analyzed.where_clause == "c.name = 'Where From Inc'"


def test_resolve_alias(analyzer):
    """Test qualifiers resolve through aliases and unique table names."""
    analyzed = analyzer.analyze("SELECT * FROM users u JOIN companies c ON u.company_id = c.id")

    assert analyzed.resolve_alias("U").name == "users"
    assert analyzed.resolve_alias("companies").alias == "c"
    assert analyzed.resolve_alias("missing") is None


@pytest.mark.parametrize(
    "sql",
    [
        "",
        "UPDATE users SET name = 'x'",
        "SELECT 1",
        "SELECT * FROM (SELECT * FROM users) sub",
    ],
)
def test_unsupported_queries_raise(analyzer, sql):
    """Test non-SELECT, FROM-less and derived-table queries are rejected."""
    with pytest.raises(ParseError):
        analyzer.analyze(sql)
