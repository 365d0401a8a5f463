"""Test constraint extraction from WHERE and JOIN ... ON predicates."""

from datetime import date
from decimal import Decimal

import pytest

from queryseed.constraint_extractor import (
    ConstraintExtractor,
    NotALiteral,
    parse_date_offset,
    parse_sql_literal,
)
from queryseed.constraints import (
    BetweenConstraint,
    BetweenDataType,
    BooleanConstraint,
    DateConstraint,
    DateConstraintKind,
    ExistsConstraint,
    GeneralConstraint,
    InClauseConstraint,
    InClauseKind,
    JoinConstraint,
    LikePattern,
    LikePatternType,
    NullConstraint,
)
from queryseed.query_analyzer import QueryAnalyzer


def extract(sql: str, provider=None):
    analyzed = QueryAnalyzer().analyze(sql)
    schemas = {}
    if provider is not None:
        schemas = {ref.name: provider.get_table_info(ref.name) for ref in analyzed.tables}
    return ConstraintExtractor(schemas).extract(analyzed)


def test_phuong_vnext_scenario(provider):
    """Test the users/companies query yields LIKE, YEAR and JOIN constraints."""
    constraints = extract(
        """
        SELECT u.first_name, c.name FROM users u
        JOIN companies c ON u.company_id = c.id
        WHERE u.first_name LIKE '%Phuong%'
          AND YEAR(u.date_of_birth) = 1989
          AND c.name LIKE '%VNEXT%'
        """,
        provider,
    )

    assert constraints.joins == [
        JoinConstraint("u", "company_id", right_alias="c", right_column="id", right_table="companies")
    ]
    assert LikePattern("u", "first_name", "%Phuong%", "Phuong", LikePatternType.CONTAINS) in constraints.likes
    assert LikePattern("c", "name", "%VNEXT%", "VNEXT", LikePatternType.CONTAINS) in constraints.likes
    assert constraints.dates == [
        DateConstraint("u", "date_of_birth", DateConstraintKind.YEAR_EQUALS, "=", 1989)
    ]
    assert len(constraints) == 4
    assert constraints.warnings == []


def test_lookup_by_alias_and_column():
    """Test index lookups are case-insensitive and joins index both sides."""
    constraints = extract(
        "SELECT * FROM users u JOIN companies c ON u.company_id = c.id WHERE u.salary > 1000"
    )

    assert [c.kind.value for c in constraints.for_column("U", "SALARY")] == ["general"]
    assert constraints.joins_for("c", "id")[0].other_side("c", "id") == ("u", "company_id")
    assert len(constraints.for_alias("u")) == 2


@pytest.mark.parametrize(
    "pattern, substring, kind",
    [
        ("'%abc%'", "abc", LikePatternType.CONTAINS),
        ("'abc%'", "abc", LikePatternType.STARTS_WITH),
        ("'%abc'", "abc", LikePatternType.ENDS_WITH),
        ("'abc'", "abc", LikePatternType.EXACT),
        ("'%user_name%'", "user_name", LikePatternType.CONTAINS),
    ],
)
def test_like_pattern_types(pattern, substring, kind):
    """Test LIKE patterns are classified by wildcard position."""
    constraints = extract(f"SELECT * FROM users WHERE first_name LIKE {pattern}")

    like = constraints.likes[0]
    assert like.alias == "users"
    assert like.required_substring == substring
    assert like.pattern_type == kind


def test_between_numbers_and_dates():
    """Test BETWEEN bounds are typed."""
    constraints = extract(
        "SELECT * FROM users u WHERE u.salary BETWEEN 1000 AND 2000.50 "
        "AND u.date_of_birth BETWEEN '1980-01-01' AND '1990-12-31'"
    )

    salary, birth = constraints.betweens
    assert salary == BetweenConstraint("u", "salary", 1000, Decimal("2000.50"), BetweenDataType.NUMERIC)
    assert birth.data_type == BetweenDataType.DATE
    assert (birth.min, birth.max) == (date(1980, 1, 1), date(1990, 12, 31))


def test_in_lists_and_not_in():
    """Test IN lists, IN subqueries and NOT IN."""
    constraints = extract(
        "SELECT * FROM users u WHERE u.last_name IN ('Nguyen', 'Tran') "
        "AND u.company_id IN (SELECT id FROM companies) "
        "AND u.id NOT IN (1, 2)"
    )

    names, subquery = constraints.in_clauses
    assert names.values == ("Nguyen", "Tran")
    assert names.in_kind == InClauseKind.STRING_LIST
    assert subquery.in_kind == InClauseKind.SUBQUERY
    assert subquery.subquery == "SELECT id FROM companies"
    assert constraints.general == [
        GeneralConstraint("u", "id", "!=", 1),
        GeneralConstraint("u", "id", "!=", 2),
    ]


def test_null_boolean_and_exists():
    """Test IS [NOT] NULL, bare boolean columns and EXISTS."""
    constraints = extract(
        "SELECT * FROM users u WHERE u.manager_id IS NULL AND u.last_name IS NOT NULL "
        "AND NOT u.is_active AND EXISTS (SELECT 1 FROM roles)"
    )

    assert constraints.nulls == [
        NullConstraint("u", "manager_id", True),
        NullConstraint("u", "last_name", False),
    ]
    assert constraints.booleans == [BooleanConstraint("u", "is_active", False)]
    assert constraints.exists == [ExistsConstraint("SELECT 1 FROM roles", True)]


def test_one_is_boolean_only_for_boolean_columns(provider):
    """Test `col = 1` reads as TRUE for boolean columns and as 1 otherwise."""
    constraints = extract(
        "SELECT * FROM users u WHERE u.is_active = 1 AND u.company_id = 1", provider
    )

    assert constraints.booleans == [BooleanConstraint("u", "is_active", True)]
    assert constraints.general == [GeneralConstraint("u", "company_id", "=", 1)]


def test_date_interval_and_reversed_comparison():
    """Test date arithmetic becomes day offsets and literals flip to the right."""
    constraints = extract(
        "SELECT * FROM users u WHERE u.created_at >= DATE_SUB(NOW(), INTERVAL 30 DAY) "
        "AND 50000 < u.salary"
    )

    assert constraints.dates == [
        DateConstraint("u", "created_at", DateConstraintKind.DATE_INTERVAL, ">=", -30)
    ]
    assert constraints.general == [GeneralConstraint("u", "salary", ">", 50000)]


def test_year_range_becomes_date_bound():
    """Test YEAR(col) > n turns into a date comparison."""
    constraints = extract("SELECT * FROM users u WHERE YEAR(u.date_of_birth) > 1990")

    assert constraints.general == [GeneralConstraint("u", "date_of_birth", ">=", date(1991, 1, 1))]


def test_or_group_picks_first_consistent_alternative():
    """Test OR alternatives that contradict other predicates are skipped."""
    constraints = extract(
        "SELECT * FROM users u WHERE (u.last_name = 'A' OR u.last_name = 'B') "
        "AND u.last_name != 'A'"
    )

    assert len(constraints.or_groups) == 1
    group = constraints.or_groups[0]
    assert group.chosen == 1
    assert GeneralConstraint("u", "last_name", "=", "B") in constraints.general
    assert GeneralConstraint("u", "last_name", "=", "A") not in constraints.general


def test_unsupported_predicates_are_dropped_with_warning(caplog):
    """Test NOT LIKE and column inequalities are dropped, not fatal."""
    constraints = extract(
        "SELECT * FROM users u JOIN users m ON u.salary > m.salary "
        "WHERE u.first_name NOT LIKE 'A%'"
    )

    assert len(constraints) == 0
    assert len(constraints.warnings) == 2
    assert "NOT LIKE" in caplog.text


def test_unqualified_column_attributed_through_schema(provider):
    """Test unqualified columns in a multi-table query find their table."""
    constraints = extract(
        "SELECT * FROM users u JOIN companies c ON u.company_id = c.id WHERE founded > '2000-01-01'",
        provider,
    )

    assert constraints.general[0].alias == "c"


def test_parse_sql_literal():
    """Test literal parsing."""
    assert parse_sql_literal("'it''s'") == "it's"
    assert parse_sql_literal("N'abc'") == "abc"
    assert parse_sql_literal("42") == 42
    assert parse_sql_literal("-1.5") == Decimal("-1.5")
    assert parse_sql_literal("TRUE") is True
    assert parse_sql_literal("NULL") is None
    assert parse_sql_literal("DATE '2020-02-29'") == date(2020, 2, 29)
    with pytest.raises(NotALiteral):
        parse_sql_literal("u.id")


@pytest.mark.parametrize(
    "text, days",
    [
        ("NOW()", 0),
        ("CURRENT_DATE", 0),
        ("DATE_ADD(NOW(), INTERVAL 2 WEEK)", 14),
        ("NOW() - INTERVAL 1 MONTH", -30),
        ("CURRENT_DATE - INTERVAL '7 days'", -7),
        ("DATEADD(day, -10, GETDATE())", -10),
        ("SYSDATE - 3", -3),
        ("ADD_MONTHS(SYSDATE, -12)", -360),
        ("u.created_at", None),
    ],
)
def test_parse_date_offset(text, days):
    """Test date arithmetic in each dialect's spelling."""
    assert parse_date_offset(text) == days
