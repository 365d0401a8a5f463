"""Test in-memory staging backend."""

import pytest

from queryseed.backends import StagingBackend
from queryseed.dialects import OracleDialect, PostgreSQLDialect
from queryseed.exceptions import SinkExecutionError


def test_identity_values_are_sequential(staging, provider):
    """Test identity columns are assigned 1, 2, ..."""
    staging.execute("INSERT INTO companies (name, founded) VALUES ('A', NULL);")
    staging.execute("INSERT INTO companies (name, founded) VALUES ('B', '2001-02-03');")

    rows = staging.get_data("companies")
    assert [row["id"] for row in rows] == [1, 2]
    assert list(rows[0]) == ["id", "name", "founded"]
    assert staging.last_inserted(provider.get_table_info("companies"))["name"] == "B"
    assert staging.count_rows("COMPANIES") == 2


def test_explicit_identity_advances_sequence(staging):
    """Test an explicit id moves the sequence past it."""
    staging.execute("INSERT INTO companies (id, name) VALUES (10, 'X');")
    staging.execute("INSERT INTO companies (name) VALUES ('Y');")

    assert [row["id"] for row in staging.get_data("companies")] == [10, 11]


def test_not_null_violation(staging):
    """Test missing NOT NULL values are rejected."""
    with pytest.raises(SinkExecutionError) as exc_info:
        staging.execute("INSERT INTO companies (founded) VALUES ('2001-02-03');")

    assert "not-null" in str(exc_info.value)
    assert staging.count_rows("companies") == 0


def test_unique_violation(staging):
    """Test UNIQUE columns reject duplicates."""
    staging.execute("INSERT INTO roles (code, level) VALUES ('ADM', 'lead');")

    with pytest.raises(SinkExecutionError) as exc_info:
        staging.execute("INSERT INTO roles (code, level) VALUES ('ADM', 'junior');")

    assert "roles(code)" in str(exc_info.value)
    assert staging.count_rows("roles") == 1


def test_composite_primary_key(staging):
    """Test composite keys only clash on the full tuple."""
    staging.execute("INSERT INTO user_roles (user_id, role_id) VALUES (1, 1);")
    staging.execute("INSERT INTO user_roles (user_id, role_id) VALUES (1, 2);")

    with pytest.raises(SinkExecutionError):
        staging.execute("INSERT INTO user_roles (user_id, role_id) VALUES (1, 2);")

    assert staging.count_rows("user_roles") == 2


@pytest.mark.parametrize(
    "sql",
    [
        "INSERT INTO missing (a) VALUES (1);",
        "INSERT INTO companies (nope) VALUES (1);",
        "DELETE FROM companies;",
    ],
)
def test_rejected_statements(staging, sql):
    """Test unknown tables, unknown columns and non-INSERT text."""
    with pytest.raises(SinkExecutionError) as exc_info:
        staging.execute(sql)

    assert exc_info.value.sql == sql


def test_fail_after(provider):
    """Test injected failures start after N statements and persist."""
    backend = StagingBackend(PostgreSQLDialect(), provider, fail_after=1)
    backend.execute("INSERT INTO companies (name) VALUES ('A');")

    for _ in range(2):
        with pytest.raises(SinkExecutionError):
            backend.execute("INSERT INTO companies (name) VALUES ('B');")

    assert backend.count_rows("companies") == 1


def test_oracle_statements(provider):
    """Test statements in another dialect parse back to Python values."""
    backend = StagingBackend(OracleDialect(), provider)

    backend.execute(
        "INSERT INTO companies (name, founded) VALUES ('A', TO_DATE('2020-05-01', 'YYYY-MM-DD'))"
    )

    assert backend.get_data("companies")[0]["founded"].isoformat() == "2020-05-01"


def test_clear(staging, provider):
    """Test clear resets rows and sequences."""
    staging.execute("INSERT INTO companies (name) VALUES ('A');")
    staging.clear()
    staging.execute("INSERT INTO companies (name) VALUES ('B');")

    assert staging.get_data("companies") == [{"id": 1, "name": "B", "founded": None}]
    assert staging.last_inserted(provider.get_table_info("roles")) == {}
