"""Test the end-to-end generation pipeline against the staging backend."""

from datetime import datetime, timedelta
from itertools import count

import pytest

from queryseed.backends import StagingBackend
from queryseed.config import GenerationConfig
from queryseed.dialects import PostgreSQLDialect
from queryseed.exceptions import SinkExecutionError, UnsatisfiableValueError
from queryseed.generators import OracleContext, RateLimitedOracle, ValueOracle
from queryseed.introspection import StaticSchemaProvider
from queryseed.models import GenerationRequest
from queryseed.orchestrator import GenerationOrchestrator

PHUONG_SQL = (
    "SELECT u.first_name, c.name FROM users u "
    "JOIN companies c ON u.company_id = c.id "
    "WHERE u.first_name LIKE 'Phuong%' AND c.name LIKE '%VNEXT%' AND u.is_active = 1"
)


@pytest.fixture
def config():
    return GenerationConfig(random_seed=1, max_attempts=3)


@pytest.fixture
def orchestrator(provider, staging, config, clock):
    return GenerationOrchestrator(provider, sink=staging, config=config, clock=clock)


def request(sql, desired=5, current=0, database_type="postgresql"):
    return GenerationRequest(
        database_type=database_type,
        sql_query=sql,
        desired_record_count=desired,
        current_record_count=current,
    )


def test_generates_requested_records(orchestrator, staging):
    """Test one pass per record, parents included."""
    result = orchestrator.run(request("SELECT * FROM users", desired=5))

    assert result.success
    assert result.generated_records == 5
    assert result.attempts == 1
    assert result.error_message is None
    assert len(result.generated_insert_statements) == 10
    assert result.generated_insert_statements[0].startswith("INSERT INTO companies ")
    assert staging.count_rows("users") == 5
    assert staging.count_rows("companies") == 5


def test_query_predicates_hold_for_every_row(orchestrator, staging):
    """Test joined rows link up and filters are satisfied."""
    result = orchestrator.run(request(PHUONG_SQL, desired=4))

    assert result.success
    assert result.warnings == []
    companies = {row["id"]: row for row in staging.get_data("companies")}
    users = staging.get_data("users")
    assert len(users) == 4
    for user in users:
        assert user["first_name"].startswith("Phuong")
        assert user["is_active"] is True
        assert user["manager_id"] is None
        assert "VNEXT" in companies[user["company_id"]]["name"]


def test_users_companies_roles_scenario(orchestrator, staging):
    """Test LIKE, YEAR and join predicates hold across four joined tables."""
    result = orchestrator.run(
        request(
            "SELECT u.first_name, c.name, r.code FROM users u "
            "JOIN companies c ON u.company_id = c.id "
            "JOIN user_roles ur ON ur.user_id = u.id "
            "JOIN roles r ON ur.role_id = r.id "
            "WHERE u.first_name LIKE '%Phuong%' "
            "AND YEAR(u.date_of_birth) = 1989 "
            "AND c.name LIKE '%VNEXT%'",
            desired=3,
        )
    )

    assert result.success, result.error_message
    assert result.generated_records == 3
    companies = {row["id"]: row for row in staging.get_data("companies")}
    users = {row["id"]: row for row in staging.get_data("users")}
    role_ids = {row["id"] for row in staging.get_data("roles")}
    assert len(users) == 3
    for user in users.values():
        assert "Phuong" in user["first_name"]
        assert user["date_of_birth"].year == 1989
        assert "VNEXT" in companies[user["company_id"]]["name"]
    links = staging.get_data("user_roles")
    assert len(links) == 3
    assert {link["user_id"] for link in links} == set(users)
    assert {link["role_id"] for link in links} <= role_ids


def test_self_join_links_rows(orchestrator, staging):
    """Test the employee row references the manager row of its pass."""
    result = orchestrator.run(
        request("SELECT e.* FROM users e JOIN users m ON e.manager_id = m.id", desired=2)
    )

    assert result.success
    users = staging.get_data("users")
    assert len(users) == 4
    assert users[0]["manager_id"] is None
    assert users[1]["manager_id"] == users[0]["id"]
    assert users[3]["manager_id"] == users[2]["id"]


def test_current_count_reduces_work(orchestrator, staging):
    """Test only the shortfall is generated."""
    result = orchestrator.run(request("SELECT * FROM companies", desired=5, current=3))

    assert result.generated_records == 2
    assert staging.count_rows("companies") == 2


def test_nothing_to_generate(orchestrator, staging):
    """Test desired <= current succeeds without statements."""
    result = orchestrator.run(request("SELECT * FROM users", desired=5, current=5))

    assert result.success
    assert result.generated_records == 0
    assert result.generated_insert_statements == []
    assert result.attempts == 0


def test_current_count_from_sink(orchestrator, staging):
    """Test an unknown current count is read from the sink."""
    for email in ("a@example.com", "b@example.com"):
        staging.execute(
            "INSERT INTO users (first_name, email, is_active, company_id) "
            f"VALUES ('A', '{email}', TRUE, 1);"
        )

    result = orchestrator.run(request("SELECT * FROM users", desired=3, current=None))

    assert result.generated_records == 1
    assert staging.count_rows("users") == 3


class RefusingOracle(ValueOracle):
    def __init__(self):
        self.calls = 0

    def propose(self, context, constraints):
        self.calls += 1
        raise UnsatisfiableValueError("no idea")


def test_refusing_oracle_falls_back(provider, staging, config, clock):
    """Test an oracle that never answers does not stop generation."""
    oracle = RefusingOracle()
    orchestrator = GenerationOrchestrator(provider, staging, oracle, config, clock)

    result = orchestrator.run(request(PHUONG_SQL, desired=3))

    assert result.success
    assert oracle.calls > 0


def test_oracle_disabled_per_request(provider, staging, config, clock):
    """Test use_oracle=False skips the oracle entirely."""
    oracle = RefusingOracle()
    orchestrator = GenerationOrchestrator(provider, staging, oracle, config, clock)
    req = request("SELECT * FROM users", desired=1)
    req.use_oracle = False

    assert orchestrator.run(req).success
    assert oracle.calls == 0


def test_partial_progress_on_sink_failure(provider, config, clock):
    """Test committed passes are reported when the sink starts failing."""
    sink = StagingBackend(PostgreSQLDialect(), provider, fail_after=5)
    orchestrator = GenerationOrchestrator(provider, sink, config=config, clock=clock)

    result = orchestrator.run(request("SELECT * FROM users", desired=4))

    assert not result.success
    assert result.generated_records == 2
    assert result.attempts == 3
    assert len(result.generated_insert_statements) == 5
    assert "Injected failure" in result.error_message
    assert len(result.warnings) == 3
    assert result.warnings[0].startswith("Attempt 1 failed after 2/4 record(s)")


def test_unsatisfiable_query(orchestrator):
    """Test contradictory predicates fail every attempt."""
    result = orchestrator.run(
        request("SELECT * FROM users u WHERE u.first_name LIKE 'A%' AND u.first_name LIKE 'B%'")
    )

    assert not result.success
    assert result.generated_records == 0
    assert "users.first_name" in result.error_message


@pytest.mark.parametrize(
    "sql,database_type,message",
    [
        ("UPDATE users SET name = 'x'", "postgresql", "Could not analyze"),
        ("SELECT * FROM missing", "postgresql", "'missing' not found"),
        ("SELECT * FROM users", "sqlite", "not supported"),
    ],
)
def test_fatal_errors(orchestrator, sql, database_type, message):
    """Test analysis errors end the run with an error message."""
    result = orchestrator.run(request(sql, database_type=database_type))

    assert not result.success
    assert message in result.error_message
    assert result.generated_insert_statements == []


def test_unbreakable_cycle_is_fatal(config, clock):
    """Test NOT NULL FK cycles are reported, not generated."""
    provider = StaticSchemaProvider.from_dict(
        {
            "tables": {
                "a": {
                    "columns": [
                        {"name": "id", "type": "integer", "primary_key": True, "identity": True},
                        {"name": "b_id", "type": "integer", "nullable": False},
                    ],
                    "foreign_keys": [{"column": "b_id", "references": "b.id"}],
                },
                "b": {
                    "columns": [
                        {"name": "id", "type": "integer", "primary_key": True, "identity": True},
                        {"name": "a_id", "type": "integer", "nullable": False},
                    ],
                    "foreign_keys": [{"column": "a_id", "references": "a.id"}],
                },
            }
        }
    )

    result = GenerationOrchestrator(provider, config=config, clock=clock).run(request("SELECT * FROM a"))

    assert not result.success
    assert "cycle" in result.error_message


def test_cancel_before_run(orchestrator):
    """Test a cancelled orchestrator stops at the first attempt boundary."""
    orchestrator.cancel()

    result = orchestrator.run(request("SELECT * FROM users", desired=3))

    assert orchestrator.cancelled
    assert not result.success
    assert result.generated_records == 0
    assert result.error_message == "Generation cancelled"
    assert result.warnings == ["Cancelled before attempt 1"]


def test_dry_run_uses_dialect(provider, config, clock):
    """Test dry runs render statements in the requested dialect."""
    orchestrator = GenerationOrchestrator(provider, config=config, clock=clock)

    result = orchestrator.run(request("SELECT * FROM users", desired=2, database_type="sqlserver"), dry_run=True)

    assert result.success
    assert result.generated_insert_statements[0].startswith("INSERT INTO [companies] ([name], [founded]) VALUES (N'")


def test_seeded_runs_are_reproducible(provider, config, clock):
    """Test identical seeds give identical scripts."""
    scripts = []
    for _ in range(2):
        orchestrator = GenerationOrchestrator(provider, config=config, clock=clock)
        scripts.append(orchestrator.run(request(PHUONG_SQL, desired=3), dry_run=True).generated_insert_statements)

    assert scripts[0] == scripts[1]


def test_analyze(orchestrator):
    """Test analysis without generation."""
    analyzed, constraints = orchestrator.analyze(PHUONG_SQL)

    assert [ref.alias for ref in analyzed.tables] == ["u", "c"]
    assert len(constraints.joins) == 1
    assert len(constraints.likes) == 2
    assert len(constraints.booleans) == 1


class UncountableStaging(StagingBackend):
    def count_rows(self, table):
        raise SinkExecutionError(f'relation "{table}" does not exist')


def test_count_failure_is_reported(provider, config, clock):
    """Test a failing row count ends the run with an error instead of raising."""
    sink = UncountableStaging(PostgreSQLDialect(), provider)
    orchestrator = GenerationOrchestrator(provider, sink, config=config, clock=clock)

    result = orchestrator.run(request("SELECT * FROM users", desired=3, current=None))

    assert not result.success
    assert result.generated_records == 0
    assert result.generated_insert_statements == []
    assert 'relation "users" does not exist' in result.error_message


class UnreachableOracle(ValueOracle):
    def __init__(self):
        self.calls = 0

    def propose(self, context, constraints):
        self.calls += 1
        raise ConnectionError("oracle endpoint unreachable")


@pytest.mark.parametrize("wrapped", [False, True])
def test_broken_oracle_falls_back(provider, staging, config, clock, wrapped):
    """Test oracle connection errors fall through to the local sampler."""
    unreachable = UnreachableOracle()
    oracle = RateLimitedOracle(unreachable, OracleContext(call_budget=None)) if wrapped else unreachable
    orchestrator = GenerationOrchestrator(provider, staging, oracle, config, clock)

    result = orchestrator.run(request("SELECT * FROM companies", desired=2))

    assert result.success
    assert unreachable.calls > 0
    assert staging.count_rows("companies") == 2


def test_date_interval_uses_one_instant(provider, staging, config):
    """Test DATETIME equality with NOW() holds while the clock keeps moving."""
    start = datetime(2024, 6, 15, 12, 0, 0, 500000)
    ticks = count()
    orchestrator = GenerationOrchestrator(
        provider, staging, config=config, clock=lambda: start + timedelta(seconds=next(ticks))
    )

    result = orchestrator.run(request("SELECT * FROM users u WHERE u.created_at = NOW()", desired=1))

    assert result.success, result.error_message
    assert staging.get_data("users")[0]["created_at"] == datetime(2024, 6, 15, 12, 0, 0)
