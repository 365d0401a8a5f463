"""Test schema providers: static definitions and PostgreSQL introspection."""

import pytest
import yaml
from psycopg import Connection

from queryseed.backends import DirectBackend
from queryseed.config import GenerationConfig
from queryseed.exceptions import SchemaNotFoundError, SinkExecutionError, TableNotFoundError
from queryseed.introspection import SchemaIntrospector, StaticSchemaProvider
from queryseed.models import GenerationRequest
from queryseed.orchestrator import GenerationOrchestrator


def test_from_dict(provider):
    """Test column flags and foreign keys from a definition."""
    users = provider.get_table_info("Users")

    assert users.primary_keys == ["id"]
    assert users.get_column("id").is_identity
    assert not users.get_column("id").is_nullable
    assert users.get_column("email").is_unique
    assert users.get_column("salary").numeric_scale == 2
    manager = users.get_foreign_key("manager_id")
    assert manager.is_self_referencing
    assert (manager.referenced_table, manager.referenced_column) == ("users", "id")
    assert provider.get_foreign_keys("user_roles")[1].referenced_table == "roles"
    assert provider.get_table_names() == ["companies", "roles", "users", "user_roles"]
    assert provider.get_table_info("roles").get_column("level").enum_values == ("junior", "senior", "lead")


def test_unknown_table(provider):
    """Test unknown tables raise TableNotFoundError."""
    with pytest.raises(TableNotFoundError):
        provider.get_table_info("missing")


@pytest.mark.parametrize(
    "definition",
    [
        {"tables": {"t": {"columns": []}}},
        {"tables": {"t": {"columns": [{"name": "id"}]}}},
        {
            "tables": {
                "t": {
                    "columns": [{"name": "id", "type": "integer"}],
                    "foreign_keys": [{"column": "id", "references": "other"}],
                }
            }
        },
    ],
    ids=["no-columns", "no-type", "bad-reference"],
)
def test_malformed_definitions(definition):
    """Test malformed definitions raise ValueError."""
    with pytest.raises(ValueError):
        StaticSchemaProvider.from_dict(definition)


def test_from_yaml(tmp_path, schema_dict):
    """Test loading definitions from a YAML file."""
    path = tmp_path / "schema.yaml"
    path.write_text(yaml.safe_dump(schema_dict))

    provider = StaticSchemaProvider.from_yaml(path)

    assert provider.get_table_info("companies").get_column("name").max_length == 100


def test_from_yaml_errors(tmp_path):
    """Test missing and non-mapping files."""
    with pytest.raises(FileNotFoundError):
        StaticSchemaProvider.from_yaml(tmp_path / "missing.yaml")

    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ValueError):
        StaticSchemaProvider.from_yaml(path)


# Database tests (skipped unless QUERYSEED_TEST_DATABASE_URL is set)


def test_introspect_tables(db_conn: Connection, test_schema: str):
    """Should discover tables, columns and foreign keys."""
    introspector = SchemaIntrospector(db_conn, schema=test_schema)

    assert introspector.get_table_names() == ["companies", "users"]

    users = introspector.get_table_info("USERS")
    assert users.schema == test_schema
    assert users.primary_keys == ["id"]
    assert users.get_column("id").is_identity
    assert users.get_column("email").is_unique
    assert users.get_column("email").max_length == 255
    assert users.get_column("salary").numeric_scale == 2
    assert users.get_column("level").enum_values == ("junior", "senior", "lead")
    assert users.get_column("created_at").default_value is not None
    assert users.get_foreign_key("manager_id").is_self_referencing
    assert users.get_foreign_key("company_id").referenced_table == "companies"
    assert introspector.get_table_info("users") is users


def test_introspect_errors(db_conn: Connection, test_schema: str):
    """Should reject unknown schemas and tables."""
    with pytest.raises(SchemaNotFoundError):
        SchemaIntrospector(db_conn, schema="queryseed_missing")

    with pytest.raises(TableNotFoundError):
        SchemaIntrospector(db_conn, schema=test_schema).get_table_info("missing")


def test_direct_backend(db_conn: Connection, test_schema: str):
    """Should capture identity values and report rejected statements."""
    introspector = SchemaIntrospector(db_conn, schema=test_schema)
    backend = DirectBackend(db_conn, schema=test_schema)

    backend.execute(f"INSERT INTO {test_schema}.companies (name) VALUES ('Acme');")
    companies = introspector.get_table_info("companies")
    assert backend.last_inserted(companies)["id"] >= 1
    assert backend.count_rows("companies") == 1

    with pytest.raises(SinkExecutionError):
        backend.execute(f"INSERT INTO {test_schema}.companies (name) VALUES (NULL);")

    # Connection is still usable after the rollback
    assert backend.fetch_count("SELECT * FROM companies") == 1

    with pytest.raises(SinkExecutionError):
        backend.count_rows("no_such_table")
    assert backend.count_rows("companies") == 1


def test_generate_into_database(db_conn: Connection, test_schema: str):
    """Should insert rows the query then returns."""
    introspector = SchemaIntrospector(db_conn, schema=test_schema)
    orchestrator = GenerationOrchestrator(
        introspector, config=GenerationConfig(random_seed=5, verify_query=True)
    )
    request = GenerationRequest(
        database_type="postgresql",
        sql_query=(
            "SELECT u.email FROM users u JOIN companies c ON u.company_id = c.id "
            "WHERE c.name LIKE '%VNEXT%' AND u.is_active = TRUE AND u.level = 'lead'"
        ),
        desired_record_count=3,
        current_record_count=None,
        connection=db_conn,
    )

    result = orchestrator.run(request)

    assert result.success, result.error_message
    assert result.generated_records == 3
    assert result.warnings == []
    with db_conn.cursor() as cur:
        cur.execute("SELECT COUNT(*) FROM users WHERE manager_id IS NULL")
        assert cur.fetchone()[0] == 3
