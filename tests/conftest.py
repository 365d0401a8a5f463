"""Pytest configuration and shared fixtures."""

import os
from datetime import datetime

import psycopg
import pytest
from psycopg import Connection

from queryseed.backends import StagingBackend
from queryseed.dialects import PostgreSQLDialect
from queryseed.introspection import StaticSchemaProvider

FIXED_NOW = datetime(2024, 6, 15, 12, 0, 0)

SCHEMA = {
    "tables": {
        "companies": {
            "columns": [
                {"name": "id", "type": "integer", "primary_key": True, "identity": True},
                {"name": "name", "type": "varchar(100)", "max_length": 100, "nullable": False},
                {"name": "founded", "type": "date"},
            ],
        },
        "roles": {
            "columns": [
                {"name": "id", "type": "integer", "primary_key": True, "identity": True},
                {"name": "code", "type": "varchar(20)", "max_length": 20, "nullable": False, "unique": True},
                {"name": "level", "type": "varchar(10)", "enum": ["junior", "senior", "lead"]},
            ],
        },
        "users": {
            "columns": [
                {"name": "id", "type": "integer", "primary_key": True, "identity": True},
                {"name": "first_name", "type": "varchar(50)", "max_length": 50, "nullable": False},
                {"name": "last_name", "type": "varchar(50)", "max_length": 50},
                {"name": "email", "type": "varchar(255)", "max_length": 255, "nullable": False, "unique": True},
                {"name": "date_of_birth", "type": "date"},
                {"name": "is_active", "type": "boolean", "nullable": False},
                {"name": "salary", "type": "numeric(10,2)", "precision": 10, "scale": 2},
                {"name": "created_at", "type": "timestamp"},
                {"name": "company_id", "type": "integer", "nullable": False},
                {"name": "manager_id", "type": "integer"},
            ],
            "foreign_keys": [
                {"column": "company_id", "references": "companies.id"},
                {"column": "manager_id", "references": "users.id"},
            ],
        },
        "user_roles": {
            "columns": [
                {"name": "user_id", "type": "integer", "primary_key": True},
                {"name": "role_id", "type": "integer", "primary_key": True},
            ],
            "foreign_keys": [
                {"column": "user_id", "references": "users.id"},
                {"column": "role_id", "references": "roles.id"},
            ],
        },
    }
}


@pytest.fixture
def schema_dict() -> dict:
    """Raw table definitions (companies, roles, users, user_roles)."""
    return SCHEMA


@pytest.fixture
def provider() -> StaticSchemaProvider:
    """In-memory schema provider for the sample tables."""
    return StaticSchemaProvider.from_dict(SCHEMA)


@pytest.fixture
def staging(provider) -> StagingBackend:
    """Staging backend speaking PostgreSQL."""
    return StagingBackend(PostgreSQLDialect(), provider)


@pytest.fixture
def clock():
    """Frozen clock so date-relative constraints are deterministic."""
    return lambda: FIXED_NOW


@pytest.fixture
def database_url() -> str:
    """PostgreSQL URL for database tests (skipped when unset)."""
    url = os.environ.get("QUERYSEED_TEST_DATABASE_URL")
    if not url:
        pytest.skip("QUERYSEED_TEST_DATABASE_URL not set")
    return url


@pytest.fixture
def db_conn(database_url) -> Connection:
    """Connection to the test database; changes are rolled back afterwards."""
    conn = psycopg.connect(database_url, autocommit=False)

    yield conn

    conn.rollback()
    conn.close()


@pytest.fixture
def test_schema(db_conn: Connection) -> str:
    """
    Create a scratch schema with companies and users tables.

    The connection's search_path points at it so unqualified queries work.
    """
    schema_name = "queryseed_test"

    with db_conn.cursor() as cur:
        cur.execute(f"DROP SCHEMA IF EXISTS {schema_name} CASCADE")
        cur.execute(f"CREATE SCHEMA {schema_name}")
        cur.execute(f"CREATE TYPE {schema_name}.user_level AS ENUM ('junior', 'senior', 'lead')")
        cur.execute(f"""
            CREATE TABLE {schema_name}.companies (
                id INTEGER GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
                name VARCHAR(100) NOT NULL,
                founded DATE
            )
        """)
        cur.execute(f"""
            CREATE TABLE {schema_name}.users (
                id INTEGER GENERATED ALWAYS AS IDENTITY PRIMARY KEY,
                first_name VARCHAR(50) NOT NULL,
                email VARCHAR(255) NOT NULL UNIQUE,
                level {schema_name}.user_level,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                salary NUMERIC(10, 2),
                created_at TIMESTAMP NOT NULL DEFAULT NOW(),
                company_id INTEGER NOT NULL REFERENCES {schema_name}.companies(id),
                manager_id INTEGER REFERENCES {schema_name}.users(id)
            )
        """)
        cur.execute(f"SET search_path TO {schema_name}")
        db_conn.commit()

    yield schema_name

    with db_conn.cursor() as cur:
        cur.execute(f"DROP SCHEMA IF EXISTS {schema_name} CASCADE")
        db_conn.commit()
