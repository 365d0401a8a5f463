"""Schema providers: PostgreSQL introspection and static table definitions."""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from psycopg import Connection

from queryseed.exceptions import SchemaNotFoundError, TableNotFoundError
from queryseed.models import ColumnInfo, ForeignKeyInfo, TableInfo

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = "public"


class SchemaIntrospector:
    """Introspect PostgreSQL schema with caching."""

    def __init__(self, conn: Connection, schema: str = DEFAULT_SCHEMA):
        self.conn = conn
        self.schema = schema
        self._table_cache: dict[str, TableInfo] = {}

        # Validate schema exists
        self._validate_schema()

    def _validate_schema(self) -> None:
        """Validate that schema exists in database."""
        with self.conn.cursor() as cur:
            cur.execute(
                "SELECT EXISTS(SELECT 1 FROM information_schema.schemata WHERE schema_name = %s)",
                (self.schema,),
            )
            exists = cur.fetchone()[0]
            if not exists:
                raise SchemaNotFoundError(self.schema)

    def get_table_names(self) -> list[str]:
        """Names of all base tables in the schema."""
        with self.conn.cursor() as cur:
            cur.execute(
                """
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = %s
                  AND table_type = 'BASE TABLE'
                ORDER BY table_name
                """,
                (self.schema,),
            )
            return [row[0] for row in cur.fetchall()]

    def get_table_info(self, table_name: str) -> TableInfo:
        """Get complete table information (cached)."""
        key = table_name.lower()
        if key in self._table_cache:
            return self._table_cache[key]

        # Unquoted identifiers fold to lower case in PostgreSQL
        with self.conn.cursor() as cur:
            cur.execute(
                """
                SELECT table_name FROM information_schema.tables
                WHERE table_schema = %s AND lower(table_name) = lower(%s)
                ORDER BY table_name = %s DESC
                LIMIT 1
                """,
                (self.schema, table_name, table_name),
            )
            row = cur.fetchone()
            if row is None:
                raise TableNotFoundError(table_name, self.schema)
        actual_name = row[0]

        columns = self.get_columns(actual_name)
        foreign_keys = self.get_foreign_keys(actual_name)
        primary_keys = [col.name for col in columns if col.is_primary_key]

        table_info = TableInfo(
            name=actual_name,
            columns=columns,
            foreign_keys=foreign_keys,
            schema=None if self.schema == DEFAULT_SCHEMA else self.schema,
            primary_keys=primary_keys,
        )
        self._table_cache[key] = table_info
        logger.debug(f"Introspected {self.schema}.{actual_name}: {len(columns)} columns")
        return table_info

    def get_columns(self, table_name: str) -> list[ColumnInfo]:
        """Get all columns for a table (single query plus enum lookups)."""
        with self.conn.cursor() as cur:
            cur.execute(
                """
                SELECT
                    c.column_name,
                    c.data_type,
                    c.udt_name,
                    c.is_nullable,
                    c.column_default,
                    c.character_maximum_length,
                    c.numeric_precision,
                    c.numeric_scale,
                    c.is_identity,
                    c.is_generated,
                    EXISTS(
                        SELECT 1
                        FROM information_schema.table_constraints tc
                        JOIN information_schema.key_column_usage kcu
                          ON tc.constraint_name = kcu.constraint_name
                          AND tc.table_schema = kcu.table_schema
                        WHERE tc.constraint_type = 'PRIMARY KEY'
                          AND tc.table_schema = c.table_schema
                          AND tc.table_name = c.table_name
                          AND kcu.column_name = c.column_name
                    ) AS is_pk,
                    EXISTS(
                        SELECT 1
                        FROM information_schema.table_constraints tc
                        JOIN information_schema.key_column_usage kcu
                          ON tc.constraint_name = kcu.constraint_name
                          AND tc.table_schema = kcu.table_schema
                        WHERE tc.constraint_type = 'UNIQUE'
                          AND tc.table_schema = c.table_schema
                          AND tc.table_name = c.table_name
                          AND kcu.column_name = c.column_name
                          AND (
                              SELECT COUNT(*) FROM information_schema.key_column_usage k2
                              WHERE k2.constraint_name = tc.constraint_name
                                AND k2.table_schema = tc.table_schema
                          ) = 1
                    ) AS is_unique
                FROM information_schema.columns c
                WHERE c.table_schema = %s
                  AND c.table_name = %s
                ORDER BY c.ordinal_position
                """,
                (self.schema, table_name),
            )
            rows = cur.fetchall()

        columns = []
        for row in rows:
            (name, data_type, udt_name, nullable, default, max_length,
             precision, scale, identity, generated, is_pk, is_unique) = row
            enum_values: tuple[str, ...] = ()
            if data_type == "USER-DEFINED":
                enum_values = self.get_enum_values(udt_name)
                data_type = udt_name
            columns.append(
                ColumnInfo(
                    name=name,
                    data_type=data_type,
                    is_nullable=nullable == "YES",
                    is_primary_key=is_pk,
                    # serial columns show up as nextval() defaults
                    is_identity=identity == "YES" or str(default or "").startswith("nextval("),
                    is_generated=generated == "ALWAYS",
                    max_length=max_length,
                    numeric_precision=precision if data_type in ("numeric", "decimal") else None,
                    numeric_scale=scale if data_type in ("numeric", "decimal") else None,
                    default_value=default,
                    is_unique=is_unique,
                    enum_values=enum_values,
                )
            )
        return columns

    def get_enum_values(self, type_name: str) -> tuple[str, ...]:
        """Labels of a PostgreSQL enum type (empty for other user types)."""
        with self.conn.cursor() as cur:
            cur.execute(
                """
                SELECT e.enumlabel
                FROM pg_enum e
                JOIN pg_type t ON t.oid = e.enumtypid
                WHERE t.typname = %s
                ORDER BY e.enumsortorder
                """,
                (type_name,),
            )
            return tuple(row[0] for row in cur.fetchall())

    def get_foreign_keys(self, table_name: str) -> list[ForeignKeyInfo]:
        """Get all foreign keys for a table."""
        with self.conn.cursor() as cur:
            cur.execute(
                """
                SELECT
                    kcu.column_name,
                    ccu.table_name AS foreign_table_name,
                    ccu.column_name AS foreign_column_name,
                    ccu.table_schema AS foreign_table_schema,
                    tc.constraint_name
                FROM information_schema.table_constraints AS tc
                JOIN information_schema.key_column_usage AS kcu
                  ON tc.constraint_name = kcu.constraint_name
                  AND tc.table_schema = kcu.table_schema
                JOIN information_schema.constraint_column_usage AS ccu
                  ON ccu.constraint_name = tc.constraint_name
                  AND ccu.table_schema = tc.table_schema
                WHERE tc.constraint_type = 'FOREIGN KEY'
                  AND tc.table_schema = %s
                  AND tc.table_name = %s
                """,
                (self.schema, table_name),
            )
            rows = cur.fetchall()

        return [
            ForeignKeyInfo(
                column=row[0],
                referenced_table=row[1],
                referenced_column=row[2],
                referenced_schema=row[3],
                constraint_name=row[4],
                is_self_referencing=row[1] == table_name,
            )
            for row in rows
        ]

    def clear_cache(self) -> None:
        """Clear cached introspection data."""
        self._table_cache.clear()


class StaticSchemaProvider:
    """
    Schema provider backed by table definitions held in memory.

    Useful for dry runs and tests without a database.

    Example YAML:
        tables:
          companies:
            columns:
              - {name: id, type: integer, primary_key: true, identity: true}
              - {name: name, type: varchar, max_length: 100, nullable: false}
          users:
            columns:
              - {name: id, type: integer, primary_key: true, identity: true}
              - {name: company_id, type: integer, nullable: false}
            foreign_keys:
              - {column: company_id, references: companies.id}
    """

    def __init__(self, tables: list[TableInfo] | None = None):
        self._tables: dict[str, TableInfo] = {}
        for table in tables or []:
            self.add_table(table)

    def add_table(self, table: TableInfo) -> None:
        self._tables[table.name.lower()] = table

    def get_table_info(self, table_name: str) -> TableInfo:
        try:
            return self._tables[table_name.lower()]
        except KeyError:
            raise TableNotFoundError(table_name) from None

    def get_foreign_keys(self, table_name: str) -> list[ForeignKeyInfo]:
        return list(self.get_table_info(table_name).foreign_keys)

    def get_table_names(self) -> list[str]:
        return [table.name for table in self._tables.values()]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StaticSchemaProvider":
        """
        Build a provider from a parsed definition (see class docstring).

        Raises:
            ValueError: If a table or column definition is malformed
        """
        schema = data.get("schema")
        tables = []
        for table_name, definition in (data.get("tables") or {}).items():
            definition = definition or {}
            if not definition.get("columns"):
                raise ValueError(f"Table '{table_name}' has no columns")

            columns = [_column_from_dict(table_name, col) for col in definition["columns"]]
            foreign_keys = [
                _foreign_key_from_dict(table_name, fk) for fk in definition.get("foreign_keys") or []
            ]
            tables.append(
                TableInfo(
                    name=table_name,
                    columns=columns,
                    foreign_keys=foreign_keys,
                    schema=definition.get("schema", schema),
                    primary_keys=[col.name for col in columns if col.is_primary_key],
                )
            )
        return cls(tables)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "StaticSchemaProvider":
        """
        Load table definitions from a YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file is not a valid definition
        """
        schema_path = Path(path)
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema file not found: {schema_path}")

        with open(schema_path) as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Schema file {schema_path} must contain a mapping with 'tables'")
        return cls.from_dict(data)


def _column_from_dict(table_name: str, data: Mapping[str, Any]) -> ColumnInfo:
    if "name" not in data or "type" not in data:
        raise ValueError(f"Column in table '{table_name}' needs 'name' and 'type': {dict(data)}")
    primary_key = bool(data.get("primary_key", False))
    return ColumnInfo(
        name=data["name"],
        data_type=str(data["type"]),
        is_nullable=bool(data.get("nullable", not primary_key)),
        is_primary_key=primary_key,
        is_identity=bool(data.get("identity", False)),
        is_generated=bool(data.get("generated", False)),
        max_length=data.get("max_length"),
        numeric_precision=data.get("precision"),
        numeric_scale=data.get("scale"),
        default_value=data.get("default"),
        is_unique=bool(data.get("unique", False)),
        enum_values=tuple(str(v) for v in data.get("enum") or ()),
    )


def _foreign_key_from_dict(table_name: str, data: Mapping[str, Any]) -> ForeignKeyInfo:
    reference = str(data.get("references", ""))
    if "column" not in data or "." not in reference:
        raise ValueError(
            f"Foreign key in table '{table_name}' needs 'column' and "
            f"'references: table.column': {dict(data)}"
        )
    referenced_table, referenced_column = reference.rsplit(".", 1)
    return ForeignKeyInfo(
        column=data["column"],
        referenced_table=referenced_table,
        referenced_column=referenced_column,
        constraint_name=data.get("name"),
        is_self_referencing=referenced_table.lower() == table_name.lower(),
    )
