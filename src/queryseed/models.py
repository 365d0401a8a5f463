"""Data models and type definitions."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TypeCategory(str, Enum):
    """Coarse value domain of a declared column type."""

    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    UUID = "uuid"
    JSON = "json"
    BINARY = "binary"


_INTEGER_TYPES = {
    "int", "integer", "bigint", "smallint", "tinyint", "mediumint", "serial",
    "bigserial", "smallserial", "int2", "int4", "int8", "pls_integer",
}
_DECIMAL_TYPES = {"decimal", "numeric", "number", "money", "smallmoney", "dec"}
_FLOAT_TYPES = {
    "float", "double", "double precision", "real", "float4", "float8",
    "binary_float", "binary_double",
}
_BOOLEAN_TYPES = {"boolean", "bool", "bit"}
_DATETIME_TYPES = {
    "datetime", "datetime2", "smalldatetime", "timestamp",
    "timestamp without time zone", "timestamp with time zone", "timestamptz",
    "datetimeoffset",
}
_BINARY_TYPES = {
    "blob", "longblob", "mediumblob", "tinyblob", "binary", "varbinary",
    "bytea", "raw", "image",
}

_TYPE_ARGS = re.compile(r"\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\)")


def categorize_type(data_type: str) -> TypeCategory:
    """
    Map a declared SQL type to its value domain.

    Handles MySQL, PostgreSQL, SQL Server and Oracle spellings, e.g.
    ``tinyint(1)`` and ``NUMBER(1)`` are booleans, ``NUMBER(10,0)`` is an
    integer and ``NUMBER(10,2)`` a decimal.

    Args:
        data_type: Declared type as reported by the database

    Returns:
        TypeCategory for the type (STRING when unknown)
    """
    normalized = " ".join(data_type.lower().split())
    args = _TYPE_ARGS.search(normalized)
    base = _TYPE_ARGS.sub("", normalized).replace(" unsigned", "").strip()

    if base in ("tinyint",) and args and args.group(1) == "1":
        return TypeCategory.BOOLEAN
    if base == "number":
        if args is None:
            return TypeCategory.DECIMAL
        if args.group(1) == "1" and not args.group(2):
            return TypeCategory.BOOLEAN
        if not args.group(2) or args.group(2) == "0":
            return TypeCategory.INTEGER
        return TypeCategory.DECIMAL
    if base in _INTEGER_TYPES:
        return TypeCategory.INTEGER
    if base in _DECIMAL_TYPES:
        return TypeCategory.DECIMAL
    if base in _FLOAT_TYPES:
        return TypeCategory.FLOAT
    if base in _BOOLEAN_TYPES:
        return TypeCategory.BOOLEAN
    if base == "date":
        return TypeCategory.DATE
    if base in _DATETIME_TYPES or base.startswith("timestamp"):
        return TypeCategory.DATETIME
    if base.startswith("time"):
        return TypeCategory.TIME
    if base in ("uuid", "uniqueidentifier"):
        return TypeCategory.UUID
    if base in ("json", "jsonb"):
        return TypeCategory.JSON
    if base in _BINARY_TYPES:
        return TypeCategory.BINARY
    return TypeCategory.STRING


@dataclass(frozen=True)
class ColumnInfo:
    """
    Column metadata from schema introspection.

    Attributes:
        name: Column name
        data_type: Declared SQL type (e.g. ``varchar(50)``, ``NUMBER(10,2)``)
        is_nullable: Whether column allows NULL values
        is_primary_key: Whether column is part of the primary key
        is_identity: Whether the database assigns the value (auto-increment)
        is_generated: Whether the column is computed (GENERATED ... STORED)
        max_length: Maximum character length for string columns
        numeric_precision: Total digits for numeric columns
        numeric_scale: Digits after the decimal point
        default_value: Database default value expression (if any)
        is_unique: Whether column has a UNIQUE constraint
        enum_values: Allowed values for ENUM-typed columns
    """

    name: str
    data_type: str
    is_nullable: bool = True
    is_primary_key: bool = False
    is_identity: bool = False
    is_generated: bool = False
    max_length: int | None = None
    numeric_precision: int | None = None
    numeric_scale: int | None = None
    default_value: str | None = None
    is_unique: bool = False
    enum_values: tuple[str, ...] = ()

    @property
    def type_category(self) -> TypeCategory:
        """Value domain derived from the declared type."""
        return categorize_type(self.data_type)

    @property
    def is_insertable(self) -> bool:
        """Whether INSERT statements should carry a value for this column."""
        return not (self.is_identity or self.is_generated)


@dataclass(frozen=True)
class ForeignKeyInfo:
    """
    Foreign key relationship metadata.

    Attributes:
        column: Foreign key column name in this table
        referenced_table: Parent table being referenced
        referenced_column: Column in parent table (usually PK)
        referenced_schema: Schema of the parent table (if known)
        constraint_name: Name of the FK constraint (if known)
        is_self_referencing: Whether this FK references the same table
    """

    column: str
    referenced_table: str
    referenced_column: str
    referenced_schema: str | None = None
    constraint_name: str | None = None
    is_self_referencing: bool = False


@dataclass(frozen=True)
class TableInfo:
    """
    Table metadata snapshot, fetched once per generation run.

    Attributes:
        name: Table name
        columns: Column metadata in declaration order
        foreign_keys: Foreign key relationships
        schema: Schema (or database) name, None for the default schema
        primary_keys: Primary key column names
    """

    name: str
    columns: list[ColumnInfo]
    foreign_keys: list[ForeignKeyInfo] = field(default_factory=list)
    schema: str | None = None
    primary_keys: list[str] = field(default_factory=list)

    def get_column(self, name: str) -> ColumnInfo | None:
        """Find a column by name (case-insensitive)."""
        lowered = name.lower()
        for col in self.columns:
            if col.name.lower() == lowered:
                return col
        return None

    def get_foreign_key(self, column: str) -> ForeignKeyInfo | None:
        """Find the FK declared on a column (case-insensitive)."""
        lowered = column.lower()
        for fk in self.foreign_keys:
            if fk.column.lower() == lowered:
                return fk
        return None

    @property
    def insertable_columns(self) -> list[ColumnInfo]:
        """Columns that INSERT statements carry (no identity/generated)."""
        return [col for col in self.columns if col.is_insertable]

    @property
    def pk_column(self) -> str | None:
        """
        Get the first primary key column name.

        Returns:
            Primary key column name or None if no PK found
        """
        if self.primary_keys:
            return self.primary_keys[0]
        for col in self.columns:
            if col.is_primary_key:
                return col.name
        return None

    def get_self_referencing_fks(self) -> list[ForeignKeyInfo]:
        """
        Get all self-referencing foreign keys.

        Returns:
            List of ForeignKeyInfo objects where is_self_referencing is True
        """
        return [fk for fk in self.foreign_keys if fk.is_self_referencing]


@dataclass
class GeneratedRow:
    """
    One synthesized row for one table alias.

    Values are kept in schema column order. After the sink commits the row,
    ``values`` also carries the sink-assigned columns (identity, defaults),
    which is what dependent rows copy their FK values from.

    Attributes:
        table: Table name
        alias: Query alias the row was generated for
        values: Column name to value mapping
    """

    table: str
    alias: str
    values: dict[str, Any] = field(default_factory=dict)

    def get(self, column: str) -> Any:
        """Look up a column value (case-insensitive)."""
        if column in self.values:
            return self.values[column]
        lowered = column.lower()
        for name, value in self.values.items():
            if name.lower() == lowered:
                return value
        return None


@dataclass(frozen=True)
class InsertStatement:
    """
    Rendered INSERT statement.

    Attributes:
        table: Table name
        sql: Dialect-correct INSERT text
        priority: Dependency priority (lower inserts first)
    """

    table: str
    sql: str
    priority: int = 0


@dataclass
class GenerationRequest:
    """
    Request to populate the tables of a query.

    Attributes:
        database_type: Dialect name or DatabaseType
        sql_query: SELECT statement whose predicates the rows must satisfy
        desired_record_count: Rows the query should return afterwards
        current_record_count: Rows already present (None: ask the sink)
        connection: Optional driver connection for the default sink
        use_oracle: Whether to consult the configured value oracle
    """

    database_type: str
    sql_query: str
    desired_record_count: int = 10
    current_record_count: int | None = 0
    connection: Any = None
    use_oracle: bool = True


@dataclass
class GenerationResult:
    """
    Outcome of a generation run.

    Attributes:
        success: Whether the desired count was reached
        generated_records: Complete passes committed to the sink
        execution_time: Elapsed wall-clock seconds
        generated_insert_statements: Rendered INSERT text, in commit order
        error_message: First error encountered (on failure)
        attempts: Number of attempts used
        warnings: Dropped predicates and per-attempt failures
    """

    success: bool = False
    generated_records: int = 0
    execution_time: float = 0.0
    generated_insert_statements: list[str] = field(default_factory=list)
    error_message: str | None = None
    attempts: int = 0
    warnings: list[str] = field(default_factory=list)
