"""Custom exceptions with helpful error messages."""


class QueryseedError(Exception):
    """Base exception for queryseed errors."""

    pass


class ParseError(QueryseedError):
    """Query text could not be analyzed."""

    def __init__(self, reason: str, sql: str = ""):
        preview = " ".join(sql.split())[:120]
        super().__init__(
            f"Could not analyze query: {reason}\n"
            f"Query: {preview}\n\n"
            f"Suggestions:\n"
            f"1. Only SELECT statements with FROM/JOIN/WHERE are supported\n"
            f"2. Check that the FROM clause names at least one table\n"
            f"3. Derived tables (subqueries in FROM) are not analyzed"
        )
        self.reason = reason
        self.sql = sql


class DependencyError(QueryseedError):
    """Foreign key graph cannot be ordered for insertion."""

    def __init__(self, tables: set[str], detail: str = ""):
        tables_str = ", ".join(sorted(tables))
        message = f"Unresolvable foreign key cycle involving tables: {tables_str}"
        if detail:
            message += f" ({detail})"
        super().__init__(
            f"{message}\n\n"
            f"Suggestions:\n"
            f"1. Make one foreign key column in the cycle nullable\n"
            f"2. Seed one of the tables manually before generating\n"
            f"3. Temporarily drop the FK constraint, seed data, then re-add it"
        )
        self.tables = tables


class ConstraintUnsatisfiableError(QueryseedError):
    """No value satisfying every constraint could be produced for a column."""

    def __init__(self, table: str, column: str, attempts: int, violations: list[str]):
        details = "; ".join(violations[:3]) or "unknown violation"
        super().__init__(
            f"Could not generate a value for '{table}.{column}' "
            f"after {attempts} attempts: {details}\n\n"
            f"Suggestions:\n"
            f"1. Check the query for contradictory predicates on this column\n"
            f"2. Check the column length/precision against the query literals\n"
            f"3. Raise max_constraint_attempts in queryseed.toml"
        )
        self.table = table
        self.column = column
        self.violations = violations


class OracleUnavailableError(QueryseedError):
    """Value oracle cannot be consulted right now (budget, interval, outage)."""

    pass


class UnsatisfiableValueError(QueryseedError):
    """Value oracle cannot propose a value for the given constraint set."""

    pass


class SinkExecutionError(QueryseedError):
    """Execution sink rejected a statement."""

    def __init__(self, message: str, sql: str = ""):
        super().__init__(message)
        self.sql = sql


class UnsupportedDialectError(QueryseedError):
    """Database type has no registered dialect handler."""

    def __init__(self, database_type: str, available: list[str]):
        super().__init__(
            f"Database type '{database_type}' is not supported.\n\n"
            f"Available: {', '.join(sorted(available))}"
        )


class SchemaNotFoundError(QueryseedError):
    """Schema does not exist in database."""

    def __init__(self, schema: str):
        super().__init__(
            f"Schema '{schema}' not found in database.\n\n"
            f"Suggestions:\n"
            f"1. Check schema name spelling\n"
            f"2. Check database connection settings"
        )


class TableNotFoundError(QueryseedError):
    """Table referenced by the query does not exist."""

    def __init__(self, table: str, schema: str | None = None):
        location = f" in schema '{schema}'" if schema else ""
        super().__init__(
            f"Table '{table}' not found{location}.\n\n"
            f"Suggestions:\n"
            f"1. Check table name spelling in the query\n"
            f"2. For schema files, make sure the table is listed under 'tables:'"
        )
        self.table = table


class InsertBuildError(QueryseedError):
    """INSERT statement could not be rendered."""

    pass
