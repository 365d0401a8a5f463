"""Dialect registry keyed on database type."""

from queryseed.dialects.base import DatabaseType, DialectHandler
from queryseed.dialects.mysql import MySQLDialect
from queryseed.dialects.oracle import OracleDialect
from queryseed.dialects.postgresql import PostgreSQLDialect
from queryseed.dialects.sqlserver import SQLServerDialect
from queryseed.exceptions import UnsupportedDialectError

_ALIASES = {
    "mysql": DatabaseType.MYSQL,
    "mariadb": DatabaseType.MYSQL,
    "postgres": DatabaseType.POSTGRESQL,
    "postgresql": DatabaseType.POSTGRESQL,
    "pg": DatabaseType.POSTGRESQL,
    "sqlserver": DatabaseType.SQLSERVER,
    "sql server": DatabaseType.SQLSERVER,
    "mssql": DatabaseType.SQLSERVER,
    "oracle": DatabaseType.ORACLE,
}


class DialectFactory:
    """Registry of dialect handler classes."""

    def __init__(self):
        self._handlers: dict[DatabaseType, type[DialectHandler]] = {}

    def register(self, database_type: DatabaseType, handler_class: type[DialectHandler]) -> None:
        """
        Register a handler class for a database type.

        Raises:
            ValueError: If the class is not a DialectHandler
        """
        if not (isinstance(handler_class, type) and issubclass(handler_class, DialectHandler)):
            raise ValueError(
                f"Dialect handler must subclass DialectHandler. "
                f"Got {handler_class!r}."
            )
        self._handlers[database_type] = handler_class

    def resolve_type(self, database_type: DatabaseType | str) -> DatabaseType:
        """
        Normalize a database type name.

        Raises:
            UnsupportedDialectError: If the name is unknown
        """
        if isinstance(database_type, DatabaseType):
            return database_type
        key = " ".join(str(database_type).strip().lower().split())
        if key not in _ALIASES:
            raise UnsupportedDialectError(str(database_type), self.list_dialects())
        return _ALIASES[key]

    def create(self, database_type: DatabaseType | str) -> DialectHandler:
        resolved = self.resolve_type(database_type)
        handler_class = self._handlers.get(resolved)
        if handler_class is None:
            raise UnsupportedDialectError(str(database_type), self.list_dialects())
        return handler_class()

    def list_dialects(self) -> list[str]:
        return [database_type.value for database_type in self._handlers]


_factory = DialectFactory()
_factory.register(DatabaseType.MYSQL, MySQLDialect)
_factory.register(DatabaseType.POSTGRESQL, PostgreSQLDialect)
_factory.register(DatabaseType.SQLSERVER, SQLServerDialect)
_factory.register(DatabaseType.ORACLE, OracleDialect)


def get_dialect(database_type: DatabaseType | str) -> DialectHandler:
    """
    Get the handler for a database type.

    Args:
        database_type: DatabaseType or a case-insensitive name such as
            "mysql", "postgres", "sql server" or "oracle"

    Returns:
        A new DialectHandler instance

    Raises:
        UnsupportedDialectError: If no handler is registered for the type
    """
    return _factory.create(database_type)


def list_dialects() -> list[str]:
    """List registered database types."""
    return _factory.list_dialects()
