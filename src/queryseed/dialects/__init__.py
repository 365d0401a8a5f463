"""SQL dialect handlers."""

from queryseed.dialects.base import DatabaseType, DialectHandler
from queryseed.dialects.factory import DialectFactory, get_dialect, list_dialects
from queryseed.dialects.mysql import MySQLDialect
from queryseed.dialects.oracle import OracleDialect
from queryseed.dialects.postgresql import PostgreSQLDialect
from queryseed.dialects.sqlserver import SQLServerDialect

__all__ = [
    "DatabaseType",
    "DialectFactory",
    "DialectHandler",
    "MySQLDialect",
    "OracleDialect",
    "PostgreSQLDialect",
    "SQLServerDialect",
    "get_dialect",
    "list_dialects",
]
