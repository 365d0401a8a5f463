"""Direct backend - executes INSERT statements over a psycopg connection."""

import logging
from typing import Any

import psycopg
from psycopg import Connection, sql

from queryseed.dialects.base import DialectHandler
from queryseed.dialects.postgresql import PostgreSQLDialect
from queryseed.exceptions import InsertBuildError, SinkExecutionError
from queryseed.models import TableInfo

logger = logging.getLogger(__name__)


class DirectBackend:
    """
    Execute generated INSERT statements against PostgreSQL.

    Uses PostgreSQL's RETURNING clause to capture auto-generated values
    (IDENTITY columns, defaults) after insertion, so dependent rows can
    reference them.
    """

    def __init__(self, conn: Connection, schema: str = "public", dialect: DialectHandler | None = None):
        """
        Initialize backend.

        Args:
            conn: PostgreSQL connection
            schema: Schema name for qualified table names
            dialect: Dialect the statements are written in
        """
        self.conn = conn
        self.schema = schema
        self.dialect = dialect or PostgreSQLDialect()
        self._last: dict[str, dict[str, Any]] = {}

    def execute(self, statement: str) -> int:
        """
        Execute one INSERT and remember the row the database stored.

        Returns:
            Number of affected rows

        Raises:
            SinkExecutionError: If the database rejects the statement
        """
        try:
            _schema, table, _columns, _values = self.dialect.parse_insert(statement)
        except InsertBuildError as e:
            raise SinkExecutionError(str(e), statement) from e

        text = statement.strip()
        if text.endswith(";"):
            text = text[:-1].rstrip()

        try:
            with self.conn.cursor() as cur:
                cur.execute(f"{text} RETURNING *")
                result = cur.fetchone()
                names = [desc.name for desc in cur.description or []]
                affected = cur.rowcount
            self.conn.commit()
        except psycopg.Error as e:
            self.conn.rollback()
            raise SinkExecutionError(str(e).strip(), statement) from e

        if result is not None:
            self._last[table.lower()] = dict(zip(names, result))
        return affected

    def last_inserted(self, table_info: TableInfo) -> dict[str, Any]:
        """Row most recently inserted into a table, as returned by the database."""
        return dict(self._last.get(table_info.name.lower(), {}))

    def count_rows(self, table: str) -> int:
        query = sql.SQL("SELECT COUNT(*) FROM {}.{}").format(
            sql.Identifier(self.schema), sql.Identifier(table)
        )
        try:
            with self.conn.cursor() as cur:
                cur.execute(query)
                count = cur.fetchone()[0]
        except psycopg.Error as e:
            self.conn.rollback()
            raise SinkExecutionError(str(e).strip(), query.as_string(self.conn)) from e
        return count

    def fetch_count(self, select_sql: str) -> int:
        """
        Count the rows a SELECT returns.

        Args:
            select_sql: SELECT statement (trailing semicolon allowed)

        Returns:
            Row count

        Raises:
            SinkExecutionError: If the query fails
        """
        text = select_sql.strip().rstrip(";")
        try:
            with self.conn.cursor() as cur:
                cur.execute(f"SELECT COUNT(*) FROM ({text}) AS queryseed_verify")
                count = cur.fetchone()[0]
            self.conn.commit()
        except psycopg.Error as e:
            self.conn.rollback()
            raise SinkExecutionError(str(e).strip(), select_sql) from e
        return count
