"""Render synthesized rows as dialect-correct INSERT statements."""

import logging
from collections.abc import Iterable

from queryseed.dialects.base import DialectHandler
from queryseed.exceptions import InsertBuildError
from queryseed.models import GeneratedRow, InsertStatement, TableInfo

logger = logging.getLogger(__name__)


class InsertBuilder:
    """
    Turn GeneratedRow objects into INSERT text for one dialect.

    Columns follow schema declaration order; identity and generated columns
    are left to the database.
    """

    def __init__(self, dialect: DialectHandler):
        self.dialect = dialect

    def build(self, row: GeneratedRow, table_info: TableInfo, priority: int = 0) -> InsertStatement:
        """
        Render one row.

        Args:
            row: Synthesized values
            table_info: Table metadata
            priority: Dependency priority carried into the statement

        Returns:
            InsertStatement

        Raises:
            InsertBuildError: If the table has no insertable column
        """
        columns = table_info.insertable_columns
        if not columns:
            raise InsertBuildError(
                f"Table '{table_info.name}' has no insertable columns "
                f"(every column is identity or generated)"
            )

        table = self.dialect.qualified_name(table_info.name, table_info.schema)
        names = ", ".join(self.dialect.escape_identifier(col.name) for col in columns)
        values = ", ".join(
            self.dialect.format_value(row.get(col.name), col.data_type) for col in columns
        )
        sql = f"INSERT INTO {table} ({names}) VALUES ({values}){self.dialect.statement_terminator}"
        return InsertStatement(table=table_info.name, sql=sql, priority=priority)

    def build_many(
        self, items: Iterable[tuple[GeneratedRow, TableInfo, int]]
    ) -> list[InsertStatement]:
        """Render several rows, lowest priority first (stable)."""
        statements = [self.build(row, info, priority) for row, info, priority in items]
        return sorted(statements, key=lambda statement: statement.priority)

    def render_script(self, statements: Iterable[InsertStatement], header: str | None = None) -> str:
        """
        Join statements into one SQL script.

        Args:
            statements: Statements in execution order
            header: Optional comment placed at the top

        Returns:
            Script text ending with a newline
        """
        lines = []
        if header:
            lines.extend(f"-- {line}" if line else "--" for line in header.splitlines())
        lines.extend(statement.sql for statement in statements)
        return "\n".join(lines) + "\n"
