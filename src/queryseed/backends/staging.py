"""Staging backend - in-memory sink for running without a database."""

import logging
from typing import Any

from queryseed.dependency import SchemaProvider
from queryseed.dialects.base import DialectHandler
from queryseed.exceptions import InsertBuildError, SinkExecutionError, TableNotFoundError
from queryseed.models import TableInfo

logger = logging.getLogger(__name__)


class StagingBackend:
    """
    In-memory sink that executes the INSERT text it is given.

    Simulates database behavior:
    - Parses the statement back into values with the dialect
    - Assigns identity columns (sequential IDs starting from 1)
    - Enforces NOT NULL, primary key and UNIQUE constraints
    - Stores rows in memory

    Use case: dry runs, unit tests, offline development.

    Args:
        dialect: Dialect the statements are written in
        provider: Schema provider for table metadata
        fail_after: Fail every statement after this many succeeded (testing)
    """

    def __init__(
        self,
        dialect: DialectHandler,
        provider: SchemaProvider,
        fail_after: int | None = None,
    ):
        self.dialect = dialect
        self.provider = provider
        self.fail_after = fail_after
        self.executed = 0
        self._data: dict[str, list[dict[str, Any]]] = {}
        self._sequences: dict[tuple[str, str], int] = {}
        self._last: dict[str, dict[str, Any]] = {}

    def execute(self, sql: str) -> int:
        """
        Execute one INSERT statement.

        Returns:
            Number of rows inserted (always 1)

        Raises:
            SinkExecutionError: If the statement cannot be parsed or breaks
                a table constraint
        """
        if self.fail_after is not None and self.executed >= self.fail_after:
            raise SinkExecutionError(
                f"Injected failure after {self.fail_after} statements", sql
            )

        try:
            _schema, table, columns, texts = self.dialect.parse_insert(sql)
            table_info = self.provider.get_table_info(table)
            row = self._parse_row(table_info, columns, texts)
        except (InsertBuildError, TableNotFoundError) as e:
            raise SinkExecutionError(str(e), sql) from e

        self._fill_missing(table_info, row, sql)
        self._check_unique(table_info, row, sql)

        self._data.setdefault(table_info.name, []).append(row)
        self._last[table_info.name.lower()] = row
        self.executed += 1
        logger.debug(f"Staged {table_info.name} row: {row}")
        return 1

    def _parse_row(self, table_info: TableInfo, columns: list[str], texts: list[str]) -> dict[str, Any]:
        values = {}
        for name, text in zip(columns, texts):
            column = table_info.get_column(name)
            if column is None:
                raise InsertBuildError(f"Column '{name}' does not exist in '{table_info.name}'")
            values[column.name] = self.dialect.parse_literal(text, column.data_type)
        # Keep schema column order
        return {col.name: values.get(col.name) for col in table_info.columns if col.name in values}

    def _fill_missing(self, table_info: TableInfo, row: dict[str, Any], sql: str) -> None:
        for column in table_info.columns:
            key = (table_info.name, column.name)
            if column.name not in row and column.is_identity:
                self._sequences[key] = self._sequences.get(key, 0) + 1
                row[column.name] = self._sequences[key]
            elif column.is_identity and isinstance(row.get(column.name), int):
                self._sequences[key] = max(self._sequences.get(key, 0), row[column.name])
            elif column.name not in row:
                row[column.name] = None

            if row[column.name] is None and not column.is_nullable and not column.is_generated:
                if column.default_value is not None:
                    continue
                raise SinkExecutionError(
                    f"NULL value in column '{column.name}' of '{table_info.name}' "
                    f"violates not-null constraint",
                    sql,
                )
        # Schema order for columns added above
        ordered = {col.name: row[col.name] for col in table_info.columns}
        row.clear()
        row.update(ordered)

    def _check_unique(self, table_info: TableInfo, row: dict[str, Any], sql: str) -> None:
        existing = self._data.get(table_info.name, [])
        keys = [[name] for name in table_info.primary_keys] if len(table_info.primary_keys) == 1 else []
        if len(table_info.primary_keys) > 1:
            keys.append(list(table_info.primary_keys))
        keys.extend(
            [col.name] for col in table_info.columns
            if (col.is_unique or (col.is_primary_key and not table_info.primary_keys))
            and [col.name] not in keys
        )

        for key in keys:
            candidate = tuple(row.get(name) for name in key)
            if any(value is None for value in candidate):
                continue
            if any(tuple(other.get(name) for name in key) == candidate for other in existing):
                raise SinkExecutionError(
                    f"Duplicate key value violates unique constraint on "
                    f"{table_info.name}({', '.join(key)}): {candidate!r}",
                    sql,
                )

    def last_inserted(self, table_info: TableInfo) -> dict[str, Any]:
        """Row most recently inserted into a table, with assigned values."""
        return dict(self._last.get(table_info.name.lower(), {}))

    def count_rows(self, table: str) -> int:
        for name, rows in self._data.items():
            if name.lower() == table.lower():
                return len(rows)
        return 0

    def get_data(self, table_name: str) -> list[dict[str, Any]]:
        """
        Get in-memory data for inspection.

        Args:
            table_name: Table name

        Returns:
            List of row dicts for the table
        """
        for name, rows in self._data.items():
            if name.lower() == table_name.lower():
                return rows
        return []

    def clear(self) -> None:
        """Clear all in-memory data and sequences."""
        self._data.clear()
        self._sequences.clear()
        self._last.clear()
        self.executed = 0
