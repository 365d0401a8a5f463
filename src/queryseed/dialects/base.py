"""Dialect handler interface and the rendering rules dialects share."""

import json
import re
from abc import ABC, abstractmethod
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from queryseed.exceptions import InsertBuildError
from queryseed.models import TypeCategory, categorize_type
from queryseed.sqltext import mask_quotes, matching_paren, split_commas, split_qualified

_INSERT = re.compile(r"^\s*INSERT\s+INTO\s+(?P<table>.+?)\s*\(", re.IGNORECASE | re.DOTALL)
_VALUES = re.compile(r"\)\s*VALUES\s*\(", re.IGNORECASE)
_PLAIN_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")
_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_DATE_ADD = re.compile(
    r"DATE_(ADD|SUB)\s*\(\s*(.+?)\s*,\s*INTERVAL\s+(\d+)\s+(\w+?)S?\s*\)", re.IGNORECASE
)
_YEAR_FN = re.compile(r"\b(YEAR|MONTH|DAY)\s*\(\s*([^()]+?)\s*\)", re.IGNORECASE)
_TYPE_WITH_ARGS = re.compile(r"^\s*(\w+)\s*(\(\s*[\d\s,]+\))?(.*)$")


class DatabaseType(str, Enum):
    """Database engines with a dialect handler."""

    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLSERVER = "sqlserver"
    ORACLE = "oracle"


class DialectHandler(ABC):
    """
    Everything that differs between SQL engines.

    Subclasses provide quoting, literal syntax and the small set of
    engine-specific clauses. Every other component goes through a handler
    and never branches on the database type itself.
    """

    database_type: DatabaseType
    statement_terminator: str = ";"
    reserved_words: frozenset[str] = frozenset()

    # Identifiers

    @abstractmethod
    def quote(self, name: str) -> str:
        """Unconditionally quote one identifier."""

    def needs_quoting(self, name: str) -> bool:
        """Reserved words, special characters and leading digits need quotes."""
        if not name:
            return False
        if name.upper() in self.reserved_words:
            return True
        return _PLAIN_IDENTIFIER.match(name) is None

    def escape_identifier(self, name: str) -> str:
        """Quote an identifier when the engine requires it."""
        return self.quote(name) if self.needs_quoting(name) else name

    def unescape_identifier(self, text: str) -> str:
        """Strip this dialect's identifier quoting."""
        text = text.strip()
        for opener, closer in (("`", "`"), ('"', '"'), ("[", "]")):
            if len(text) >= 2 and text[0] == opener and text[-1] == closer:
                return text[1:-1].replace(closer * 2, closer)
        return text

    def qualified_name(self, table: str, schema: str | None = None) -> str:
        if schema:
            return f"{self.escape_identifier(schema)}.{self.escape_identifier(table)}"
        return self.escape_identifier(table)

    # Date functions and types

    @abstractmethod
    def current_timestamp_sql(self) -> str:
        """Expression for the current date and time."""

    def current_date_sql(self) -> str:
        return "CURRENT_DATE"

    @abstractmethod
    def date_add_sql(self, expression: str, amount: int, unit: str) -> str:
        """Expression adding ``amount`` units (DAY, MONTH, ...) to a date."""

    def date_offset_sql(self, days: int) -> str:
        """Current date and time shifted by a number of days."""
        return self.date_add_sql(self.current_timestamp_sql(), days, "DAY")

    def date_part_sql(self, part: str, expression: str) -> str:
        return f"EXTRACT({part.upper()} FROM {expression})"

    def convert_date_function(self, expression: str) -> str:
        """
        Rewrite a MySQL date expression for this engine.

        Handles ``NOW()``, ``CURDATE()``, ``CURRENT_TIMESTAMP``,
        ``DATE_ADD``/``DATE_SUB`` with ``INTERVAL n unit`` and
        ``YEAR()``/``MONTH()``/``DAY()``. Unknown text is returned unchanged.
        """
        if not expression:
            return expression

        def date_add(match: re.Match) -> str:
            amount = int(match.group(3))
            if match.group(1).upper() == "SUB":
                amount = -amount
            inner = self.convert_date_function(match.group(2))
            return self.date_add_sql(inner, amount, match.group(4).upper())

        converted = _DATE_ADD.sub(date_add, expression)
        converted = _YEAR_FN.sub(
            lambda m: self.date_part_sql(m.group(1), m.group(2)), converted
        )
        converted = re.sub(r"\bNOW\s*\(\s*\)", self.current_timestamp_sql(), converted, flags=re.IGNORECASE)
        converted = re.sub(r"\bCURDATE\s*\(\s*\)", self.current_date_sql(), converted, flags=re.IGNORECASE)
        return converted

    type_map: dict[str, str] = {}

    def convert_data_type(self, mysql_type: str) -> str:
        """
        Translate a MySQL column type to this engine's spelling.

        Size and precision arguments are kept when the target type takes them.
        """
        if not mysql_type:
            return mysql_type
        match = _TYPE_WITH_ARGS.match(mysql_type)
        if match is None:
            return mysql_type
        base, args = match.group(1).upper(), match.group(2) or ""
        full = f"{base}{args.replace(' ', '')}"
        if full in self.type_map:
            return self.type_map[full]
        if base not in self.type_map:
            return mysql_type
        target = self.type_map[base]
        if args and "(" not in target and self.keeps_type_args(target):
            target = f"{target}{args.replace(' ', '')}"
        return target

    def keeps_type_args(self, target: str) -> bool:
        return target.upper() in {"VARCHAR", "VARCHAR2", "NVARCHAR", "CHAR", "NCHAR", "NUMBER", "NUMERIC", "DECIMAL"}

    # Clauses

    @abstractmethod
    def pagination_syntax(self, offset: int, limit: int) -> str: ...

    @abstractmethod
    def auto_increment_syntax(self, table: str, column: str) -> str: ...

    # Literals

    def format_value(self, value: Any, data_type: str = "") -> str:
        """
        Render a Python value as a SQL literal.

        Args:
            value: Value to render (None, bool, int, Decimal, float, str,
                date, datetime, time, bytes, UUID, dict/list for JSON)
            data_type: Declared column type; decides how 0/1 and strings
                are read for boolean and date columns

        Returns:
            Literal text ready to embed in a statement
        """
        category = categorize_type(data_type) if data_type else None
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return self.format_bool(value)
        if category == TypeCategory.BOOLEAN and isinstance(value, int) and value in (0, 1):
            return self.format_bool(bool(value))
        if isinstance(value, int):
            return str(value)
        if isinstance(value, Decimal):
            return format(value, "f")
        if isinstance(value, float):
            return repr(value)
        if isinstance(value, datetime):
            return self.format_datetime(value)
        if isinstance(value, date):
            return self.format_date(value)
        if isinstance(value, time):
            return self.format_string(value.isoformat())
        if isinstance(value, (bytes, bytearray, memoryview)):
            return self.format_bytes(bytes(value))
        if isinstance(value, UUID):
            return self.format_string(str(value))
        if isinstance(value, (dict, list)):
            return self.format_string(json.dumps(value))
        return self.format_string(str(value))

    def format_bool(self, value: bool) -> str:
        return "TRUE" if value else "FALSE"

    def format_string(self, value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    def format_date(self, value: date) -> str:
        return self.format_string(value.isoformat())

    def format_datetime(self, value: datetime) -> str:
        return self.format_string(value.isoformat(sep=" "))

    @abstractmethod
    def format_bytes(self, value: bytes) -> str: ...

    def parse_literal(self, text: str, data_type: str = "") -> Any:
        """
        Inverse of :meth:`format_value`.

        Args:
            text: Literal text as rendered by this dialect
            data_type: Declared column type used to pick the Python type

        Returns:
            Python value

        Raises:
            InsertBuildError: If the text is not a literal of this dialect
        """
        text = text.strip()
        category = categorize_type(data_type) if data_type else None
        upper = text.upper()

        if upper == "NULL":
            return None
        if upper in ("TRUE", "FALSE"):
            return upper == "TRUE"

        special = self.parse_special_literal(text)
        if special is not None:
            return special

        string = self.parse_string(text)
        if string is not None:
            return self._from_string(string, category)

        if _NUMBER.match(text):
            if category == TypeCategory.BOOLEAN and text in ("0", "1"):
                return text == "1"
            if re.match(r"^[+-]?\d+$", text):
                return int(text)
            if category == TypeCategory.FLOAT or "e" in text.lower():
                return float(text)
            return Decimal(text)

        raise InsertBuildError(f"Not a {self.database_type.value} literal: {text}")

    def parse_special_literal(self, text: str) -> Any:
        """Hook for dialect-only literal forms; None when not applicable."""
        return None

    def parse_string(self, text: str) -> str | None:
        """Unquote a string literal; None when the text is not one."""
        if is_single_string_literal(text):
            return text[1:-1].replace("''", "'")
        return None

    def _from_string(self, value: str, category: TypeCategory | None) -> Any:
        if category == TypeCategory.DATE:
            return date.fromisoformat(value)
        if category == TypeCategory.DATETIME:
            return datetime.fromisoformat(value)
        if category == TypeCategory.TIME:
            return time.fromisoformat(value)
        if category == TypeCategory.UUID:
            return UUID(value)
        if category == TypeCategory.JSON:
            return json.loads(value)
        return value

    # Statements

    def parse_insert(self, sql: str) -> tuple[str | None, str, list[str], list[str]]:
        """
        Split an INSERT produced by this dialect into its parts.

        Returns:
            (schema, table, column names, literal texts)

        Raises:
            InsertBuildError: If the text is not a single-row INSERT
        """
        text = sql.strip()
        if self.statement_terminator and text.endswith(self.statement_terminator):
            text = text[: -len(self.statement_terminator)].rstrip()

        match = _INSERT.match(text)
        if match is None:
            raise InsertBuildError(f"Not an INSERT statement: {sql[:80]}")
        columns_open = match.end() - 1
        columns_close = matching_paren(text, columns_open)
        values_match = _VALUES.match(text, columns_close) if columns_close != -1 else None
        if values_match is None:
            raise InsertBuildError(f"INSERT without VALUES list: {sql[:80]}")
        values_open = values_match.end() - 1
        values_close = matching_paren(text, values_open)
        if values_close == -1 or text[values_close + 1:].strip():
            raise InsertBuildError(f"Unbalanced VALUES list: {sql[:80]}")

        parts = [self.unescape_identifier(p) for p in split_qualified(match.group("table"))]
        schema = parts[-2] if len(parts) > 1 else None
        columns = [
            self.unescape_identifier(c) for c in split_commas(text[columns_open + 1:columns_close])
        ]
        values = split_commas(text[values_open + 1:values_close])
        if len(columns) != len(values):
            raise InsertBuildError(
                f"INSERT has {len(columns)} columns but {len(values)} values: {sql[:80]}"
            )
        return schema, parts[-1], columns, values

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def unescape_backslashes(body: str) -> str:
    """Undo MySQL-style backslash escaping inside a string literal body."""
    out = []
    i = 0
    escapes = {"n": "\n", "r": "\r", "t": "\t", "0": "\0", "\\": "\\", "'": "'", '"': '"'}
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            out.append(escapes.get(body[i + 1], body[i + 1]))
            i += 2
        elif ch == "'" and i + 1 < len(body) and body[i + 1] == "'":
            out.append("'")
            i += 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def is_single_string_literal(text: str) -> bool:
    """Whether text is one quoted literal (not two adjacent ones)."""
    masked = mask_quotes(text)
    return len(text) >= 2 and text[0] == "'" and masked.find("'", 1) == len(text) - 1
