"""Microsoft SQL Server dialect."""

import re

from queryseed.dialects.base import DatabaseType, DialectHandler

_HEX = re.compile(r"^0x([0-9A-Fa-f]*)$")


class SQLServerDialect(DialectHandler):
    """
    SQL Server rendering rules.

    Identifiers are always bracket-quoted, strings are Unicode (``N'...'``)
    and booleans are BIT values.
    """

    database_type = DatabaseType.SQLSERVER

    type_map = {
        "TINYINT(1)": "BIT",
        "BOOLEAN": "BIT",
        "BOOL": "BIT",
        "MEDIUMINT": "INT",
        "DOUBLE": "FLOAT",
        "DATETIME": "DATETIME2",
        "TIMESTAMP": "DATETIME2",
        "TEXT": "NVARCHAR(MAX)",
        "LONGTEXT": "NVARCHAR(MAX)",
        "MEDIUMTEXT": "NVARCHAR(MAX)",
        "TINYTEXT": "NVARCHAR(255)",
        "VARCHAR": "NVARCHAR",
        "BLOB": "VARBINARY(MAX)",
        "LONGBLOB": "VARBINARY(MAX)",
        "MEDIUMBLOB": "VARBINARY(MAX)",
        "TINYBLOB": "VARBINARY(255)",
        "JSON": "NVARCHAR(MAX)",
        "ENUM": "NVARCHAR(50)",
        "SET": "NVARCHAR(255)",
        "YEAR": "SMALLINT",
    }

    def quote(self, name: str) -> str:
        return "[" + name.replace("]", "]]") + "]"

    def escape_identifier(self, name: str) -> str:
        return self.quote(name)

    def current_timestamp_sql(self) -> str:
        return "GETDATE()"

    def current_date_sql(self) -> str:
        return "CAST(GETDATE() AS DATE)"

    def date_add_sql(self, expression: str, amount: int, unit: str) -> str:
        return f"DATEADD({unit.lower()}, {amount}, {expression})"

    def date_part_sql(self, part: str, expression: str) -> str:
        return f"DATEPART({part.lower()}, {expression})"

    def pagination_syntax(self, offset: int, limit: int) -> str:
        return f"OFFSET {offset} ROWS FETCH NEXT {limit} ROWS ONLY"

    def auto_increment_syntax(self, table: str, column: str) -> str:
        return "IDENTITY(1,1)"

    def format_bool(self, value: bool) -> str:
        return "1" if value else "0"

    def format_string(self, value: str) -> str:
        return "N'" + value.replace("'", "''") + "'"

    def format_bytes(self, value: bytes) -> str:
        return f"0x{value.hex().upper()}"

    def parse_special_literal(self, text: str):
        match = _HEX.match(text)
        if match:
            return bytes.fromhex(match.group(1))
        return None

    def parse_string(self, text: str) -> str | None:
        if len(text) >= 3 and text[:2].upper() == "N'":
            text = text[1:]
        return super().parse_string(text)
