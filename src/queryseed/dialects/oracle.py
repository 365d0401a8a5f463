"""Oracle dialect."""

import re
from datetime import date, datetime

from queryseed.dialects.base import DatabaseType, DialectHandler

ORACLE_RESERVED_WORDS = frozenset({
    "ACCESS", "ADD", "ALL", "ALTER", "AND", "ANY", "AS", "ASC", "AUDIT",
    "BETWEEN", "BY", "CHAR", "CHECK", "CLUSTER", "COLUMN", "COMMENT", "COMPRESS",
    "CONNECT", "CREATE", "CURRENT", "DATE", "DECIMAL", "DEFAULT", "DELETE",
    "DESC", "DISTINCT", "DROP", "ELSE", "EXCLUSIVE", "EXISTS", "FILE", "FLOAT",
    "FOR", "FROM", "GRANT", "GROUP", "HAVING", "IDENTIFIED", "IMMEDIATE", "IN",
    "INCREMENT", "INDEX", "INITIAL", "INSERT", "INTEGER", "INTERSECT", "INTO",
    "IS", "LEVEL", "LIKE", "LOCK", "LONG", "MAXEXTENTS", "MINUS", "MODE",
    "MODIFY", "NOAUDIT", "NOCOMPRESS", "NOT", "NOWAIT", "NULL", "NUMBER", "OF",
    "OFFLINE", "ON", "ONLINE", "OPTION", "OR", "ORDER", "PCTFREE", "PRIOR",
    "PUBLIC", "RAW", "RENAME", "RESOURCE", "REVOKE", "ROW", "ROWID", "ROWNUM",
    "ROWS", "SELECT", "SESSION", "SET", "SHARE", "SIZE", "SMALLINT", "START",
    "SUCCESSFUL", "SYNONYM", "SYSDATE", "TABLE", "THEN", "TO", "TRIGGER", "UID",
    "UNION", "UNIQUE", "UPDATE", "USER", "VALIDATE", "VALUES", "VARCHAR",
    "VARCHAR2", "VIEW", "WHENEVER", "WHERE", "WITH",
})

_TO_DATE = re.compile(r"^TO_DATE\s*\(\s*'([^']*)'\s*,\s*'[^']*'\s*\)$", re.IGNORECASE)
_TO_TIMESTAMP = re.compile(r"^TO_TIMESTAMP\s*\(\s*'([^']*)'\s*,\s*'[^']*'\s*\)$", re.IGNORECASE)
_TO_TIMESTAMP_TZ = re.compile(r"^TO_TIMESTAMP_TZ\s*\(\s*'([^']*)'\s*,\s*'[^']*'\s*\)$", re.IGNORECASE)
_HEXTORAW = re.compile(r"^HEXTORAW\s*\(\s*'([0-9A-Fa-f]*)'\s*\)$", re.IGNORECASE)
_PLAIN = re.compile(r"^[A-Za-z][A-Za-z0-9_$#]*$")


class OracleDialect(DialectHandler):
    """
    Oracle rendering rules.

    Statements carry no terminator (drivers reject a trailing semicolon),
    booleans are ``NUMBER(1)`` values and dates go through ``TO_DATE`` /
    ``TO_TIMESTAMP`` (``TO_TIMESTAMP_TZ`` for aware datetimes).
    """

    database_type = DatabaseType.ORACLE
    statement_terminator = ""
    reserved_words = ORACLE_RESERVED_WORDS

    type_map = {
        "INT": "NUMBER",
        "INTEGER": "NUMBER",
        "BIGINT": "NUMBER",
        "SMALLINT": "NUMBER",
        "TINYINT": "NUMBER",
        "DECIMAL": "NUMBER",
        "NUMERIC": "NUMBER",
        "FLOAT": "NUMBER",
        "DOUBLE": "NUMBER",
        "REAL": "NUMBER",
        "VARCHAR": "VARCHAR2",
        "CHAR": "CHAR",
        "TEXT": "CLOB",
        "LONGTEXT": "CLOB",
        "MEDIUMTEXT": "CLOB",
        "TINYTEXT": "VARCHAR2(255)",
        "BLOB": "BLOB",
        "LONGBLOB": "BLOB",
        "MEDIUMBLOB": "BLOB",
        "TINYBLOB": "BLOB",
        "DATETIME": "TIMESTAMP",
        "TIMESTAMP": "TIMESTAMP",
        "DATE": "DATE",
        "TIME": "VARCHAR2(8)",
        "YEAR": "NUMBER(4)",
        "BOOLEAN": "NUMBER(1)",
        "BOOL": "NUMBER(1)",
        "BIT": "NUMBER(1)",
        "JSON": "CLOB",
        "ENUM": "VARCHAR2(50)",
        "SET": "VARCHAR2(255)",
    }

    def quote(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def needs_quoting(self, name: str) -> bool:
        if not name:
            return False
        if name.upper() in self.reserved_words:
            return True
        if _PLAIN.match(name) is None:
            return True
        # Mixed case only survives quoted
        return name != name.upper() and name != name.lower()

    def current_timestamp_sql(self) -> str:
        return "SYSDATE"

    def current_date_sql(self) -> str:
        return "TRUNC(SYSDATE)"

    def date_add_sql(self, expression: str, amount: int, unit: str) -> str:
        unit = unit.upper()
        if unit == "MONTH":
            return f"ADD_MONTHS({expression}, {amount})"
        if unit == "YEAR":
            return f"ADD_MONTHS({expression}, {amount * 12})"
        days = amount * 7 if unit == "WEEK" else amount
        sign = "-" if days < 0 else "+"
        return f"{expression} {sign} {abs(days)}"

    def convert_date_function(self, expression: str) -> str:
        converted = re.sub(
            r"\bCURTIME\s*\(\s*\)|\bCURRENT_TIME\b(?!STAMP)",
            "TO_CHAR(SYSDATE, 'HH24:MI:SS')",
            expression,
            flags=re.IGNORECASE,
        )
        converted = re.sub(r"\bCURRENT_TIMESTAMP\b", "SYSTIMESTAMP", converted, flags=re.IGNORECASE)
        converted = re.sub(r"\bCURRENT_DATE\b", "TRUNC(SYSDATE)", converted, flags=re.IGNORECASE)
        return super().convert_date_function(converted)

    def pagination_syntax(self, offset: int, limit: int) -> str:
        if offset == 0:
            return f"WHERE ROWNUM <= {limit}"
        return f"WHERE ROWNUM <= {offset + limit} AND ROWNUM > {offset}"

    def auto_increment_syntax(self, table: str, column: str) -> str:
        return f"{table}_seq.NEXTVAL"

    def format_bool(self, value: bool) -> str:
        return "1" if value else "0"

    def format_date(self, value: date) -> str:
        return f"TO_DATE('{value.isoformat()}', 'YYYY-MM-DD')"

    def format_datetime(self, value: datetime) -> str:
        text = value.strftime("%Y-%m-%d %H:%M:%S")
        mask = "YYYY-MM-DD HH24:MI:SS"
        if value.microsecond:
            text += value.strftime(".%f")
            mask += ".FF6"
        if value.utcoffset() is None:
            return f"TO_TIMESTAMP('{text}', '{mask}')"
        offset = value.strftime("%z")
        return f"TO_TIMESTAMP_TZ('{text} {offset[:3]}:{offset[3:5]}', '{mask} TZH:TZM')"

    def format_bytes(self, value: bytes) -> str:
        return f"HEXTORAW('{value.hex().upper()}')"

    def parse_special_literal(self, text: str):
        match = _TO_DATE.match(text)
        if match:
            return date.fromisoformat(match.group(1))
        match = _TO_TIMESTAMP.match(text)
        if match:
            return datetime.fromisoformat(match.group(1))
        match = _TO_TIMESTAMP_TZ.match(text)
        if match:
            return datetime.fromisoformat(match.group(1).replace(" ", "T", 1).replace(" ", ""))
        match = _HEXTORAW.match(text)
        if match:
            return bytes.fromhex(match.group(1))
        return None
