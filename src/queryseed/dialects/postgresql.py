"""PostgreSQL dialect."""

import re

from queryseed.dialects.base import DatabaseType, DialectHandler

POSTGRESQL_RESERVED_WORDS = frozenset({
    "ALL", "ANALYSE", "ANALYZE", "AND", "ANY", "ARRAY", "AS", "ASC", "ASYMMETRIC",
    "BOTH", "CASE", "CAST", "CHECK", "COLLATE", "COLUMN", "CONSTRAINT", "CREATE",
    "CURRENT_CATALOG", "CURRENT_DATE", "CURRENT_ROLE", "CURRENT_TIME",
    "CURRENT_TIMESTAMP", "CURRENT_USER", "DEFAULT", "DEFERRABLE", "DESC",
    "DISTINCT", "DO", "ELSE", "END", "EXCEPT", "FALSE", "FETCH", "FOR", "FOREIGN",
    "FROM", "GRANT", "GROUP", "HAVING", "IN", "INITIALLY", "INTERSECT", "INTO",
    "LATERAL", "LEADING", "LIMIT", "LOCALTIME", "LOCALTIMESTAMP", "NOT", "NULL",
    "OFFSET", "ON", "ONLY", "OR", "ORDER", "PLACING", "PRIMARY", "REFERENCES",
    "RETURNING", "SELECT", "SESSION_USER", "SOME", "SYMMETRIC", "TABLE", "THEN",
    "TO", "TRAILING", "TRUE", "UNION", "UNIQUE", "USER", "USING", "VARIADIC",
    "WHEN", "WHERE", "WINDOW", "WITH",
})

_BYTEA = re.compile(r"^'\\x([0-9A-Fa-f]*)'::bytea$")
_CAST = re.compile(r"^('(?:[^']|'')*')::\w+(?:\s+\w+)*$")


class PostgreSQLDialect(DialectHandler):
    """
    PostgreSQL rendering rules.

    Identifiers with upper-case letters are quoted so their case survives.
    """

    database_type = DatabaseType.POSTGRESQL
    reserved_words = POSTGRESQL_RESERVED_WORDS

    type_map = {
        "TINYINT(1)": "BOOLEAN",
        "TINYINT": "SMALLINT",
        "MEDIUMINT": "INTEGER",
        "INT": "INTEGER",
        "DOUBLE": "DOUBLE PRECISION",
        "FLOAT": "REAL",
        "DATETIME": "TIMESTAMP",
        "LONGTEXT": "TEXT",
        "MEDIUMTEXT": "TEXT",
        "TINYTEXT": "TEXT",
        "BLOB": "BYTEA",
        "LONGBLOB": "BYTEA",
        "MEDIUMBLOB": "BYTEA",
        "TINYBLOB": "BYTEA",
        "VARBINARY": "BYTEA",
        "BINARY": "BYTEA",
        "BIT": "BOOLEAN",
        "JSON": "JSONB",
        "ENUM": "TEXT",
        "SET": "TEXT",
        "YEAR": "SMALLINT",
        "VARCHAR": "VARCHAR",
        "CHAR": "CHAR",
        "DECIMAL": "NUMERIC",
    }

    def quote(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def needs_quoting(self, name: str) -> bool:
        return super().needs_quoting(name) or name != name.lower()

    def current_timestamp_sql(self) -> str:
        return "NOW()"

    def date_add_sql(self, expression: str, amount: int, unit: str) -> str:
        sign = "-" if amount < 0 else "+"
        unit = unit.lower()
        plural = unit if abs(amount) == 1 else f"{unit}s"
        return f"{expression} {sign} INTERVAL '{abs(amount)} {plural}'"

    def pagination_syntax(self, offset: int, limit: int) -> str:
        return f"LIMIT {limit} OFFSET {offset}"

    def auto_increment_syntax(self, table: str, column: str) -> str:
        return "GENERATED ALWAYS AS IDENTITY"

    def format_bytes(self, value: bytes) -> str:
        return f"'\\x{value.hex()}'::bytea"

    def parse_special_literal(self, text: str):
        match = _BYTEA.match(text)
        if match:
            return bytes.fromhex(match.group(1))
        return None

    def parse_string(self, text: str) -> str | None:
        cast = _CAST.match(text)
        if cast:
            text = cast.group(1)
        if len(text) >= 3 and text[:2].upper() == "E'":
            return None
        return super().parse_string(text)
