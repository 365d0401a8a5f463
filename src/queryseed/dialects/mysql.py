"""MySQL / MariaDB dialect."""

from queryseed.dialects.base import DatabaseType, DialectHandler, unescape_backslashes

MYSQL_RESERVED_WORDS = frozenset({
    "ADD", "ALL", "ALTER", "AND", "AS", "ASC", "BETWEEN", "BY", "CASE", "CHECK",
    "COLUMN", "CONDITION", "CONSTRAINT", "CREATE", "CROSS", "DATABASE", "DEFAULT",
    "DELETE", "DESC", "DISTINCT", "DROP", "ELSE", "EXISTS", "FALSE", "FOR",
    "FOREIGN", "FROM", "FULLTEXT", "GROUP", "HAVING", "IN", "INDEX", "INNER",
    "INSERT", "INTERVAL", "INTO", "IS", "JOIN", "KEY", "KEYS", "LEFT", "LIKE",
    "LIMIT", "LOCK", "MATCH", "NOT", "NULL", "ON", "OR", "ORDER", "OUTER",
    "PRIMARY", "RANGE", "READ", "REFERENCES", "RIGHT", "ROW", "ROWS", "SELECT",
    "SET", "SHOW", "TABLE", "THEN", "TO", "TRUE", "UNION", "UNIQUE", "UPDATE",
    "USAGE", "USE", "USING", "VALUES", "WHEN", "WHERE", "WITH",
})


class MySQLDialect(DialectHandler):
    """
    MySQL rendering rules.

    Identifiers are backtick-quoted only when required. String literals
    escape backslashes because MySQL treats them as escape characters.
    """

    database_type = DatabaseType.MYSQL
    reserved_words = MYSQL_RESERVED_WORDS

    def quote(self, name: str) -> str:
        return "`" + name.replace("`", "``") + "`"

    def current_timestamp_sql(self) -> str:
        return "NOW()"

    def current_date_sql(self) -> str:
        return "CURDATE()"

    def date_add_sql(self, expression: str, amount: int, unit: str) -> str:
        if amount < 0:
            return f"DATE_SUB({expression}, INTERVAL {-amount} {unit.upper()})"
        return f"DATE_ADD({expression}, INTERVAL {amount} {unit.upper()})"

    def date_part_sql(self, part: str, expression: str) -> str:
        return f"{part.upper()}({expression})"

    def convert_date_function(self, expression: str) -> str:
        # Queries are written in MySQL syntax to begin with
        return expression

    def convert_data_type(self, mysql_type: str) -> str:
        return mysql_type

    def pagination_syntax(self, offset: int, limit: int) -> str:
        return f"LIMIT {limit} OFFSET {offset}"

    def auto_increment_syntax(self, table: str, column: str) -> str:
        return "AUTO_INCREMENT"

    def format_string(self, value: str) -> str:
        return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"

    def format_bytes(self, value: bytes) -> str:
        return f"X'{value.hex().upper()}'"

    def parse_special_literal(self, text: str):
        if len(text) >= 3 and text[:2].upper() == "X'" and text.endswith("'"):
            return bytes.fromhex(text[2:-1])
        return None

    def parse_string(self, text: str) -> str | None:
        if super().parse_string(text) is None:
            return None
        return unescape_backslashes(text[1:-1])
