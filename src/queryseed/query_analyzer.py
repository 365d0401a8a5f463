"""Identify the tables, aliases and predicate text of a SELECT statement."""

import logging
import re
from dataclasses import dataclass, field

from queryseed.exceptions import ParseError
from queryseed.sqltext import (
    IDENT,
    find_top_level,
    mask_parens,
    quote_identifier,
    split_commas,
    split_qualified,
    strip_comments,
    strip_outer_parens,
    unquote_identifier,
)

logger = logging.getLogger(__name__)

_JOIN = (
    r"\b(?:NATURAL\s+)?(?:INNER\s+|CROSS\s+|(?:LEFT|RIGHT|FULL)(?:\s+OUTER)?\s+)?JOIN\b"
)
_FROM_END = (
    r"\b(?:WHERE|GROUP\s+BY|ORDER\s+BY|HAVING|LIMIT|UNION|INTERSECT|EXCEPT|"
    r"OFFSET|FETCH|FOR\s+UPDATE|WINDOW)\b"
)
_WHERE_END = (
    r"\b(?:GROUP\s+BY|ORDER\s+BY|HAVING|LIMIT|UNION|INTERSECT|EXCEPT|"
    r"OFFSET|FETCH|FOR\s+UPDATE|WINDOW)\b"
)
_TABLE_REF = re.compile(
    rf"^(?P<name>{IDENT}(?:\s*\.\s*{IDENT}){{0,2}})"
    rf"(?:\s+(?:AS\s+)?(?P<alias>{IDENT}))?$",
    re.IGNORECASE | re.DOTALL,
)
_NOT_ALIASES = {
    "ON", "USING", "WHERE", "JOIN", "INNER", "LEFT", "RIGHT", "FULL", "CROSS",
    "NATURAL", "OUTER", "GROUP", "ORDER", "LIMIT", "WITH",
}


@dataclass(frozen=True)
class TableReference:
    """
    One table occurrence in FROM/JOIN.

    Attributes:
        name: Bare table name (quotes stripped)
        alias: Alias used by predicates (defaults to the table name)
        schema: Schema/database qualifier, if any
        quote_style: Quote character the query used for the name
    """

    name: str
    alias: str
    schema: str | None = None
    quote_style: str | None = None

    def render(self) -> str:
        """Reproduce the table name with its original quoting."""
        name = quote_identifier(self.name, self.quote_style)
        if self.schema:
            return f"{quote_identifier(self.schema, self.quote_style)}.{name}"
        return name


@dataclass(frozen=True)
class JoinClause:
    """A JOIN with its ON condition text (empty for CROSS/USING joins)."""

    table: TableReference
    join_type: str
    condition: str = ""


@dataclass
class AnalyzedQuery:
    """
    Result of analyzing one SELECT statement.

    Attributes:
        original_sql: Query text as given
        tables: Table occurrences in FROM/JOIN order (self-joins appear twice)
        where_clause: WHERE predicate text without the keyword ("" if absent)
        join_clauses: JOINs in order, with their ON text
    """

    original_sql: str
    tables: list[TableReference] = field(default_factory=list)
    where_clause: str = ""
    join_clauses: list[JoinClause] = field(default_factory=list)

    def alias_map(self) -> dict[str, TableReference]:
        """Map lowercase alias to its table reference."""
        return {ref.alias.lower(): ref for ref in self.tables}

    def tables_named(self, name: str) -> list[TableReference]:
        """Every occurrence (alias) of a table."""
        lowered = name.lower()
        return [ref for ref in self.tables if ref.name.lower() == lowered]

    def resolve_alias(self, qualifier: str) -> TableReference | None:
        """
        Resolve a column qualifier to a table reference.

        Aliases win; a bare table name is accepted when it occurs once.
        """
        ref = self.alias_map().get(qualifier.lower())
        if ref is not None:
            return ref
        named = self.tables_named(qualifier)
        if len(named) == 1:
            return named[0]
        return None

    @property
    def table_names(self) -> list[str]:
        """Distinct table names in first-seen order."""
        seen: dict[str, str] = {}
        for ref in self.tables:
            seen.setdefault(ref.name.lower(), ref.name)
        return list(seen.values())


class QueryAnalyzer:
    """Extract tables, aliases, JOIN conditions and WHERE text from a SELECT."""

    def analyze(self, sql: str) -> AnalyzedQuery:
        """
        Analyze a SELECT statement.

        Args:
            sql: Query text (comments allowed)

        Returns:
            AnalyzedQuery with tables in FROM/JOIN order

        Raises:
            ParseError: If the text is not a SELECT, has no FROM clause, or
                no table name follows FROM
        """
        if not sql or not sql.strip():
            raise ParseError("empty query", sql or "")

        text = strip_comments(sql).strip().rstrip(";").strip()
        if not re.match(r"^\(*\s*SELECT\b", text, re.IGNORECASE):
            raise ParseError("only SELECT statements are supported", sql)
        text = strip_outer_parens(text)

        from_match = find_top_level(text, r"\bFROM\b")
        if from_match is None:
            raise ParseError("no FROM clause", sql)

        from_end = find_top_level(text, _FROM_END, from_match.end())
        from_text = text[from_match.end():from_end.start() if from_end else len(text)]

        where_clause = ""
        where_match = find_top_level(text, r"\bWHERE\b", from_match.end())
        if where_match is not None:
            where_end = find_top_level(text, _WHERE_END, where_match.end())
            where_clause = text[
                where_match.end():where_end.start() if where_end else len(text)
            ].strip()

        tables, joins = self._parse_from(from_text, sql)
        if not tables:
            raise ParseError("no table name after FROM", sql)

        logger.debug(
            f"Analyzed query: tables={[ref.alias for ref in tables]}, "
            f"joins={len(joins)}, where={'yes' if where_clause else 'no'}"
        )
        return AnalyzedQuery(
            original_sql=sql,
            tables=tables,
            where_clause=where_clause,
            join_clauses=joins,
        )

    def _parse_from(
        self, from_text: str, sql: str
    ) -> tuple[list[TableReference], list[JoinClause]]:
        masked = mask_parens(from_text)
        join_matches = list(re.finditer(_JOIN, masked, re.IGNORECASE))

        head_end = join_matches[0].start() if join_matches else len(from_text)
        tables = [self._parse_table_ref(part, sql) for part in split_commas(from_text[:head_end])]

        joins = []
        for i, match in enumerate(join_matches):
            segment_end = join_matches[i + 1].start() if i + 1 < len(join_matches) else len(from_text)
            segment = from_text[match.end():segment_end]
            join_type = " ".join(match.group(0).upper().split())

            condition = ""
            on_match = find_top_level(segment, r"\b(?:ON|USING)\b")
            if on_match is not None:
                if on_match.group(0).upper() == "ON":
                    condition = segment[on_match.end():].strip()
                table_text = segment[:on_match.start()]
            else:
                table_text = segment

            # "JOIN a x, b y" is legal in some dialects
            parts = split_commas(table_text)
            ref = self._parse_table_ref(parts[0], sql) if parts else None
            if ref is None:
                raise ParseError(f"no table name after {join_type}", sql)
            tables.append(ref)
            joins.append(JoinClause(table=ref, join_type=join_type, condition=condition))
            tables.extend(self._parse_table_ref(part, sql) for part in parts[1:])

        return tables, joins

    def _parse_table_ref(self, text: str, sql: str) -> TableReference:
        text = " ".join(text.split())
        if text.startswith("("):
            raise ParseError("derived tables in FROM are not supported", sql)

        match = _TABLE_REF.match(text)
        if match is None:
            raise ParseError(f"unrecognized table reference '{text}'", sql)

        parts = split_qualified(match.group("name"))
        name, quote_style = unquote_identifier(parts[-1])
        schema = unquote_identifier(parts[-2])[0] if len(parts) > 1 else None

        alias = name
        if match.group("alias") and match.group("alias").upper() not in _NOT_ALIASES:
            alias = unquote_identifier(match.group("alias"))[0]

        return TableReference(name=name, alias=alias, schema=schema, quote_style=quote_style)
