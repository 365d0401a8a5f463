"""Turn WHERE and ON predicates into typed constraints."""

import logging
import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from queryseed.constraints import (
    BetweenConstraint,
    BetweenDataType,
    BooleanConstraint,
    ComprehensiveConstraints,
    Constraint,
    DateConstraint,
    DateConstraintKind,
    ExistsConstraint,
    GeneralConstraint,
    InClauseConstraint,
    InClauseKind,
    JoinConstraint,
    LikePattern,
    LikePatternType,
    NullConstraint,
    OrGroup,
)
from queryseed.models import TableInfo, TypeCategory
from queryseed.query_analyzer import AnalyzedQuery
from queryseed.sqltext import (
    IDENT,
    mask_parens,
    split_commas,
    split_qualified,
    split_top_level,
    strip_outer_parens,
    unquote_identifier,
)

logger = logging.getLogger(__name__)

_COLUMN = rf"(?P<col>{IDENT}(?:\s*\.\s*{IDENT}){{0,2}})"
_F = re.IGNORECASE | re.DOTALL

_EXISTS = re.compile(r"^(?P<neg>NOT\s+)?EXISTS\s*\((?P<body>.*)\)$", _F)
_IS_NULL = re.compile(rf"^{_COLUMN}\s+IS\s+(?P<neg>NOT\s+)?NULL$", _F)
_BETWEEN = re.compile(
    rf"^{_COLUMN}\s+(?P<neg>NOT\s+)?BETWEEN\s+(?P<low>.+?)\s+AND\s+(?P<high>.+)$", _F
)
_IN = re.compile(rf"^{_COLUMN}\s+(?P<neg>NOT\s+)?IN\s*\((?P<body>.*)\)$", _F)
_LIKE = re.compile(
    rf"^{_COLUMN}\s+(?P<neg>NOT\s+)?I?LIKE\s+(?P<pattern>N?'(?:[^']|'')*')"
    r"(?:\s+ESCAPE\s+'.')?$",
    _F,
)
_YEAR = re.compile(
    rf"^(?:YEAR\s*\(\s*{_COLUMN}\s*\)"
    rf"|EXTRACT\s*\(\s*YEAR\s+FROM\s+{_COLUMN.replace('col', 'col2')}\s*\)"
    rf"|DATE_PART\s*\(\s*'year'\s*,\s*{_COLUMN.replace('col', 'col3')}\s*\)"
    rf"|DATEPART\s*\(\s*(?:YEAR|YY|YYYY)\s*,\s*{_COLUMN.replace('col', 'col4')}\s*\))$",
    _F,
)
_BARE_COLUMN = re.compile(rf"^(?P<neg>NOT\s+)?{_COLUMN}$", _F)
_OPERATOR = r"(<=|>=|<>|!=|=|<|>)"

_NOW = (
    r"(?:NOW\s*\(\s*\)|CURRENT_DATE(?:\s*\(\s*\))?|CURRENT_TIMESTAMP(?:\s*\(\s*\))?"
    r"|GETDATE\s*\(\s*\)|SYSDATETIME\s*\(\s*\)|SYSDATE|SYSTIMESTAMP"
    r"|CURDATE\s*\(\s*\)|LOCALTIMESTAMP|TRUNC\s*\(\s*SYSDATE\s*\))"
)
_UNIT = r"(?P<unit>DAY|WEEK|MONTH|YEAR|DD|D|WK|WW|MM|M|YY|YYYY)S?"
_NOW_ONLY = re.compile(rf"^{_NOW}$", _F)
_DATE_ADD = re.compile(
    rf"^DATE_(?P<fn>ADD|SUB)\s*\(\s*{_NOW}\s*,\s*INTERVAL\s+'?\s*(?P<n>-?\d+)\s*'?\s+{_UNIT}\s*\)$",
    _F,
)
_NOW_INTERVAL = re.compile(
    rf"^{_NOW}\s*(?P<sign>[+-])\s*INTERVAL\s*(?P<body>.+)$",
    _F,
)
_INTERVAL_BODY = re.compile(
    rf"^(?:'\s*(?P<n>-?\d+)\s*(?:{_UNIT})?\s*'|(?P<n2>-?\d+))(?:\s*(?P<unit2>DAY|WEEK|MONTH|YEAR)S?)?$",
    _F,
)
_DATEADD = re.compile(
    rf"^DATEADD\s*\(\s*{_UNIT}\s*,\s*(?P<n>-?\d+)\s*,\s*{_NOW}\s*\)$", _F
)
_NOW_PLUS_DAYS = re.compile(rf"^{_NOW}\s*(?P<sign>[+-])\s*(?P<n>\d+)$", _F)
_ADD_MONTHS = re.compile(rf"^ADD_MONTHS\s*\(\s*{_NOW}\s*,\s*(?P<n>-?\d+)\s*\)$", _F)

_UNIT_DAYS = {
    "DAY": 1, "DD": 1, "D": 1,
    "WEEK": 7, "WK": 7, "WW": 7,
    "MONTH": 30, "MM": 30, "M": 30,
    "YEAR": 365, "YY": 365, "YYYY": 365,
}
_FLIPPED = {"=": "=", "!=": "!=", "<": ">", ">": "<", "<=": ">=", ">=": "<="}

_NUMBER = re.compile(r"^[+-]?\d+(?:\.\d+)?$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_ISO_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?$")
_TYPED_DATE = re.compile(
    r"^(?:DATE|TIMESTAMP)\s+'(?P<v>[^']*)'$|^TO_(?:DATE|TIMESTAMP)\s*\(\s*'(?P<v2>[^']*)'.*\)$",
    _F,
)


class NotALiteral(ValueError):
    """Raised when text is not a SQL literal."""


def parse_sql_literal(text: str) -> Any:
    """
    Parse a SQL literal as written in a query.

    Quoted strings lose their quotes (``''`` becomes ``'``), integers become
    ``int``, other numbers ``Decimal``, TRUE/FALSE ``bool``, NULL ``None``.
    ``DATE '...'`` and ``TO_DATE('...', ...)`` become dates.

    Raises:
        NotALiteral: If the text is an expression or column reference
    """
    text = text.strip()
    if len(text) >= 2 and text.endswith("'") and (
        text.startswith("'") or text[:2].upper() == "N'"
    ):
        body = text[text.index("'") + 1:-1]
        if "'" in body.replace("''", ""):
            raise NotALiteral(text)
        return body.replace("''", "'")
    if _NUMBER.match(text):
        if "." in text:
            return Decimal(text)
        return int(text)
    upper = text.upper()
    if upper == "TRUE":
        return True
    if upper == "FALSE":
        return False
    if upper == "NULL":
        return None
    typed = _TYPED_DATE.match(text)
    if typed:
        raw = typed.group("v") or typed.group("v2") or ""
        if _ISO_DATE.match(raw):
            return date.fromisoformat(raw)
        if _ISO_DATETIME.match(raw):
            return datetime.fromisoformat(raw)
    raise NotALiteral(text)


def parse_date_offset(text: str) -> int | None:
    """
    Day offset from today expressed by a date arithmetic expression.

    Recognizes ``NOW()``/``CURRENT_DATE``/``GETDATE()``/``SYSDATE`` alone,
    ``DATE_ADD``/``DATE_SUB`` with ``INTERVAL n unit``, ``NOW() +/- INTERVAL``
    (MySQL and PostgreSQL spellings), ``DATEADD(unit, n, GETDATE())``,
    ``SYSDATE +/- n`` and ``ADD_MONTHS(SYSDATE, n)``. Months count as 30 days
    and years as 365.

    Returns:
        Signed day offset, or None when the text is not such an expression
    """
    text = " ".join(text.split())
    if _NOW_ONLY.match(text):
        return 0

    match = _DATE_ADD.match(text)
    if match:
        days = int(match.group("n")) * _UNIT_DAYS[match.group("unit").upper()]
        return days if match.group("fn").upper() == "ADD" else -days

    match = _NOW_INTERVAL.match(text)
    if match:
        body = _INTERVAL_BODY.match(match.group("body").strip())
        if body is None:
            return None
        number = body.group("n") or body.group("n2")
        unit = body.group("unit") or body.group("unit2") or "DAY"
        days = int(number) * _UNIT_DAYS[unit.upper()]
        return days if match.group("sign") == "+" else -days

    match = _DATEADD.match(text)
    if match:
        return int(match.group("n")) * _UNIT_DAYS[match.group("unit").upper()]

    match = _NOW_PLUS_DAYS.match(text)
    if match:
        days = int(match.group("n"))
        return days if match.group("sign") == "+" else -days

    match = _ADD_MONTHS.match(text)
    if match:
        return int(match.group("n")) * 30

    return None


def _between_type(low: Any, high: Any) -> BetweenDataType:
    if all(isinstance(v, (int, Decimal)) and not isinstance(v, bool) for v in (low, high)):
        return BetweenDataType.NUMERIC
    if all(isinstance(v, (date, datetime)) for v in (low, high)):
        return BetweenDataType.DATE
    if all(isinstance(v, str) and (_ISO_DATE.match(v) or _ISO_DATETIME.match(v)) for v in (low, high)):
        return BetweenDataType.DATE
    return BetweenDataType.STRING


def _like_type(pattern: str) -> LikePatternType:
    starts = pattern.startswith("%")
    ends = pattern.endswith("%") and len(pattern) > 1
    if starts and ends:
        return LikePatternType.CONTAINS
    if starts:
        return LikePatternType.ENDS_WITH
    if ends:
        return LikePatternType.STARTS_WITH
    return LikePatternType.EXACT


class ConstraintExtractor:
    """
    Extract every supported predicate of an analyzed query.

    Args:
        schemas: Optional table name -> TableInfo mapping. Used to attribute
            unqualified columns in multi-table queries and to read ``col = 1``
            as a boolean when the column is boolean-typed.
    """

    def __init__(self, schemas: Mapping[str, TableInfo] | None = None):
        self.schemas = {name.lower(): info for name, info in (schemas or {}).items()}

    def extract(self, analyzed: AnalyzedQuery) -> ComprehensiveConstraints:
        """
        Extract constraints from the WHERE clause and every JOIN ... ON.

        Unsupported predicates are dropped and recorded in ``warnings``;
        extraction itself never fails.

        Args:
            analyzed: Result of QueryAnalyzer.analyze

        Returns:
            ComprehensiveConstraints for the query
        """
        result = ComprehensiveConstraints()
        self._analyzed = analyzed
        self._result = result

        accepted: list[Constraint] = []
        for join in analyzed.join_clauses:
            if join.condition:
                accepted.extend(self._collect(join.condition, accepted))
        if analyzed.where_clause:
            accepted.extend(self._collect(analyzed.where_clause, accepted))

        for constraint in accepted:
            result.add(constraint)

        logger.info(
            f"Extracted {len(result)} constraints from {len(analyzed.tables)} table "
            f"reference(s) ({len(result.warnings)} predicate(s) dropped)"
        )
        return result

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self._result.warnings.append(message)

    def _collect(self, text: str, accepted: list[Constraint]) -> list[Constraint]:
        text = strip_outer_parens(text)

        disjuncts = split_top_level(text, "OR")
        if len(disjuncts) > 1:
            alternatives = [self._collect(part, accepted) for part in disjuncts]
            chosen = 0
            for i, alternative in enumerate(alternatives):
                if not _conflicts(alternative, accepted):
                    chosen = i
                    break
            self._result.or_groups.append(
                OrGroup(text=" ".join(text.split()), alternatives=alternatives, chosen=chosen)
            )
            logger.debug(f"OR group with {len(alternatives)} alternatives, chose #{chosen + 1}")
            return alternatives[chosen]

        conjuncts = split_top_level(text, "AND")
        if len(conjuncts) > 1:
            # Plain predicates first so OR groups can avoid conflicting with them
            ordered = sorted(conjuncts, key=lambda part: len(split_top_level(strip_outer_parens(part), "OR")) > 1)
            collected: list[Constraint] = []
            for part in ordered:
                collected.extend(self._collect(part, accepted + collected))
            return collected

        return self._classify(text)

    def _classify(self, text: str) -> list[Constraint]:
        predicate = " ".join(text.split()) if "'" not in text else text.strip()

        match = _EXISTS.match(predicate)
        if match:
            return [ExistsConstraint(subquery_text=match.group("body").strip(), is_exists=not match.group("neg"))]

        match = _IS_NULL.match(predicate)
        if match:
            alias, column = self._attribute(match.group("col"))
            return [NullConstraint(alias, column, is_null=not match.group("neg"))]

        match = _BETWEEN.match(predicate)
        if match:
            return self._between(predicate, match)

        match = _IN.match(predicate)
        if match:
            return self._in_clause(predicate, match)

        match = _LIKE.match(predicate)
        if match:
            if match.group("neg"):
                self._warn(f"NOT LIKE is not supported, dropped: {predicate}")
                return []
            alias, column = self._attribute(match.group("col"))
            pattern = parse_sql_literal(match.group("pattern"))
            return [
                LikePattern(
                    alias,
                    column,
                    pattern=pattern,
                    required_substring=pattern.replace("%", ""),
                    pattern_type=_like_type(pattern),
                )
            ]

        comparison = self._split_comparison(predicate)
        if comparison is not None:
            return self._comparison(predicate, *comparison)

        match = _BARE_COLUMN.match(predicate)
        if match and match.group("col").upper() not in ("TRUE", "FALSE", "NULL"):
            alias, column = self._attribute(match.group("col"))
            return [BooleanConstraint(alias, column, literal=not match.group("neg"))]

        self._warn(f"Unsupported predicate dropped: {predicate}")
        return []

    def _between(self, predicate: str, match: re.Match) -> list[Constraint]:
        if match.group("neg"):
            self._warn(f"NOT BETWEEN is not supported, dropped: {predicate}")
            return []
        try:
            low = parse_sql_literal(match.group("low"))
            high = parse_sql_literal(match.group("high"))
        except NotALiteral:
            self._warn(f"BETWEEN bounds must be literals, dropped: {predicate}")
            return []
        alias, column = self._attribute(match.group("col"))
        data_type = _between_type(low, high)
        if data_type == BetweenDataType.DATE:
            low, high = _as_date(low), _as_date(high)
        return [BetweenConstraint(alias, column, min=low, max=high, data_type=data_type)]

    def _in_clause(self, predicate: str, match: re.Match) -> list[Constraint]:
        alias, column = self._attribute(match.group("col"))
        body = match.group("body").strip()
        if re.match(r"^SELECT\b", body, re.IGNORECASE):
            if match.group("neg"):
                self._warn(f"NOT IN (subquery) is not supported, dropped: {predicate}")
                return []
            return [InClauseConstraint(alias, column, values=(), in_kind=InClauseKind.SUBQUERY, subquery=body)]

        try:
            values = tuple(parse_sql_literal(item) for item in split_commas(body))
        except NotALiteral:
            self._warn(f"IN list must hold literals, dropped: {predicate}")
            return []

        if match.group("neg"):
            return [GeneralConstraint(alias, column, "!=", value) for value in values]

        numeric = values and all(
            isinstance(v, (int, Decimal)) and not isinstance(v, bool) for v in values
        )
        kind = InClauseKind.NUMERIC_LIST if numeric else InClauseKind.STRING_LIST
        return [InClauseConstraint(alias, column, values=values, in_kind=kind)]

    def _split_comparison(self, predicate: str) -> tuple[str, str, str] | None:
        masked = mask_parens(predicate)
        match = re.search(_OPERATOR, masked)
        if match is None:
            return None
        lhs = predicate[:match.start()].strip()
        rhs = predicate[match.end():].strip()
        if not lhs or not rhs:
            return None
        operator = "!=" if match.group(1) == "<>" else match.group(1)
        return lhs, operator, rhs

    def _comparison(self, predicate: str, lhs: str, operator: str, rhs: str) -> list[Constraint]:
        left = self._classify_side(lhs)
        right = self._classify_side(rhs)

        # Keep the column-like side on the left
        if left[0] in ("literal", "date") and right[0] in ("column", "year"):
            left, right = right, left
            operator = _FLIPPED[operator]

        left_kind, left_value = left
        right_kind, right_value = right

        if left_kind == "year" and right_kind == "literal" and isinstance(right_value, int):
            return self._year(predicate, left_value, operator, right_value)

        if left_kind == "column" and right_kind == "date":
            alias, column = self._attribute(left_value)
            return [DateConstraint(alias, column, DateConstraintKind.DATE_INTERVAL, operator, right_value)]

        if left_kind == "column" and right_kind == "column":
            if operator != "=":
                self._warn(f"Only equality is supported between columns, dropped: {predicate}")
                return []
            alias, column = self._attribute(left_value)
            right_alias, right_column = self._attribute(right_value)
            ref = self._analyzed.resolve_alias(right_alias) if right_alias else None
            return [
                JoinConstraint(
                    alias,
                    column,
                    right_alias=right_alias,
                    right_column=right_column,
                    right_table=ref.name if ref else "",
                    operator=operator,
                )
            ]

        if left_kind == "column" and right_kind == "literal":
            alias, column = self._attribute(left_value)
            if right_value is None:
                self._warn(f"Comparison with NULL is never true, dropped: {predicate}")
                return []
            if operator in ("=", "!=") and self._is_boolean_literal(alias, column, right_value):
                literal = bool(right_value)
                if operator == "!=":
                    literal = not literal
                return [BooleanConstraint(alias, column, literal=literal)]
            return [GeneralConstraint(alias, column, operator, right_value)]

        self._warn(f"Unsupported comparison dropped: {predicate}")
        return []

    def _year(self, predicate: str, column_text: str, operator: str, year: int) -> list[Constraint]:
        alias, column = self._attribute(column_text)
        match operator:
            case "=":
                return [DateConstraint(alias, column, DateConstraintKind.YEAR_EQUALS, "=", year)]
            case ">=":
                return [GeneralConstraint(alias, column, ">=", date(year, 1, 1))]
            case ">":
                return [GeneralConstraint(alias, column, ">=", date(year + 1, 1, 1))]
            case "<":
                return [GeneralConstraint(alias, column, "<", date(year, 1, 1))]
            case "<=":
                return [GeneralConstraint(alias, column, "<", date(year + 1, 1, 1))]
        self._warn(f"Unsupported year comparison dropped: {predicate}")
        return []

    def _classify_side(self, text: str) -> tuple[str, Any]:
        text = strip_outer_parens(text)
        try:
            return "literal", parse_sql_literal(text)
        except NotALiteral:
            pass

        year = _YEAR.match(text)
        if year:
            column = next(
                year.group(name) for name in ("col", "col2", "col3", "col4") if year.group(name)
            )
            return "year", column

        offset = parse_date_offset(text)
        if offset is not None:
            return "date", offset

        if re.match(rf"^{_COLUMN}$", text, _F) and text.upper() not in ("TRUE", "FALSE", "NULL"):
            return "column", text
        return "expression", text

    def _is_boolean_literal(self, alias: str, column: str, value: Any) -> bool:
        if isinstance(value, bool):
            return True
        if value not in (0, 1) or isinstance(value, Decimal):
            return False
        col = self._column_info(alias, column)
        return col is not None and col.type_category == TypeCategory.BOOLEAN

    def _column_info(self, alias: str, column: str):
        ref = self._analyzed.resolve_alias(alias) if alias else None
        if ref is None:
            return None
        table = self.schemas.get(ref.name.lower())
        return table.get_column(column) if table else None

    def _attribute(self, column_text: str) -> tuple[str, str]:
        """Resolve ``[alias.]column`` to (alias, column)."""
        parts = [unquote_identifier(part)[0] for part in split_qualified(column_text)]
        column = parts[-1]
        if len(parts) > 1:
            qualifier = parts[-2]
            ref = self._analyzed.resolve_alias(qualifier)
            return (ref.alias if ref else qualifier), column

        tables = self._analyzed.tables
        if len(tables) == 1:
            return tables[0].alias, column
        for ref in tables:
            table = self.schemas.get(ref.name.lower())
            if table is not None and table.get_column(column) is not None:
                return ref.alias, column
        return "", column


def _as_date(value: Any) -> Any:
    if isinstance(value, str):
        if _ISO_DATE.match(value):
            return date.fromisoformat(value)
        return datetime.fromisoformat(value)
    return value


def _conflicts(candidate: list[Constraint], accepted: list[Constraint]) -> bool:
    """Whether an OR alternative contradicts constraints already accepted."""
    for new in candidate:
        for old in accepted:
            if getattr(new, "alias", None) is None or getattr(old, "alias", None) is None:
                continue
            if (new.alias.lower(), new.column.lower()) != (old.alias.lower(), old.column.lower()):
                continue
            match new, old:
                case BooleanConstraint(literal=a), BooleanConstraint(literal=b) if a != b:
                    return True
                case NullConstraint(is_null=a), NullConstraint(is_null=b) if a != b:
                    return True
                case NullConstraint(is_null=True), (
                    GeneralConstraint() | LikePattern() | BooleanConstraint()
                    | InClauseConstraint() | BetweenConstraint() | DateConstraint()
                ):
                    return True
                case GeneralConstraint(operator="=", value=a), GeneralConstraint(operator="=", value=b) if a != b:
                    return True
                case GeneralConstraint(operator="=", value=a), GeneralConstraint(operator="!=", value=b) if a == b:
                    return True
    return False
