"""Constraint model: what a query's predicates require of generated rows."""

from collections import defaultdict
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Union


class ConstraintKind(str, Enum):
    """Tag carried by every constraint variant."""

    GENERAL = "general"
    JOIN = "join"
    LIKE = "like"
    DATE = "date"
    BOOLEAN = "boolean"
    IN = "in"
    BETWEEN = "between"
    NULL = "null"
    EXISTS = "exists"


class LikePatternType(str, Enum):
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    EXACT = "exact"


class DateConstraintKind(str, Enum):
    YEAR_EQUALS = "year_equals"
    DATE_INTERVAL = "date_interval"


class InClauseKind(str, Enum):
    STRING_LIST = "string_list"
    NUMERIC_LIST = "numeric_list"
    SUBQUERY = "subquery"


class BetweenDataType(str, Enum):
    NUMERIC = "numeric"
    DATE = "date"
    STRING = "string"


@dataclass(frozen=True)
class GeneralConstraint:
    """``col <op> literal`` with op one of = != > >= < <=."""

    kind: ClassVar[ConstraintKind] = ConstraintKind.GENERAL

    alias: str
    column: str
    operator: str
    value: Any


@dataclass(frozen=True)
class JoinConstraint:
    """Column equality between two aliases (``a.x = b.y``)."""

    kind: ClassVar[ConstraintKind] = ConstraintKind.JOIN

    alias: str
    column: str
    right_alias: str
    right_column: str
    right_table: str = ""
    operator: str = "="

    @property
    def left_alias(self) -> str:
        return self.alias

    @property
    def left_column(self) -> str:
        return self.column

    def other_side(self, alias: str, column: str) -> tuple[str, str] | None:
        """Return the (alias, column) opposite to the given side, if it is one."""
        key = (alias.lower(), column.lower())
        if key == (self.alias.lower(), self.column.lower()):
            return self.right_alias, self.right_column
        if key == (self.right_alias.lower(), self.right_column.lower()):
            return self.alias, self.column
        return None


@dataclass(frozen=True)
class LikePattern:
    """
    ``col LIKE 'pattern'``.

    ``required_substring`` is the pattern with its ``%`` wildcards removed.
    """

    kind: ClassVar[ConstraintKind] = ConstraintKind.LIKE

    alias: str
    column: str
    pattern: str
    required_substring: str
    pattern_type: LikePatternType


@dataclass(frozen=True)
class DateConstraint:
    """
    Date predicate relative to a year or to the current date.

    For YEAR_EQUALS ``value`` is the year. For DATE_INTERVAL ``value`` is the
    signed day offset from today: ``col >= NOW() - INTERVAL 30 DAY`` is
    ``operator=">=", value=-30``.
    """

    kind: ClassVar[ConstraintKind] = ConstraintKind.DATE

    alias: str
    column: str
    date_kind: DateConstraintKind
    operator: str
    value: int


@dataclass(frozen=True)
class BooleanConstraint:
    kind: ClassVar[ConstraintKind] = ConstraintKind.BOOLEAN

    alias: str
    column: str
    literal: bool


@dataclass(frozen=True)
class InClauseConstraint:
    """``col IN (...)``; ``values`` is empty for subqueries."""

    kind: ClassVar[ConstraintKind] = ConstraintKind.IN

    alias: str
    column: str
    values: tuple[Any, ...]
    in_kind: InClauseKind
    subquery: str = ""


@dataclass(frozen=True)
class BetweenConstraint:
    kind: ClassVar[ConstraintKind] = ConstraintKind.BETWEEN

    alias: str
    column: str
    min: Any
    max: Any
    data_type: BetweenDataType


@dataclass(frozen=True)
class NullConstraint:
    kind: ClassVar[ConstraintKind] = ConstraintKind.NULL

    alias: str
    column: str
    is_null: bool


@dataclass(frozen=True)
class ExistsConstraint:
    """``[NOT] EXISTS (subquery)``; the subquery is kept opaque."""

    kind: ClassVar[ConstraintKind] = ConstraintKind.EXISTS

    subquery_text: str
    is_exists: bool = True


Constraint = Union[
    GeneralConstraint,
    JoinConstraint,
    LikePattern,
    DateConstraint,
    BooleanConstraint,
    InClauseConstraint,
    BetweenConstraint,
    NullConstraint,
    ExistsConstraint,
]


@dataclass
class OrGroup:
    """
    A disjunction found in the query.

    Only one alternative is generated for; ``chosen`` is its index.
    """

    text: str
    alternatives: list[list[Constraint]]
    chosen: int = 0

    @property
    def chosen_constraints(self) -> list[Constraint]:
        return self.alternatives[self.chosen]


@dataclass
class ComprehensiveConstraints:
    """
    Every constraint extracted from one query.

    Per-(alias, column) lookups are served from an index built by
    :meth:`add`; alias and column matching is case-insensitive. Constraints
    with alias ``""`` could not be attributed to a table and apply to every
    alias that has the column.
    """

    general: list[GeneralConstraint] = field(default_factory=list)
    joins: list[JoinConstraint] = field(default_factory=list)
    likes: list[LikePattern] = field(default_factory=list)
    dates: list[DateConstraint] = field(default_factory=list)
    booleans: list[BooleanConstraint] = field(default_factory=list)
    in_clauses: list[InClauseConstraint] = field(default_factory=list)
    betweens: list[BetweenConstraint] = field(default_factory=list)
    nulls: list[NullConstraint] = field(default_factory=list)
    exists: list[ExistsConstraint] = field(default_factory=list)
    or_groups: list[OrGroup] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    _index: dict[tuple[str, str], list[Constraint]] = field(
        default_factory=lambda: defaultdict(list), init=False, repr=False
    )

    def add(self, constraint: Constraint) -> None:
        """Store a constraint in its list and index it."""
        match constraint:
            case GeneralConstraint():
                self.general.append(constraint)
            case JoinConstraint():
                self.joins.append(constraint)
                self._index[(constraint.right_alias.lower(), constraint.right_column.lower())].append(constraint)
            case LikePattern():
                self.likes.append(constraint)
            case DateConstraint():
                self.dates.append(constraint)
            case BooleanConstraint():
                self.booleans.append(constraint)
            case InClauseConstraint():
                self.in_clauses.append(constraint)
            case BetweenConstraint():
                self.betweens.append(constraint)
            case NullConstraint():
                self.nulls.append(constraint)
            case ExistsConstraint():
                self.exists.append(constraint)
                return
            case _:
                raise TypeError(f"Unknown constraint type: {type(constraint).__name__}")
        self._index[(constraint.alias.lower(), constraint.column.lower())].append(constraint)

    def for_column(
        self, alias: str, column: str, include_unattributed: bool = True
    ) -> list[Constraint]:
        """
        Constraints on one (alias, column).

        Args:
            alias: Query alias
            column: Column name
            include_unattributed: Also return constraints whose alias is ""

        Returns:
            Matching constraints in extraction order
        """
        found = list(self._index.get((alias.lower(), column.lower()), []))
        if include_unattributed and alias:
            found.extend(self._index.get(("", column.lower()), []))
        return found

    def for_alias(self, alias: str) -> list[Constraint]:
        """All constraints that mention an alias."""
        lowered = alias.lower()
        seen: list[Constraint] = []
        for (key_alias, _column), constraints in self._index.items():
            if key_alias == lowered:
                seen.extend(c for c in constraints if c not in seen)
        return seen

    def joins_for(self, alias: str, column: str) -> list[JoinConstraint]:
        return [c for c in self.for_column(alias, column, False) if isinstance(c, JoinConstraint)]

    def __iter__(self) -> Iterator[Constraint]:
        yield from self.general
        yield from self.joins
        yield from self.likes
        yield from self.dates
        yield from self.booleans
        yield from self.in_clauses
        yield from self.betweens
        yield from self.nulls
        yield from self.exists

    def __len__(self) -> int:
        return (
            len(self.general) + len(self.joins) + len(self.likes) + len(self.dates)
            + len(self.booleans) + len(self.in_clauses) + len(self.betweens)
            + len(self.nulls) + len(self.exists)
        )


def _render(value: Any) -> str:
    if isinstance(value, str):
        return f"'{value}'"
    if isinstance(value, (date, datetime)):
        return f"'{value.isoformat()}'"
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


def describe(constraint: Constraint) -> str:
    """One-line human readable rendering (used by ``queryseed analyze``)."""
    match constraint:
        case ExistsConstraint(subquery_text=text, is_exists=is_exists):
            prefix = "EXISTS" if is_exists else "NOT EXISTS"
            return f"{prefix} ({' '.join(text.split())[:60]})"
        case JoinConstraint():
            return (
                f"{constraint.alias}.{constraint.column} {constraint.operator} "
                f"{constraint.right_alias}.{constraint.right_column}"
            )
    target = f"{constraint.alias}.{constraint.column}" if constraint.alias else constraint.column
    match constraint:
        case GeneralConstraint(operator=op, value=value):
            return f"{target} {op} {_render(value)}"
        case LikePattern(pattern=pattern, pattern_type=pattern_type):
            return f"{target} LIKE '{pattern}' ({pattern_type.value})"
        case DateConstraint(date_kind=DateConstraintKind.YEAR_EQUALS, value=year):
            return f"YEAR({target}) = {year}"
        case DateConstraint(operator=op, value=days):
            return f"{target} {op} today {'+' if days >= 0 else '-'} {abs(days)} days"
        case BooleanConstraint(literal=literal):
            return f"{target} = {'TRUE' if literal else 'FALSE'}"
        case InClauseConstraint(in_kind=InClauseKind.SUBQUERY):
            return f"{target} IN (subquery)"
        case InClauseConstraint(values=values):
            return f"{target} IN ({', '.join(_render(v) for v in values)})"
        case BetweenConstraint(min=low, max=high):
            return f"{target} BETWEEN {_render(low)} AND {_render(high)}"
        case NullConstraint(is_null=is_null):
            return f"{target} IS {'NULL' if is_null else 'NOT NULL'}"
    return repr(constraint)
