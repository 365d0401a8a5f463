"""Check a candidate value against query constraints and schema bounds."""

import logging
import operator
import re
from collections.abc import Callable
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from queryseed.constraints import (
    BetweenConstraint,
    BooleanConstraint,
    DateConstraint,
    DateConstraintKind,
    GeneralConstraint,
    InClauseConstraint,
    InClauseKind,
    LikePattern,
    NullConstraint,
)
from queryseed.generators.base import ConstraintSet, coerce_value
from queryseed.models import ColumnInfo, TypeCategory

logger = logging.getLogger(__name__)

OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "=": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def like_to_regex(pattern: str) -> re.Pattern:
    """Translate a LIKE pattern (``%`` and ``_`` wildcards) to a regex."""
    parts = []
    for ch in pattern:
        if ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.DOTALL)


def interval_bound(now: datetime, days: int, category: TypeCategory) -> date | datetime:
    """The moment ``days`` from ``now``, as a date for DATE columns."""
    moment = now + timedelta(days=days)
    return moment.date() if category == TypeCategory.DATE else moment


def compare(left: Any, op: str, right: Any) -> bool:
    """
    Apply a SQL comparison operator.

    Raises:
        TypeError: If the operands are not comparable
    """
    if isinstance(left, datetime) and not isinstance(right, datetime) and isinstance(right, date):
        left = left.date()
    elif isinstance(right, datetime) and not isinstance(left, datetime) and isinstance(left, date):
        right = right.date()
    return OPERATORS[op](left, right)


class ConstraintValidator:
    """
    Validate values produced by oracles and samplers.

    Args:
        clock: Returns the current time; DATE_INTERVAL constraints are
            relative to it
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock

    def is_valid(self, value: Any, constraint_set: ConstraintSet) -> bool:
        return not self.violations(value, constraint_set)

    def violations(self, value: Any, constraint_set: ConstraintSet) -> list[str]:
        """
        List every constraint or schema bound the value breaks.

        Args:
            value: Candidate value
            constraint_set: Query constraints plus column metadata

        Returns:
            Human readable violations (empty when the value is acceptable)
        """
        column = constraint_set.column
        category = column.type_category

        if value is None:
            return self._null_violations(constraint_set)

        problems = []
        if constraint_set.requires_null:
            problems.append(f"{column.name} must be NULL")

        typed = coerce_value(value, category)
        problems.extend(self._schema_violations(typed, column))

        now = self.clock()
        for constraint in constraint_set.constraints:
            try:
                problem = self._check(typed, constraint, category, now)
            except TypeError as e:
                problem = f"{constraint.kind.value} check on {column.name} failed: {e}"
            if problem:
                problems.append(problem)

        if problems:
            logger.debug(f"Rejected {value!r} for {column.name}: {'; '.join(problems)}")
        return problems

    def _null_violations(self, constraint_set: ConstraintSet) -> list[str]:
        column = constraint_set.column
        problems = []
        if not column.is_nullable:
            problems.append(f"{column.name} is NOT NULL")
        for constraint in constraint_set.constraints:
            if isinstance(constraint, NullConstraint) and constraint.is_null:
                continue
            if isinstance(constraint, InClauseConstraint) and constraint.in_kind == InClauseKind.SUBQUERY:
                continue
            problems.append(f"NULL cannot satisfy {constraint.kind.value} constraint on {column.name}")
        return problems

    def _schema_violations(self, value: Any, column: ColumnInfo) -> list[str]:
        problems = []
        category = column.type_category
        # coerce_value hands back strings it could not convert
        if isinstance(value, str) and category not in (TypeCategory.STRING, TypeCategory.BINARY):
            problems.append(f"{column.name} expects {category.value} values, got {value!r}")
        if isinstance(value, str) and column.max_length is not None and len(value) > column.max_length:
            problems.append(
                f"{column.name} longer than {column.max_length} characters ({len(value)})"
            )
        if column.enum_values and str(value) not in column.enum_values:
            problems.append(f"{column.name} must be one of {', '.join(column.enum_values)}")
        if isinstance(value, Decimal) and column.numeric_precision is not None:
            scale = column.numeric_scale or 0
            whole_digits = len(str(abs(int(value)))) if abs(value) >= 1 else 0
            if whole_digits > column.numeric_precision - scale:
                problems.append(
                    f"{column.name} exceeds NUMERIC({column.numeric_precision},{scale})"
                )
        return problems

    def _check(self, value: Any, constraint, category: TypeCategory, now: datetime) -> str | None:
        match constraint:
            case GeneralConstraint(operator=op, value=expected):
                target = coerce_value(expected, category)
                if not compare(value, op, target):
                    return f"{constraint.column} {op} {expected!r} not met by {value!r}"
            case LikePattern(pattern=pattern):
                if not like_to_regex(pattern).fullmatch(str(value)):
                    return f"{constraint.column} does not match LIKE '{pattern}'"
            case DateConstraint(date_kind=DateConstraintKind.YEAR_EQUALS, value=year):
                if not isinstance(value, date) or value.year != year:
                    return f"{constraint.column} not in year {year}"
            case DateConstraint(operator=op, value=days):
                if not isinstance(value, date):
                    return f"{constraint.column} is not a date"
                bound = interval_bound(now, days, category)
                if not compare(value, op, bound):
                    return f"{constraint.column} {op} today{days:+d}d not met by {value!r}"
            case BooleanConstraint(literal=literal):
                if coerce_value(value, TypeCategory.BOOLEAN) != literal:
                    return f"{constraint.column} must be {literal}"
            case InClauseConstraint(in_kind=InClauseKind.SUBQUERY):
                return None
            case InClauseConstraint(values=values):
                if value not in [coerce_value(v, category) for v in values]:
                    return f"{constraint.column} not in {list(values)!r}"
            case BetweenConstraint(min=low, max=high):
                low, high = coerce_value(low, category), coerce_value(high, category)
                if not (compare(value, ">=", low) and compare(value, "<=", high)):
                    return f"{constraint.column} not between {low!r} and {high!r}"
            case NullConstraint(is_null=False):
                return None
        return None
