"""Value oracle interface and the per-column inputs every generator sees."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from queryseed.constraints import (
    BetweenConstraint,
    BooleanConstraint,
    Constraint,
    DateConstraint,
    GeneralConstraint,
    InClauseConstraint,
    InClauseKind,
    LikePattern,
    NullConstraint,
)
from queryseed.models import ColumnInfo, TypeCategory


@dataclass
class ColumnContext:
    """
    Where a value is going.

    Attributes:
        table: Table name
        alias: Query alias of the row
        column: Column metadata
        row_index: Index of the pass within the run (0-based)
        attempt: Retry number for this value (0-based)
        row_values: Values already chosen for earlier columns of the row
    """

    table: str
    alias: str
    column: ColumnInfo
    row_index: int = 0
    attempt: int = 0
    row_values: dict[str, Any] = field(default_factory=dict)


@dataclass
class ConstraintSet:
    """
    Query constraints on one column merged with the column's schema bounds.

    Schema bounds (length, precision, enum values, NOT NULL) come from
    ``column``; query constraints from ``constraints``.
    """

    column: ColumnInfo
    constraints: list[Constraint] = field(default_factory=list)

    @property
    def category(self) -> TypeCategory:
        return self.column.type_category

    def of_type(self, cls: type) -> list:
        return [c for c in self.constraints if isinstance(c, cls)]

    @property
    def requires_null(self) -> bool:
        return any(c.is_null for c in self.of_type(NullConstraint))

    @property
    def equal_values(self) -> list[Any]:
        return [c.value for c in self.of_type(GeneralConstraint) if c.operator == "="]

    @property
    def excluded_values(self) -> list[Any]:
        return [c.value for c in self.of_type(GeneralConstraint) if c.operator == "!="]

    @property
    def range_constraints(self) -> list[GeneralConstraint]:
        return [c for c in self.of_type(GeneralConstraint) if c.operator in (">", ">=", "<", "<=")]

    @property
    def likes(self) -> list[LikePattern]:
        return self.of_type(LikePattern)

    @property
    def booleans(self) -> list[BooleanConstraint]:
        return self.of_type(BooleanConstraint)

    @property
    def in_lists(self) -> list[InClauseConstraint]:
        return [c for c in self.of_type(InClauseConstraint) if c.in_kind != InClauseKind.SUBQUERY]

    @property
    def betweens(self) -> list[BetweenConstraint]:
        return self.of_type(BetweenConstraint)

    @property
    def dates(self) -> list[DateConstraint]:
        return self.of_type(DateConstraint)

    def __bool__(self) -> bool:
        return bool(self.constraints)


class ValueOracle(ABC):
    """
    Proposes a value for one column.

    Subclass this to plug in a smarter source of values (for example a
    language model). Register it with :func:`register_oracle` and name it
    in ``[oracle]`` settings.

    Example:
        >>> class ConstantOracle(ValueOracle):
        ...     def propose(self, context, constraints):
        ...         if constraints.category != TypeCategory.STRING:
        ...             raise UnsatisfiableValueError("strings only")
        ...         return "constant"
    """

    @abstractmethod
    def propose(self, context: ColumnContext, constraints: ConstraintSet) -> Any:
        """
        Propose a value.

        Args:
            context: Table, alias, column and row position
            constraints: Query constraints and schema bounds for the column

        Returns:
            A value for the column (None for NULL)

        Raises:
            UnsatisfiableValueError: If no value can satisfy the constraints
            OracleUnavailableError: If the oracle cannot be consulted now
        """


def coerce_value(value: Any, category: TypeCategory) -> Any:
    """
    Convert a query literal to the Python type of a column category.

    Literals arrive as the query spelled them (``'1989-05-01'`` is a str,
    ``1`` an int); comparisons and rendering need column-typed values.
    Values that do not convert are returned unchanged.
    """
    if value is None:
        return None
    try:
        match category:
            case TypeCategory.BOOLEAN:
                if isinstance(value, str):
                    return value.strip().lower() in ("1", "true", "t", "yes", "y")
                return bool(value)
            case TypeCategory.INTEGER:
                if isinstance(value, bool):
                    return int(value)
                if isinstance(value, (str, Decimal, float)):
                    number = Decimal(str(value))
                    return int(number) if number == number.to_integral_value() else number
                return value
            case TypeCategory.DECIMAL:
                if isinstance(value, (int, float, str)) and not isinstance(value, bool):
                    return Decimal(str(value))
                return value
            case TypeCategory.FLOAT:
                if isinstance(value, (int, Decimal, str)) and not isinstance(value, bool):
                    return float(value)
                return value
            case TypeCategory.DATE:
                if isinstance(value, datetime):
                    return value.date()
                if isinstance(value, str):
                    return date.fromisoformat(value.strip()[:10])
                return value
            case TypeCategory.DATETIME:
                if isinstance(value, datetime):
                    return value
                if isinstance(value, date):
                    return datetime(value.year, value.month, value.day)
                if isinstance(value, str):
                    return datetime.fromisoformat(value.strip())
                return value
            case TypeCategory.TIME:
                if isinstance(value, str):
                    return time.fromisoformat(value.strip())
                return value
            case TypeCategory.UUID:
                if isinstance(value, str):
                    return UUID(value)
                return value
            case TypeCategory.JSON:
                if isinstance(value, str):
                    return json.loads(value)
                return value
            case TypeCategory.STRING:
                if isinstance(value, (date, datetime)):
                    return value.isoformat()
                if isinstance(value, (int, Decimal, float)) and not isinstance(value, bool):
                    return str(value)
                return value
    except (ValueError, InvalidOperation, TypeError):
        return value
    return value
