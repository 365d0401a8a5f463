"""Deterministic constraint-driven sampler used when no oracle answers."""

import logging
import math
import random
import string
from collections import defaultdict
from collections.abc import Callable
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from faker import Faker

from queryseed.constraints import BetweenConstraint, DateConstraintKind
from queryseed.generators.base import ColumnContext, ConstraintSet, ValueOracle, coerce_value
from queryseed.generators.faker_generator import FakerGenerator
from queryseed.models import ColumnInfo, TypeCategory

logger = logging.getLogger(__name__)

_NUMERIC = (TypeCategory.INTEGER, TypeCategory.DECIMAL, TypeCategory.FLOAT)
_TEMPORAL = (TypeCategory.DATE, TypeCategory.DATETIME)


def lower_interval_target(days: int) -> int:
    """Day offset strictly inside ``col > today + days`` (and ``>=``)."""
    if days < 0:
        return days + math.ceil(abs(days) / 2)
    return days + max(1, days // 2)


def upper_interval_target(days: int) -> int:
    """Day offset strictly inside ``col < today + days`` (and ``<=``)."""
    if days > 0:
        return days - math.ceil(days / 2)
    return days - max(1, abs(days) // 2)


class LocalSampler(ValueOracle):
    """
    Build values straight from the constraints, Faker filling the gaps.

    Seeding both the random generator and Faker makes runs reproducible.

    Args:
        seed: Random seed (None for a random run)
        locale: Faker locale
        clock: Returns the current time; date intervals are relative to it
    """

    def __init__(
        self,
        seed: int | None = None,
        locale: str = "en_US",
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.rng = random.Random(seed)
        fake = Faker(locale)
        if seed is not None:
            fake.seed_instance(seed)
        self.faker = FakerGenerator(fake, clock)
        self.clock = clock
        self._counters: dict[tuple[str, str], int] = defaultdict(int)
        self._int_starts: dict[tuple[str, str], int] = {}

    def propose(self, context: ColumnContext, constraints: ConstraintSet) -> Any:
        if constraints.requires_null:
            return None
        value = self._pick(context, constraints)
        return self._avoid_excluded(value, constraints)

    def _pick(self, context: ColumnContext, cs: ConstraintSet) -> Any:
        column = cs.column
        category = cs.category

        if cs.booleans:
            literal = cs.booleans[0].literal
            return int(literal) if category in _NUMERIC else literal

        if cs.equal_values:
            return coerce_value(cs.equal_values[0], category)

        if cs.in_lists:
            values = cs.in_lists[0].values
            offset = context.attempt + (context.row_index if column.is_unique else 0)
            return coerce_value(values[offset % len(values)], category)

        if cs.likes:
            return self._from_like(cs.likes[0].pattern, context, column)

        if cs.betweens:
            return self._between(cs.betweens[0], category, column)

        if cs.dates:
            return self._date(cs, category)

        if cs.range_constraints:
            return self._in_range(cs, category, column)

        return self._default(context, column)

    # LIKE

    def _from_like(self, pattern: str, context: ColumnContext, column: ColumnInfo) -> str:
        fixed_length = len(pattern.replace("%", ""))
        budget = (column.max_length - fixed_length) if column.max_length else 24
        filler = ""
        if "%" in pattern and budget > 1:
            base = str(self.faker.generate(column)) if column.type_category == TypeCategory.STRING else ""
            base = " ".join(base.split()) or self.faker.fake.word()
            if column.is_unique:
                base = f"{base} {self._next_counter(context)}"
            filler = base[-(budget - 1):].strip() if column.is_unique else base[: budget - 1].strip()

        out = []
        placed = False
        for i, ch in enumerate(pattern):
            if ch == "%":
                if not placed and filler:
                    out.append(f"{filler} " if i == 0 else f" {filler}")
                    placed = True
            elif ch == "_":
                out.append(self.rng.choice(string.ascii_letters))
            else:
                out.append(ch)
        return "".join(out)

    # Ranges

    def _between(self, constraint: BetweenConstraint, category: TypeCategory, column: ColumnInfo) -> Any:
        low = coerce_value(constraint.min, category)
        high = coerce_value(constraint.max, category)
        if low > high:
            low, high = high, low

        if isinstance(low, int) and isinstance(high, int) and not isinstance(low, bool):
            quarter = (high - low) // 4
            return (low + high) // 2 + self.rng.randint(-quarter, quarter)
        if isinstance(low, Decimal) and isinstance(high, Decimal):
            quantum = self._quantum(column, low, high)
            mid = (low + high) / 2
            jitter = (high - low) / 4 * Decimal(str(self.rng.uniform(-1, 1)))
            value = (mid + jitter).quantize(quantum)
            return min(max(value, low), high)
        if isinstance(low, float) or isinstance(high, float):
            low, high = float(low), float(high)
            return (low + high) / 2 + (high - low) / 4 * self.rng.uniform(-1, 1)
        if isinstance(low, date) and isinstance(high, date):
            span = high - low
            jitter = timedelta(seconds=int(span.total_seconds() / 4 * self.rng.uniform(-1, 1)))
            value = low + span / 2 + jitter
            if not isinstance(low, datetime):
                return low + timedelta(days=(value - low).days)
            return value.replace(microsecond=0)
        return low

    def _quantum(self, column: ColumnInfo, *bounds: Decimal) -> Decimal:
        if column.numeric_scale is not None:
            return Decimal(1).scaleb(-column.numeric_scale)
        exponent = min(b.as_tuple().exponent for b in bounds)
        return Decimal(1).scaleb(min(exponent, 0))

    def _in_range(self, cs: ConstraintSet, category: TypeCategory, column: ColumnInfo) -> Any:
        lows = [(coerce_value(c.value, category), c.operator == ">") for c in cs.range_constraints if c.operator in (">", ">=")]
        highs = [(coerce_value(c.value, category), c.operator == "<") for c in cs.range_constraints if c.operator in ("<", "<=")]
        low = max(lows, key=lambda bound: bound[0]) if lows else None
        high = min(highs, key=lambda bound: bound[0]) if highs else None

        if category == TypeCategory.STRING:
            if low is not None:
                return f"{low[0]}a"
            return str(high[0])[:-1] if high and len(str(high[0])) > 1 else ""

        step: Any
        if category == TypeCategory.INTEGER:
            step, spread = 1, 100
        elif category == TypeCategory.DECIMAL:
            step = self._quantum(column, *(b[0] for b in lows + highs if isinstance(b[0], Decimal)))
            spread = Decimal(100)
        elif category in _TEMPORAL:
            step, spread = timedelta(days=1), timedelta(days=365)
        else:
            step, spread = 0.001, 100.0

        lo = low[0] + step if low and low[1] else (low[0] if low else None)
        hi = high[0] - step if high and high[1] else (high[0] if high else None)

        if lo is not None and hi is not None:
            if lo >= hi:
                return lo
            return lo + (hi - lo) / 2 if category != TypeCategory.INTEGER else (lo + hi) // 2
        if lo is not None:
            return lo + self._fraction(spread, category)
        return hi - self._fraction(spread, category)

    def _fraction(self, spread: Any, category: TypeCategory) -> Any:
        if category == TypeCategory.INTEGER:
            return self.rng.randint(0, spread)
        if category == TypeCategory.DECIMAL:
            return (spread * Decimal(self.rng.randint(0, 100)) / 100).quantize(Decimal(1))
        if category in _TEMPORAL:
            return timedelta(days=self.rng.randint(0, spread.days))
        return spread * self.rng.random()

    # Dates

    def _date(self, cs: ConstraintSet, category: TypeCategory) -> Any:
        years = [c.value for c in cs.dates if c.date_kind == DateConstraintKind.YEAR_EQUALS]
        if years:
            picked = date(years[0], self.rng.randint(1, 12), self.rng.randint(1, 28))
            if category == TypeCategory.DATETIME:
                return datetime(picked.year, picked.month, picked.day, self.rng.randint(0, 23), self.rng.randint(0, 59))
            return picked if category in _TEMPORAL else picked.isoformat()

        intervals = [c for c in cs.dates if c.date_kind == DateConstraintKind.DATE_INTERVAL]
        equal = [c.value for c in intervals if c.operator == "="]
        lows = [c.value + (1 if c.operator == ">" else 0) for c in intervals if c.operator in (">", ">=")]
        highs = [c.value - (1 if c.operator == "<" else 0) for c in intervals if c.operator in ("<", "<=")]

        if equal:
            offset = equal[0]
        elif lows and highs:
            offset = (max(lows) + min(highs)) // 2
        elif lows:
            strongest = max((c for c in intervals if c.operator in (">", ">=")), key=lambda c: c.value)
            offset = lower_interval_target(strongest.value)
        else:
            weakest = min((c for c in intervals if c.operator in ("<", "<=")), key=lambda c: c.value)
            offset = upper_interval_target(weakest.value)

        moment = self.clock() + timedelta(days=offset)
        if category == TypeCategory.DATE:
            return moment.date()
        if category == TypeCategory.DATETIME:
            return moment.replace(microsecond=0)
        return moment.date().isoformat()

    # Unconstrained

    def _default(self, context: ColumnContext, column: ColumnInfo) -> Any:
        category = column.type_category
        if column.enum_values:
            offset = context.row_index if column.is_unique else self.rng.randrange(len(column.enum_values))
            return column.enum_values[offset % len(column.enum_values)]

        if category == TypeCategory.INTEGER and (column.is_unique or column.is_primary_key):
            key = (context.table, column.name)
            start = self._int_starts.setdefault(key, self.rng.randint(1000, 900000))
            return start + self._next_counter(context)

        value = self.faker.generate(column)
        if isinstance(value, str):
            value = " ".join(value.split())
            if column.is_unique or column.is_primary_key:
                value = self._unique_text(value, context, column)
            elif column.max_length is not None:
                value = value[: column.max_length].rstrip() or value[: column.max_length]
        return value

    def _unique_text(self, value: str, context: ColumnContext, column: ColumnInfo) -> str:
        counter = self._next_counter(context)
        if "@" in value:
            local, domain = value.split("@", 1)
            value = f"{local}{counter}@{domain}"
            if column.max_length is None or len(value) <= column.max_length:
                return value
            value = local
        suffix = f"-{counter}"
        if column.max_length is not None:
            value = value[: max(column.max_length - len(suffix), 0)]
        return f"{value}{suffix}"

    def _next_counter(self, context: ColumnContext) -> int:
        key = (context.table, context.column.name)
        self._counters[key] += 1
        return self._counters[key]

    def _avoid_excluded(self, value: Any, cs: ConstraintSet) -> Any:
        excluded = [coerce_value(v, cs.category) for v in cs.excluded_values]
        guard = 0
        while value in excluded and guard < 100:
            guard += 1
            if isinstance(value, bool):
                value = not value
            elif isinstance(value, (int, Decimal, float)):
                value = value + 1
            elif isinstance(value, datetime):
                value = value + timedelta(seconds=1)
            elif isinstance(value, date):
                value = value + timedelta(days=1)
            elif isinstance(value, str):
                value = f"{value}x"
            else:
                break
        return value
