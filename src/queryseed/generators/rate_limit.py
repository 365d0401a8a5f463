"""Call budget and pacing for value oracles."""

import logging
import time
from dataclasses import dataclass
from typing import Any

from queryseed.exceptions import OracleUnavailableError, UnsatisfiableValueError
from queryseed.generators.base import ColumnContext, ConstraintSet, ValueOracle

logger = logging.getLogger(__name__)


@dataclass
class OracleContext:
    """
    Per-run oracle usage state.

    Attributes:
        call_budget: Maximum calls for the run (None for unlimited)
        min_interval: Minimum seconds between two calls
        calls: Calls made so far
        last_call: ``time.monotonic()`` of the previous call (None before the first)
    """

    call_budget: int | None = 100
    min_interval: float = 0.0
    calls: int = 0
    last_call: float | None = None

    @property
    def remaining(self) -> int | None:
        if self.call_budget is None:
            return None
        return max(self.call_budget - self.calls, 0)

    def check(self, now: float) -> None:
        """
        Raise if a call is not allowed at ``now``.

        Raises:
            OracleUnavailableError: Budget exhausted or interval not elapsed
        """
        if self.call_budget is not None and self.calls >= self.call_budget:
            raise OracleUnavailableError(f"Oracle call budget of {self.call_budget} exhausted")
        if self.last_call is not None and now - self.last_call < self.min_interval:
            wait = self.min_interval - (now - self.last_call)
            raise OracleUnavailableError(f"Oracle rate limited for another {wait:.2f}s")

    def record(self, now: float) -> None:
        self.calls += 1
        self.last_call = now


class RateLimitedOracle(ValueOracle):
    """
    Wrap an oracle with an OracleContext.

    Never sleeps: a call that would exceed the budget or come too early
    fails immediately with OracleUnavailableError so the caller can fall
    back to local sampling.
    """

    def __init__(self, oracle: ValueOracle, context: OracleContext | None = None, clock=time.monotonic):
        self.oracle = oracle
        self.context = context or OracleContext()
        self._clock = clock

    def propose(self, context: ColumnContext, constraints: ConstraintSet) -> Any:
        now = self._clock()
        self.context.check(now)
        self.context.record(now)
        logger.debug(
            f"Oracle call {self.context.calls} for {context.table}.{context.column.name}"
        )
        try:
            return self.oracle.propose(context, constraints)
        except (OracleUnavailableError, UnsatisfiableValueError):
            raise
        except Exception as e:
            logger.warning(f"Oracle failed for {context.table}.{context.column.name}: {e}")
            raise OracleUnavailableError(f"Oracle failed: {e}") from e
