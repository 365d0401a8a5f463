"""
Named value oracles.

Oracles are registered under the name used by the ``[oracle] name`` setting
and built already wrapped in a :class:`RateLimitedOracle`, so every oracle
the pipeline sees honours the run's call budget and pacing.
"""

import logging
from collections.abc import Callable

from queryseed.generators.base import ValueOracle
from queryseed.generators.rate_limit import OracleContext, RateLimitedOracle

logger = logging.getLogger(__name__)

OracleFactory = Callable[[], ValueOracle]

_oracles: dict[str, OracleFactory] = {}


def register_oracle(name: str, factory: OracleFactory | None = None):
    """
    Register an oracle class or zero-argument factory.

    Usable directly or as a class decorator::

        @register_oracle("static")
        class StaticOracle(ValueOracle):
            def propose(self, context, constraints):
                return f"{context.column.name}-static"

    Raises:
        ValueError: If the name is taken or a class lacks ``propose``
    """

    def add(target: OracleFactory) -> OracleFactory:
        if isinstance(target, type) and not callable(getattr(target, "propose", None)):
            raise ValueError(f"{target.__name__} cannot be an oracle: it has no propose() method")
        key = name.lower()
        if key in _oracles and _oracles[key] is not target:
            raise ValueError(f"Oracle '{name}' is already registered")
        _oracles[key] = target
        logger.debug(f"Registered oracle '{key}'")
        return target

    if factory is None:
        return add
    return add(factory)


def get_oracle(name: str) -> OracleFactory | None:
    return _oracles.get(name.lower())


def list_oracles() -> list[str]:
    return sorted(_oracles)


def clear_oracles() -> None:
    _oracles.clear()


def create_oracle(
    name: str, call_budget: int | None = 100, min_interval: float = 0.0
) -> RateLimitedOracle:
    """
    Build a registered oracle behind a fresh per-run OracleContext.

    Args:
        name: Registered oracle name (case-insensitive)
        call_budget: Calls allowed for the run (None for unlimited)
        min_interval: Minimum seconds between calls

    Raises:
        KeyError: If no oracle is registered under ``name``
    """
    factory = get_oracle(name)
    if factory is None:
        available = ", ".join(list_oracles()) or "none registered"
        raise KeyError(f"Unknown oracle '{name}' (available: {available})")
    oracle = factory()
    if not callable(getattr(oracle, "propose", None)):
        raise ValueError(f"Oracle factory '{name}' returned {type(oracle).__name__}, not an oracle")
    return RateLimitedOracle(oracle, OracleContext(call_budget=call_budget, min_interval=min_interval))
