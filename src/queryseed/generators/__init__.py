"""Value sources: oracle contract, local sampler, rate limiting and registry."""

from queryseed.generators.base import ColumnContext, ConstraintSet, ValueOracle, coerce_value
from queryseed.generators.faker_generator import FakerGenerator
from queryseed.generators.local_sampler import LocalSampler
from queryseed.generators.rate_limit import OracleContext, RateLimitedOracle
from queryseed.generators.registry import (
    clear_oracles,
    create_oracle,
    get_oracle,
    list_oracles,
    register_oracle,
)

__all__ = [
    "ColumnContext",
    "ConstraintSet",
    "FakerGenerator",
    "LocalSampler",
    "OracleContext",
    "RateLimitedOracle",
    "ValueOracle",
    "clear_oracles",
    "coerce_value",
    "create_oracle",
    "get_oracle",
    "list_oracles",
    "register_oracle",
]
