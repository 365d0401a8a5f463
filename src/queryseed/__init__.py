"""
queryseed - Query-Driven Test Data Generation

Reads a SELECT statement, works out what its JOINs and WHERE clause demand,
and inserts rows (in foreign key order) that the query will return.
"""

from queryseed.backends import DirectBackend, StagingBackend
from queryseed.constraint_extractor import ConstraintExtractor
from queryseed.constraints import ComprehensiveConstraints
from queryseed.dependency import DependencyPlan, DependencyPlanner
from queryseed.dialects import DatabaseType, DialectHandler, get_dialect, list_dialects
from queryseed.exceptions import QueryseedError
from queryseed.generators import (
    ColumnContext,
    ConstraintSet,
    LocalSampler,
    OracleContext,
    RateLimitedOracle,
    ValueOracle,
    clear_oracles,
    create_oracle,
    get_oracle,
    list_oracles,
    register_oracle,
)
from queryseed.insert_builder import InsertBuilder
from queryseed.introspection import SchemaIntrospector, StaticSchemaProvider
from queryseed.models import GenerationRequest, GenerationResult
from queryseed.orchestrator import GenerationOrchestrator
from queryseed.query_analyzer import QueryAnalyzer
from queryseed.synthesizer import ValueSynthesizer

__version__ = "0.1.0"

__all__ = [
    "GenerationOrchestrator",
    "GenerationRequest",
    "GenerationResult",
    "QueryAnalyzer",
    "ConstraintExtractor",
    "ComprehensiveConstraints",
    "DependencyPlanner",
    "DependencyPlan",
    "ValueSynthesizer",
    "InsertBuilder",
    "DatabaseType",
    "DialectHandler",
    "get_dialect",
    "list_dialects",
    "SchemaIntrospector",
    "StaticSchemaProvider",
    "DirectBackend",
    "StagingBackend",
    "ValueOracle",
    "ColumnContext",
    "ConstraintSet",
    "LocalSampler",
    "OracleContext",
    "RateLimitedOracle",
    "register_oracle",
    "get_oracle",
    "list_oracles",
    "clear_oracles",
    "create_oracle",
    "QueryseedError",
]
