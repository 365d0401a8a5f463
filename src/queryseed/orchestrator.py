"""Generation orchestrator: query in, committed rows out."""

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

from queryseed.backends.direct import DirectBackend
from queryseed.backends.staging import StagingBackend
from queryseed.config import GenerationConfig
from queryseed.constraint_extractor import ConstraintExtractor
from queryseed.constraints import ComprehensiveConstraints
from queryseed.dependency import DependencyPlan, DependencyPlanner, SchemaProvider
from queryseed.dialects.base import DialectHandler
from queryseed.dialects.factory import get_dialect
from queryseed.exceptions import (
    ConstraintUnsatisfiableError,
    DependencyError,
    InsertBuildError,
    ParseError,
    SchemaNotFoundError,
    SinkExecutionError,
    TableNotFoundError,
    UnsupportedDialectError,
)
from queryseed.generators.base import ValueOracle
from queryseed.generators.local_sampler import LocalSampler
from queryseed.insert_builder import InsertBuilder
from queryseed.introspection import DEFAULT_SCHEMA
from queryseed.models import GeneratedRow, GenerationRequest, GenerationResult, TableInfo
from queryseed.query_analyzer import AnalyzedQuery, QueryAnalyzer
from queryseed.synthesizer import ValueSynthesizer
from queryseed.validator import ConstraintValidator

logger = logging.getLogger(__name__)


class ExecutionSink(Protocol):
    """Where INSERT statements go (database connection, in-memory staging)."""

    def execute(self, sql: str) -> int: ...

    def count_rows(self, table: str) -> int: ...

    def last_inserted(self, table_info: TableInfo) -> dict[str, Any]: ...


class GenerationOrchestrator:
    """
    Run the whole pipeline for one request.

    Analyze the query, extract its constraints, plan the insert order, then
    generate passes (one row per planned alias) until the desired count is
    committed or the attempt budget runs out.

    Args:
        provider: Schema provider for table metadata
        sink: Execution sink (default: DirectBackend over the request's
            connection, else an in-memory StagingBackend)
        oracle: Optional value oracle consulted before the local sampler
        config: Generation settings
        clock: Current time for date-relative constraints
    """

    def __init__(
        self,
        provider: SchemaProvider,
        sink: ExecutionSink | None = None,
        oracle: ValueOracle | None = None,
        config: GenerationConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.provider = provider
        self.sink = sink
        self.oracle = oracle
        self.config = config or GenerationConfig()
        self.clock = clock
        self.analyzer = QueryAnalyzer()
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Stop the run at the next attempt boundary."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self, request: GenerationRequest, dry_run: bool = False) -> GenerationResult:
        """
        Generate rows until the query would return the desired count.

        Args:
            request: What to generate
            dry_run: Render statements against an in-memory staging sink
                instead of the configured one

        Returns:
            GenerationResult (never raises for generation failures)
        """
        started = time.perf_counter()
        result = GenerationResult()

        try:
            dialect = get_dialect(request.database_type)
            analyzed = self.analyzer.analyze(request.sql_query)
            schemas = {ref.name: self.provider.get_table_info(ref.name) for ref in analyzed.tables}
            constraints = ConstraintExtractor(schemas).extract(analyzed)
            plan = DependencyPlanner(self.provider).plan(analyzed.tables, constraints.joins)
        except (
            ParseError,
            DependencyError,
            UnsupportedDialectError,
            TableNotFoundError,
            SchemaNotFoundError,
        ) as e:
            logger.error(f"Generation aborted: {e}")
            result.error_message = str(e)
            result.execution_time = time.perf_counter() - started
            return result

        result.warnings.extend(constraints.warnings)
        logger.info(
            f"Query uses {len(analyzed.tables)} table reference(s), "
            f"{len(constraints)} constraint(s), {len(plan.steps)} row(s) per pass"
        )

        sink = self._select_sink(request, dialect, dry_run)
        current = request.current_record_count
        if current is None:
            try:
                current = sink.count_rows(analyzed.tables[0].name)
            except SinkExecutionError as e:
                logger.error(f"Could not count existing records: {e}")
                result.error_message = str(e)
                result.execution_time = time.perf_counter() - started
                return result
        shortfall = request.desired_record_count - current
        if shortfall <= 0:
            logger.info(f"Already {current} record(s), nothing to generate")
            result.success = True
            result.execution_time = time.perf_counter() - started
            return result

        # Sampler and validator must agree on "now" for date intervals
        now = self.clock().replace(microsecond=0)

        def run_clock() -> datetime:
            return now

        synthesizer = ValueSynthesizer(
            sampler=LocalSampler(self.config.random_seed, self.config.locale, run_clock),
            oracle=self.oracle if request.use_oracle and self.config.use_oracle else None,
            validator=ConstraintValidator(run_clock),
            max_constraint_attempts=self.config.max_constraint_attempts,
        )
        builder = InsertBuilder(dialect)

        achieved = 0
        first_error: str | None = None
        for attempt in range(1, self.config.max_attempts + 1):
            if self.cancelled:
                result.warnings.append(f"Cancelled before attempt {attempt}")
                first_error = first_error or "Generation cancelled"
                break
            result.attempts = attempt
            try:
                while achieved < shortfall:
                    self._run_pass(
                        plan, constraints, synthesizer, builder, sink, achieved,
                        result.generated_insert_statements,
                    )
                    achieved += 1
                break
            except (ConstraintUnsatisfiableError, SinkExecutionError, InsertBuildError) as e:
                message = f"Attempt {attempt} failed after {achieved}/{shortfall} record(s): {e}"
                logger.warning(message)
                result.warnings.append(message)
                first_error = first_error or str(e)

        result.generated_records = achieved
        result.success = achieved >= shortfall
        if not result.success:
            result.error_message = first_error
        elif self.config.verify_query and not dry_run:
            self._verify(request, sink, current + achieved, result)

        result.execution_time = time.perf_counter() - started
        logger.info(
            f"Generated {achieved}/{shortfall} record(s) in {result.attempts} attempt(s), "
            f"{len(result.generated_insert_statements)} statement(s)"
        )
        return result

    def analyze(self, sql: str) -> tuple[AnalyzedQuery, ComprehensiveConstraints]:
        """
        Analyze a query and extract its constraints without generating.

        Raises:
            ParseError: If the query cannot be analyzed
            TableNotFoundError: If the schema provider does not know a table
        """
        analyzed = self.analyzer.analyze(sql)
        schemas = {ref.name: self.provider.get_table_info(ref.name) for ref in analyzed.tables}
        return analyzed, ConstraintExtractor(schemas).extract(analyzed)

    def _select_sink(self, request: GenerationRequest, dialect: DialectHandler, dry_run: bool) -> ExecutionSink:
        if dry_run:
            return StagingBackend(dialect, self.provider)
        if self.sink is not None:
            return self.sink
        if request.connection is not None:
            schema = getattr(self.provider, "schema", None) or DEFAULT_SCHEMA
            return DirectBackend(request.connection, schema=schema, dialect=dialect)
        return StagingBackend(dialect, self.provider)

    def _run_pass(
        self,
        plan: DependencyPlan,
        constraints: ComprehensiveConstraints,
        synthesizer: ValueSynthesizer,
        builder: InsertBuilder,
        sink: ExecutionSink,
        row_index: int,
        committed: list[str],
    ) -> None:
        """Synthesize, render and execute one row per planned alias."""
        pass_rows: dict[str, GeneratedRow] = {}
        for step in plan.steps:
            table_info = plan.table_info(step.table)
            row = synthesizer.synthesize_row(
                table_info, step.alias, constraints, plan, pass_rows, row_index
            )
            statement = builder.build(row, table_info, step.priority)
            sink.execute(statement.sql)
            committed.append(statement.sql)

            # Sink-assigned values (identity, defaults) feed FK propagation
            row.values.update(sink.last_inserted(table_info))
            pass_rows[step.alias.lower()] = row

    def _verify(
        self, request: GenerationRequest, sink: ExecutionSink, expected: int, result: GenerationResult
    ) -> None:
        fetch_count = getattr(sink, "fetch_count", None)
        if fetch_count is None:
            logger.debug("Sink cannot run queries, skipping verification")
            return
        try:
            count = fetch_count(request.sql_query)
        except SinkExecutionError as e:
            result.warnings.append(f"Verification query failed: {e}")
            return
        if count < request.desired_record_count:
            result.warnings.append(
                f"Verification: query returns {count} row(s), "
                f"expected at least {request.desired_record_count} ({expected} generated or present)"
            )
        else:
            logger.info(f"Verification: query returns {count} row(s)")
