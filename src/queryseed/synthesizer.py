"""Per-row value synthesis: FK propagation, oracle proposals and validation."""

import logging
from typing import Any

from queryseed.constraints import ComprehensiveConstraints, JoinConstraint
from queryseed.dependency import DependencyPlan
from queryseed.exceptions import (
    ConstraintUnsatisfiableError,
    OracleUnavailableError,
    UnsatisfiableValueError,
)
from queryseed.generators.base import ColumnContext, ConstraintSet, ValueOracle, coerce_value
from queryseed.models import ColumnInfo, ForeignKeyInfo, GeneratedRow, TableInfo
from queryseed.validator import ConstraintValidator

logger = logging.getLogger(__name__)

_MISSING = object()


class ValueSynthesizer:
    """
    Fill one row per table alias so the query's predicates hold.

    FK columns copy the value of the parent row generated in the same pass;
    every other column is proposed by the oracle (when one is configured) or
    the local sampler, then checked by the validator.

    Args:
        sampler: Deterministic fallback source of values
        oracle: Optional preferred source of values
        validator: Constraint validator (default: ConstraintValidator())
        max_constraint_attempts: Proposals per column before giving up
    """

    def __init__(
        self,
        sampler: ValueOracle,
        oracle: ValueOracle | None = None,
        validator: ConstraintValidator | None = None,
        max_constraint_attempts: int = 10,
    ):
        self.sampler = sampler
        self.oracle = oracle
        self.validator = validator or ConstraintValidator()
        self.max_constraint_attempts = max(1, max_constraint_attempts)

    def synthesize_row(
        self,
        table_info: TableInfo,
        alias: str,
        constraints: ComprehensiveConstraints,
        plan: DependencyPlan,
        pass_rows: dict[str, GeneratedRow],
        row_index: int = 0,
    ) -> GeneratedRow:
        """
        Generate the row for one alias of one pass.

        Args:
            table_info: Table metadata
            alias: Query alias (the table name when the table is only a
                dependency of the query)
            constraints: Constraints extracted from the query
            plan: Insertion plan (deferred FKs, aliases per table)
            pass_rows: Rows already committed in this pass, keyed by
                lower-cased alias
            row_index: Pass number within the run

        Returns:
            GeneratedRow with a value for every insertable column

        Raises:
            ConstraintUnsatisfiableError: If a column gets no valid value
                within ``max_constraint_attempts`` proposals
        """
        row = GeneratedRow(table=table_info.name, alias=alias)

        for column in table_info.columns:
            if not column.is_insertable:
                continue

            value = self._linked_value(table_info, alias, column, constraints, plan, pass_rows)
            if value is _MISSING:
                value = self._constrained_value(table_info, alias, column, constraints, row, row_index)
            row.values[column.name] = value

        logger.debug(f"Synthesized {table_info.name} ({alias}): {row.values}")
        return row

    def _linked_value(
        self,
        table_info: TableInfo,
        alias: str,
        column: ColumnInfo,
        constraints: ComprehensiveConstraints,
        plan: DependencyPlan,
        pass_rows: dict[str, GeneratedRow],
    ) -> Any:
        """Value dictated by another row of the pass, or _MISSING."""
        fk = table_info.get_foreign_key(column.name)
        joins = [j for j in constraints.joins_for(alias, column.name) if j.operator == "="]

        if fk is None:
            for join in joins:
                other_alias, other_column = join.other_side(alias, column.name)
                other = pass_rows.get(other_alias.lower())
                if other is not None:
                    return other.get(other_column)
            return _MISSING

        if plan.is_deferred(table_info.name, column.name):
            return None

        if fk.is_self_referencing or fk.referenced_table.lower() == table_info.name.lower():
            return self._self_reference(fk, alias, column, joins, pass_rows)

        parent_aliases = plan.aliases_of(fk.referenced_table)
        parent_keys = {a.lower() for a in parent_aliases}
        for join in joins:
            other_alias, _ = join.other_side(alias, column.name)
            parent = pass_rows.get(other_alias.lower())
            if other_alias.lower() in parent_keys and parent is not None:
                return parent.get(fk.referenced_column)

        for parent_alias in parent_aliases:
            parent = pass_rows.get(parent_alias.lower())
            if parent is not None:
                return parent.get(fk.referenced_column)

        logger.debug(
            f"No {fk.referenced_table} row in this pass for {table_info.name}.{column.name}"
        )
        return _MISSING

    def _self_reference(
        self,
        fk: ForeignKeyInfo,
        alias: str,
        column: ColumnInfo,
        joins: list[JoinConstraint],
        pass_rows: dict[str, GeneratedRow],
    ) -> Any:
        for join in joins:
            other_alias, _ = join.other_side(alias, column.name)
            other = pass_rows.get(other_alias.lower())
            if other is not None and other.table.lower() == fk.referenced_table.lower():
                return other.get(fk.referenced_column)
        return None

    def _constrained_value(
        self,
        table_info: TableInfo,
        alias: str,
        column: ColumnInfo,
        constraints: ComprehensiveConstraints,
        row: GeneratedRow,
        row_index: int,
    ) -> Any:
        applicable = [
            c for c in constraints.for_column(alias, column.name)
            if not isinstance(c, JoinConstraint)
        ]
        constraint_set = ConstraintSet(column=column, constraints=applicable)
        sources = [self.oracle, self.sampler] if self.oracle is not None else [self.sampler]

        violations: list[str] = []
        for attempt in range(self.max_constraint_attempts):
            context = ColumnContext(
                table=table_info.name,
                alias=alias,
                column=column,
                row_index=row_index,
                attempt=attempt,
                row_values=dict(row.values),
            )
            for source in sources:
                try:
                    value = source.propose(context, constraint_set)
                except (UnsatisfiableValueError, OracleUnavailableError) as e:
                    logger.debug(f"Oracle skipped {table_info.name}.{column.name}: {e}")
                    continue
                except Exception as e:
                    # Sampler errors propagate
                    if source is not self.oracle:
                        raise
                    logger.warning(f"Oracle failed for {table_info.name}.{column.name}: {e}")
                    continue
                violations = self.validator.violations(value, constraint_set)
                if not violations:
                    return coerce_value(value, column.type_category)

        raise ConstraintUnsatisfiableError(
            table_info.name, column.name, self.max_constraint_attempts, violations
        )
