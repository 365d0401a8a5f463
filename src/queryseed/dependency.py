"""Dependency graph and insertion planning."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from queryseed.constraints import JoinConstraint
from queryseed.exceptions import DependencyError
from queryseed.models import ForeignKeyInfo, TableInfo
from queryseed.query_analyzer import TableReference

logger = logging.getLogger(__name__)


class SchemaProvider(Protocol):
    """Anything that can describe tables (database introspector, static file)."""

    def get_table_info(self, table_name: str) -> TableInfo: ...

    def get_foreign_keys(self, table_name: str) -> list[ForeignKeyInfo]: ...


class DependencyGraph:
    """Directed graph for table dependencies. Tables keep first-seen order."""

    def __init__(self):
        self._graph: dict[str, set[str]] = {}

    def add_table(self, table: str) -> None:
        """Add a table to the graph."""
        self._graph.setdefault(table, set())

    def add_dependency(self, table: str, depends_on: str) -> None:
        """Add a dependency: table depends on depends_on."""
        self.add_table(table)
        self.add_table(depends_on)
        self._graph[table].add(depends_on)

    def remove_dependency(self, table: str, depends_on: str) -> None:
        self._graph.get(table, set()).discard(depends_on)

    def get_dependencies(self, table: str) -> list[str]:
        """Get all tables that this table depends on."""
        return sorted(self._graph.get(table, set()))

    @property
    def tables(self) -> list[str]:
        return list(self._graph)

    def topological_sort(self) -> list[str]:
        """
        Sort tables in dependency order using Kahn's algorithm.

        Among tables that are ready at the same time, the one added first wins.

        Returns:
            Tables in order such that dependencies come before dependents.

        Raises:
            DependencyError: If a cycle remains (``tables`` holds the stalled set)
        """
        in_degree = {table: len(deps) for table, deps in self._graph.items()}
        result: list[str] = []
        remaining = list(self._graph)

        while remaining:
            ready = next((t for t in remaining if in_degree[t] == 0), None)
            if ready is None:
                raise DependencyError(set(remaining))
            remaining.remove(ready)
            result.append(ready)
            for other in remaining:
                if ready in self._graph[other]:
                    in_degree[other] -= 1

        return result

    def cycle_members(self, stalled: Iterable[str]) -> list[str]:
        """
        Narrow a stalled set down to tables that sit on a cycle.

        Tables that merely depend on a cycle are pruned: a member must be
        depended on by another member of the set.
        """
        members = [t for t in self._graph if t in set(stalled)]
        changed = True
        while changed:
            changed = False
            for table in list(members):
                if not any(table in self._graph[other] for other in members if other != table):
                    members.remove(table)
                    changed = True
        return members


@dataclass(frozen=True)
class PlanStep:
    """One row to generate per pass: a table under one query alias."""

    alias: str
    table: str
    priority: int


@dataclass
class DependencyPlan:
    """
    Insertion plan for one query.

    Attributes:
        order: Table names, parents before children
        steps: One step per alias in insert order
        priorities: Table name to priority (0 = no parents)
        deferred: (table, column) FK edges broken to resolve cycles; seeded NULL
        tables: Table name to TableInfo for every planned table
    """

    order: list[str]
    steps: list[PlanStep]
    priorities: dict[str, int]
    deferred: set[tuple[str, str]] = field(default_factory=set)
    tables: dict[str, TableInfo] = field(default_factory=dict)

    def is_deferred(self, table: str, column: str) -> bool:
        return (table.lower(), column.lower()) in {(t.lower(), c.lower()) for t, c in self.deferred}

    def aliases_of(self, table: str) -> list[str]:
        """Aliases planned for a table, in insert order."""
        return [step.alias for step in self.steps if step.table.lower() == table.lower()]

    def table_info(self, table: str) -> TableInfo:
        for name, info in self.tables.items():
            if name.lower() == table.lower():
                return info
        raise KeyError(table)


def resolve_required_tables(
    references: list[TableReference], provider: SchemaProvider
) -> dict[str, TableInfo]:
    """
    Collect the query's tables plus every FK parent they need, transitively.

    Args:
        references: Table references from the analyzed query
        provider: Schema provider

    Returns:
        Table name to TableInfo in first-seen order (query tables first)
    """
    tables: dict[str, TableInfo] = {}
    queue = []
    for ref in references:
        if ref.name.lower() not in {name.lower() for name in tables}:
            info = provider.get_table_info(ref.name)
            tables[info.name] = info
            queue.append(info)

    while queue:
        info = queue.pop(0)
        for fk in info.foreign_keys:
            if fk.is_self_referencing or fk.referenced_table.lower() == info.name.lower():
                continue
            if fk.referenced_table.lower() in {name.lower() for name in tables}:
                continue
            parent = provider.get_table_info(fk.referenced_table)
            logger.info(
                f"Including '{parent.name}': referenced by {info.name}.{fk.column} "
                f"but not part of the query"
            )
            tables[parent.name] = parent
            queue.append(parent)

    return tables


class DependencyPlanner:
    """
    Order tables so every FK parent is inserted before its children.

    Cycles are broken by deferring one nullable FK per cycle (the column is
    seeded NULL); a cycle without a nullable FK is an error.
    """

    def __init__(self, provider: SchemaProvider):
        self.provider = provider

    def plan(
        self,
        references: list[TableReference],
        join_constraints: Iterable[JoinConstraint] = (),
    ) -> DependencyPlan:
        """
        Build the insertion plan for a query.

        Args:
            references: Table references in FROM/JOIN order
            join_constraints: Column equalities from the query, used to order
                the aliases of a self-joined table

        Returns:
            DependencyPlan

        Raises:
            DependencyError: On a cycle with no nullable FK, or a NOT NULL
                self-referencing FK
            TableNotFoundError: If the provider does not know a table
        """
        tables = resolve_required_tables(references, self.provider)
        canonical = {name.lower(): name for name in tables}

        for info in tables.values():
            for fk in info.foreign_keys:
                if not _is_self_reference(info, fk):
                    continue
                column = info.get_column(fk.column)
                if column is not None and not column.is_nullable:
                    raise DependencyError(
                        {info.name},
                        f"self-referencing column {info.name}.{fk.column} is NOT NULL",
                    )

        graph = DependencyGraph()
        for name in tables:
            graph.add_table(name)
        for info in tables.values():
            for fk in info.foreign_keys:
                parent = canonical.get(fk.referenced_table.lower())
                if parent is not None and not _is_self_reference(info, fk):
                    graph.add_dependency(info.name, parent)

        deferred: set[tuple[str, str]] = set()
        while True:
            try:
                graph.topological_sort()
                break
            except DependencyError as e:
                edge = self._pick_deferrable(graph, e.tables, tables, canonical, deferred)
                if edge is None:
                    raise DependencyError(
                        set(graph.cycle_members(e.tables)) or e.tables,
                        "no nullable foreign key to break the cycle",
                    ) from e
                table, column, parent = edge
                deferred.add((table, column))
                # The edge only goes away once every FK between the pair is deferred
                if all(
                    (table, fk.column) in deferred
                    for fk in tables[table].foreign_keys
                    if canonical.get(fk.referenced_table.lower()) == parent
                ):
                    graph.remove_dependency(table, parent)
                logger.warning(
                    f"Foreign key cycle: {table}.{column} -> {parent} will be seeded NULL"
                )

        priorities: dict[str, int] = {}
        for name in graph.topological_sort():
            parents = [p for p in graph.get_dependencies(name) if p != name]
            priorities[name] = 1 + max(priorities[p] for p in parents) if parents else 0

        first_seen = {name: i for i, name in enumerate(tables)}
        order = sorted(tables, key=lambda name: (priorities[name], first_seen[name]))

        steps = []
        for name in order:
            for alias in self._order_aliases(name, tables[name], references, join_constraints):
                steps.append(PlanStep(alias=alias, table=name, priority=priorities[name]))

        logger.info(f"Insert order: {' -> '.join(order)}")
        return DependencyPlan(
            order=order,
            steps=steps,
            priorities=priorities,
            deferred=deferred,
            tables=tables,
        )

    def _pick_deferrable(
        self,
        graph: DependencyGraph,
        stalled: set[str],
        tables: dict[str, TableInfo],
        canonical: dict[str, str],
        deferred: set[tuple[str, str]],
    ) -> tuple[str, str, str] | None:
        members = graph.cycle_members(stalled)
        for table in members:
            info = tables[table]
            for fk in info.foreign_keys:
                parent = canonical.get(fk.referenced_table.lower())
                if parent is None or parent not in members or parent == table:
                    continue
                if (table, fk.column) in deferred:
                    continue
                column = info.get_column(fk.column)
                if column is not None and column.is_nullable:
                    return table, fk.column, parent
        return None

    def _order_aliases(
        self,
        table: str,
        info: TableInfo,
        references: list[TableReference],
        join_constraints: Iterable[JoinConstraint],
    ) -> list[str]:
        aliases = [ref.alias for ref in references if ref.name.lower() == table.lower()]
        if not aliases:
            return [table]
        if len(aliases) == 1:
            return aliases

        # alias -> aliases it points at through a self-referencing FK
        targets: dict[str, set[str]] = {alias.lower(): set() for alias in aliases}
        for join in join_constraints:
            for child, column, parent in (
                (join.alias, join.column, join.right_alias),
                (join.right_alias, join.right_column, join.alias),
            ):
                if child.lower() not in targets or parent.lower() not in targets:
                    continue
                fk = info.get_foreign_key(column)
                if fk is not None and _is_self_reference(info, fk):
                    targets[child.lower()].add(parent.lower())

        ordered: list[str] = []
        remaining = list(aliases)
        while remaining:
            ready = next(
                (a for a in remaining if targets[a.lower()] <= {o.lower() for o in ordered}),
                remaining[0],
            )
            remaining.remove(ready)
            ordered.append(ready)
        return ordered


def _is_self_reference(info: TableInfo, fk: ForeignKeyInfo) -> bool:
    return fk.is_self_referencing or fk.referenced_table.lower() == info.name.lower()
