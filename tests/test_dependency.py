"""Test dependency graph and insertion planning."""

import pytest

from queryseed.constraint_extractor import ConstraintExtractor
from queryseed.dependency import DependencyGraph, DependencyPlanner
from queryseed.exceptions import DependencyError
from queryseed.introspection import StaticSchemaProvider
from queryseed.query_analyzer import QueryAnalyzer


def plan_for(sql: str, provider):
    analyzed = QueryAnalyzer().analyze(sql)
    constraints = ConstraintExtractor().extract(analyzed)
    return DependencyPlanner(provider).plan(analyzed.tables, constraints.joins)


def cyclic_provider(a_nullable: bool) -> StaticSchemaProvider:
    return StaticSchemaProvider.from_dict(
        {
            "tables": {
                "a": {
                    "columns": [
                        {"name": "id", "type": "integer", "primary_key": True, "identity": True},
                        {"name": "b_id", "type": "integer", "nullable": a_nullable},
                    ],
                    "foreign_keys": [{"column": "b_id", "references": "b.id"}],
                },
                "b": {
                    "columns": [
                        {"name": "id", "type": "integer", "primary_key": True, "identity": True},
                        {"name": "a_id", "type": "integer", "nullable": False},
                    ],
                    "foreign_keys": [{"column": "a_id", "references": "a.id"}],
                },
            }
        }
    )


def test_topological_sort_simple():
    """Test parents come before children."""
    graph = DependencyGraph()
    graph.add_dependency("users", "companies")
    graph.add_dependency("user_roles", "users")
    graph.add_dependency("user_roles", "roles")

    order = graph.topological_sort()

    assert order.index("companies") < order.index("users") < order.index("user_roles")
    assert order.index("roles") < order.index("user_roles")


def test_topological_sort_cycle_raises():
    """Test a cycle reports the stalled tables."""
    graph = DependencyGraph()
    graph.add_dependency("a", "b")
    graph.add_dependency("b", "a")
    graph.add_dependency("c", "a")

    with pytest.raises(DependencyError) as exc_info:
        graph.topological_sort()

    assert exc_info.value.tables == {"a", "b", "c"}
    assert graph.cycle_members(exc_info.value.tables) == ["a", "b"]


def test_parent_tables_outside_query_are_included(provider):
    """Test FK parents are planned even when the query does not mention them."""
    plan = plan_for("SELECT * FROM users", provider)

    assert plan.order == ["companies", "users"]
    assert [(step.alias, step.priority) for step in plan.steps] == [("companies", 0), ("users", 1)]
    assert plan.deferred == set()


def test_priorities_and_first_seen_tie_break(provider):
    """Test ties at the same priority keep first-seen order."""
    plan = plan_for("SELECT * FROM user_roles", provider)

    assert plan.order == ["roles", "companies", "users", "user_roles"]
    assert plan.priorities == {"user_roles": 2, "users": 1, "roles": 0, "companies": 0}


def test_self_join_orders_referenced_alias_first(provider):
    """Test the manager alias is generated before the employee alias."""
    plan = plan_for(
        "SELECT * FROM users e JOIN users m ON e.manager_id = m.id", provider
    )

    assert plan.aliases_of("users") == ["m", "e"]


def test_nullable_self_reference_is_not_a_cycle(provider):
    """Test a nullable self-FK plans without error."""
    plan = plan_for("SELECT * FROM users u WHERE u.manager_id IS NULL", provider)

    assert "users" in plan.order


def test_cycle_broken_at_nullable_fk(caplog):
    """Test a cycle is broken by deferring its nullable FK."""
    plan = plan_for("SELECT * FROM b", cyclic_provider(a_nullable=True))

    assert plan.deferred == {("a", "b_id")}
    assert plan.is_deferred("A", "B_ID")
    assert plan.order == ["a", "b"]
    assert "seeded NULL" in caplog.text


def test_cycle_without_nullable_fk_raises():
    """Test an unbreakable cycle is fatal."""
    with pytest.raises(DependencyError) as exc_info:
        plan_for("SELECT * FROM a", cyclic_provider(a_nullable=False))

    assert exc_info.value.tables == {"a", "b"}


def test_not_null_self_reference_raises():
    """Test a NOT NULL self-FK cannot be seeded."""
    provider = StaticSchemaProvider.from_dict(
        {
            "tables": {
                "nodes": {
                    "columns": [
                        {"name": "id", "type": "integer", "primary_key": True, "identity": True},
                        {"name": "parent_id", "type": "integer", "nullable": False},
                    ],
                    "foreign_keys": [{"column": "parent_id", "references": "nodes.id"}],
                }
            }
        }
    )

    with pytest.raises(DependencyError):
        plan_for("SELECT * FROM nodes", provider)
