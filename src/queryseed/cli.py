"""CLI commands for queryseed."""

import json
import logging
import sys
from contextlib import ExitStack
from pathlib import Path

import click
import psycopg

from queryseed.config import CONFIG_FILENAME, Config
from queryseed.constraint_extractor import ConstraintExtractor
from queryseed.constraints import describe
from queryseed.dialects.factory import get_dialect
from queryseed.exceptions import QueryseedError
from queryseed.generators.rate_limit import RateLimitedOracle
from queryseed.generators.registry import create_oracle
from queryseed.insert_builder import InsertBuilder
from queryseed.introspection import SchemaIntrospector, StaticSchemaProvider
from queryseed.models import GenerationRequest, InsertStatement
from queryseed.orchestrator import GenerationOrchestrator
from queryseed.query_analyzer import QueryAnalyzer


def _load_config(config_path: str | None) -> Config:
    if config_path:
        return Config.from_toml(config_path)
    try:
        return Config.find_and_load()
    except FileNotFoundError:
        return Config()


def _read_sql(sql: str | None, sql_file: str | None) -> str:
    if sql and sql_file:
        click.echo("Error: --sql and --sql-file are mutually exclusive", err=True)
        sys.exit(1)
    if sql_file:
        return Path(sql_file).read_text()
    if sql:
        return sql
    click.echo("Error: Either --sql or --sql-file is required", err=True)
    sys.exit(1)


@click.group()
@click.version_option(package_name="queryseed")
def cli() -> None:
    """queryseed - generate test rows that a SQL query will return."""
    pass


@cli.command()
@click.option("--sql", help="SELECT statement to populate")
@click.option("--sql-file", type=click.Path(exists=True, dir_okay=False), help="File holding the SELECT")
@click.option("--count", type=int, default=10, show_default=True, help="Rows the query should return")
@click.option("--current", type=int, default=0, show_default=True, help="Rows it already returns")
@click.option("--dialect", help="mysql, postgresql, sqlserver or oracle (default: from config)")
@click.option(
    "--schema-file",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML table definitions (offline, no database)",
)
@click.option("--database-url", help="PostgreSQL URL to introspect and insert into")
@click.option("--dry-run", is_flag=True, help="Render statements without touching the database")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the SQL script here")
@click.option("--seed", type=int, help="Random seed for reproducible values")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="queryseed.toml to use")
@click.option("--verbose", "-v", is_flag=True, help="Log pipeline details to stderr")
def generate(
    sql: str | None,
    sql_file: str | None,
    count: int,
    current: int,
    dialect: str | None,
    schema_file: str | None,
    database_url: str | None,
    dry_run: bool,
    output: str | None,
    seed: int | None,
    config_path: str | None,
    verbose: bool,
) -> None:
    """Generate INSERT statements so the query returns COUNT rows."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = _load_config(config_path)
    query = _read_sql(sql, sql_file)
    database_type = dialect or config.database.database_type
    url = database_url or config.database.url
    if seed is not None:
        config.generation.random_seed = seed

    with ExitStack() as stack:
        connection = None
        if schema_file:
            provider = StaticSchemaProvider.from_yaml(schema_file)
        elif url:
            try:
                connection = stack.enter_context(psycopg.connect(url))
                provider = SchemaIntrospector(connection, config.database.schema_name)
            except (psycopg.Error, QueryseedError) as e:
                click.echo(f"Error: {e}", err=True)
                sys.exit(1)
        else:
            click.echo("Error: Either --schema-file or --database-url is required", err=True)
            sys.exit(1)

        orchestrator = GenerationOrchestrator(
            provider,
            oracle=_build_oracle(config),
            config=config.generation,
        )
        request = GenerationRequest(
            database_type=database_type,
            sql_query=query,
            desired_record_count=count,
            current_record_count=current,
            connection=None if dry_run else connection,
            use_oracle=config.generation.use_oracle,
        )
        result = orchestrator.run(request, dry_run=dry_run or connection is None)

    if output and result.generated_insert_statements:
        script = _render(result.generated_insert_statements, query, database_type, config)
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_text(script)
        click.echo(f"Wrote {len(result.generated_insert_statements)} statement(s) to {output}", err=True)
    elif result.generated_insert_statements:
        script = _render(result.generated_insert_statements, query, database_type, config)
        click.echo(script, nl=False)

    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)

    if not result.success:
        click.echo(
            f"✗ Generated {result.generated_records}/{count - current} record(s): "
            f"{result.error_message}",
            err=True,
        )
        sys.exit(1)
    click.echo(
        f"✓ Generated {result.generated_records} record(s) in {result.execution_time:.2f}s",
        err=True,
    )


def _build_oracle(config: Config) -> RateLimitedOracle | None:
    if not config.oracle.name:
        return None
    try:
        return create_oracle(
            config.oracle.name,
            call_budget=config.oracle.call_budget,
            min_interval=config.oracle.min_interval_seconds,
        )
    except (KeyError, ValueError) as e:
        click.echo(f"Error: {e.args[0]}", err=True)
        sys.exit(1)


def _render(statements: list[str], query: str, database_type: str, config: Config) -> str:
    builder = InsertBuilder(get_dialect(database_type))
    header = None
    if config.output.include_comments:
        header = "Generated by queryseed for:\n" + " ".join(query.split())
    return builder.render_script([InsertStatement(table="", sql=s) for s in statements], header)


@cli.command()
@click.option("--sql", help="SELECT statement to analyze")
@click.option("--sql-file", type=click.Path(exists=True, dir_okay=False), help="File holding the SELECT")
@click.option(
    "--schema-file",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML table definitions (improves column attribution)",
)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def analyze(sql: str | None, sql_file: str | None, schema_file: str | None, output_json: bool) -> None:
    """Show the tables and constraints found in a query."""
    query = _read_sql(sql, sql_file)

    try:
        analyzed = QueryAnalyzer().analyze(query)
        schemas = {}
        if schema_file:
            provider = StaticSchemaProvider.from_yaml(schema_file)
            schemas = {ref.name: provider.get_table_info(ref.name) for ref in analyzed.tables}
        constraints = ConstraintExtractor(schemas).extract(analyzed)
    except QueryseedError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if output_json:
        payload = {
            "tables": [
                {"name": ref.name, "alias": ref.alias, "schema": ref.schema}
                for ref in analyzed.tables
            ],
            "constraints": [
                {"kind": c.kind.value, "text": describe(c)} for c in constraints
            ],
            "or_groups": [group.text for group in constraints.or_groups],
            "warnings": constraints.warnings,
        }
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo("Tables:")
    for ref in analyzed.tables:
        click.echo(f"  {ref.render()}")
    click.echo(f"Constraints ({len(constraints)}):")
    for constraint in constraints:
        click.echo(f"  [{constraint.kind.value}] {describe(constraint)}")
    for group in constraints.or_groups:
        click.echo(f"OR group: {group.text}")
    for warning in constraints.warnings:
        click.echo(f"Warning: {warning}", err=True)


@cli.command()
@click.option("--path", type=click.Path(dir_okay=False), default=CONFIG_FILENAME, show_default=True)
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init(path: str, force: bool) -> None:
    """Write a default queryseed.toml."""
    target = Path(path)
    if target.exists() and not force:
        click.echo(f"Error: {target} already exists (use --force to overwrite)", err=True)
        sys.exit(1)
    Config().to_toml(target)
    click.echo(f"✓ Created {target}")


if __name__ == "__main__":
    cli()
