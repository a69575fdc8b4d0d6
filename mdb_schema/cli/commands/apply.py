"""
Apply command for CLI.

Applies a schema document to the project's MongoDB database.

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

import asyncio
from typing import Any, Dict

import click

from ...config import load_config, parse_yes_no_option
from ...core.model import DesiredSchema
from ...core.parser import parse_schema
from ...core.reconciler import ApplyResult, apply_schema
from ...exceptions import SchemaError
from ..utils import (
    common_options,
    config_flags,
    configure_logging,
    open_connection,
    run_interruptible,
    yes_no_option,
)


async def run_apply(config: Dict[str, Any], schema: DesiredSchema, update: bool, force: bool) -> ApplyResult:
    async def work(interrupt):
        async with open_connection(config, interrupt) as conn:
            return await apply_schema(conn, schema, update=update, force=force, interrupt=interrupt)

    return await run_interruptible(work)


@click.command()
@click.argument("schema_file", metavar="SCHEMA_FILE_PATH", type=click.File("r", encoding="utf-8"))
@click.argument("project_path", required=False)
@common_options
@yes_no_option("--update", help="Only add new items and update existing, no removal.")
@yes_no_option("--force", help="Allow removal of existing collections.")
def apply(
    schema_file,
    project_path: str | None,
    project_name: str | None,
    connect: str | None,
    start_mongodb: str | None,
    config_path: str | None,
    debug: str | None,
    update: str | None,
    force: str | None,
) -> None:
    """
    Apply a schema file to a project database.

    SCHEMA_FILE_PATH: File to read the schema from, use "-" for stdin.

    Examples:
        mdb-schema apply .hz/schema.toml
        mdb-schema apply schema.toml --connect localhost:27017 --update
        mdb-schema apply schema.toml myproject --force yes
    """
    try:
        config = load_config(
            config_flags(project_path, project_name, connect, start_mongodb, config_path, debug)
        )
        configure_logging(config["debug"])
        update_only = bool(parse_yes_no_option(update, "--update"))
        allow_removal = bool(parse_yes_no_option(force, "--force"))

        schema = parse_schema(schema_file.read())
        result = asyncio.run(run_apply(config, schema, update_only, allow_removal))
    except SchemaError as e:
        raise click.ClickException(str(e)) from e

    if result.metadata_created:
        click.echo("Initialized new application metadata.")
    click.echo(
        click.style(
            f"✅ Applied schema to '{config['project_name']}' ({result.changes} change(s))",
            fg="green",
        )
    )
