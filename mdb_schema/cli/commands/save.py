"""
Save command for CLI.

Writes the live schema of the project's MongoDB database to a schema
document.

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict

import click

from ...config import DEFAULT_SCHEMA_FILE, load_config
from ...core.model import DesiredSchema
from ...core.reconciler import save_schema
from ...core.serializer import schema_to_toml
from ...exceptions import SchemaError
from ..utils import common_options, config_flags, configure_logging, open_connection, run_interruptible


async def run_save(config: Dict[str, Any]) -> DesiredSchema:
    async def work(interrupt):
        async with open_connection(config, interrupt) as conn:
            return await save_schema(conn, interrupt=interrupt)

    return await run_interruptible(work)


@click.command()
@click.argument("project_path", required=False)
@common_options
@click.option(
    "--out-file",
    "-o",
    metavar="PATH",
    default=str(DEFAULT_SCHEMA_FILE),
    help='File to write the schema to, defaults to .hz/schema.toml; use "-" for stdout.',
)
def save(
    project_path: str | None,
    project_name: str | None,
    connect: str | None,
    start_mongodb: str | None,
    config_path: str | None,
    debug: str | None,
    out_file: str,
) -> None:
    """
    Save the schema of a project database to a file.

    Examples:
        mdb-schema save
        mdb-schema save --connect localhost:27017 --out-file schema.toml
        mdb-schema save myproject -o -
    """
    try:
        config = load_config(
            config_flags(project_path, project_name, connect, start_mongodb, config_path, debug)
        )
        configure_logging(config["debug"])

        # The connection is closed before anything is written
        schema = asyncio.run(run_save(config))
    except SchemaError as e:
        raise click.ClickException(str(e)) from e

    toml_str = schema_to_toml(schema)
    if out_file == "-":
        click.echo(toml_str, nl=False)
        return

    output_path = Path(out_file)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(toml_str, encoding="utf-8")
    except OSError as e:
        raise click.ClickException(f"Failed to write {output_path}: {e}") from e

    click.echo(click.style(f"✅ Saved schema to {output_path}", fg="green"))
