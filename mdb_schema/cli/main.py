"""
Main CLI entry point for MDB_SCHEMA.

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

import click

from .. import __version__
from .commands.apply import apply
from .commands.save import save


@click.group()
@click.version_option(version=__version__, prog_name="mdb-schema")
def cli() -> None:
    """
    MDB_SCHEMA CLI - apply and save the schema of a MongoDB project.
    """
    pass


# Register commands
cli.add_command(apply)
cli.add_command(save)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
