"""
Shared helpers for the schema commands: common options, logging setup,
connection handling and interrupt wiring.

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

import asyncio
import contextlib
import logging
import signal
from typing import Any, Awaitable, Callable, Dict, TypeVar

import click

from ..core.interrupt import Interrupt
from ..database.connection import SchemaConnection
from ..database.local_server import start_mongod
from ..exceptions import ReconciliationInterrupted

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def yes_no_option(*param_decls: str, help: str) -> Callable:
    """An option taking yes/no; given bare it means yes."""
    return click.option(
        *param_decls,
        metavar="yes|no",
        is_flag=False,
        flag_value="yes",
        default=None,
        help=help,
    )


def common_options(func: Callable) -> Callable:
    """Options shared by apply and save."""
    decorators = [
        click.option(
            "--project-name",
            "-n",
            metavar="NAME",
            default=None,
            help="Name of the project; also the MongoDB database name.",
        ),
        click.option(
            "--connect",
            "-c",
            metavar="HOST:PORT",
            default=None,
            help="Host and port of the MongoDB server to connect to.",
        ),
        yes_no_option(
            "--start-mongodb",
            help="Start up a MongoDB server in the project directory.",
        ),
        click.option(
            "--config",
            "config_path",
            metavar="PATH",
            default=None,
            help='Path to the config file to use, defaults to ".hz/config.toml".',
        ),
        yes_no_option("--debug", help="Enable debug logging."),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def config_flags(project_path, project_name, connect, start_mongodb, config_path, debug) -> Dict[str, Any]:
    return {
        "project_path": project_path,
        "project_name": project_name,
        "connect": connect,
        "start_mongodb": start_mongodb,
        "config": config_path,
        "debug": debug,
    }


def configure_logging(debug: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if debug else logging.ERROR, format=LOG_FORMAT)
    logging.getLogger().setLevel(logging.DEBUG if debug else logging.ERROR)


async def run_interruptible(work: Callable[[Interrupt], Awaitable[T]]) -> T:
    """
    Run work(interrupt) with SIGINT/SIGTERM wired to the interrupt.

    On interrupt the running task is cancelled (callbacks registered by
    work, such as closing the connection, run first).
    """
    interrupt = Interrupt()
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()

    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, interrupt.trigger)
            installed.append(sig)
        except (NotImplementedError, RuntimeError, ValueError):
            # No signal support here (non-main thread or platform)
            pass

    try:
        interrupt.on_interrupt(task.cancel)
        return await work(interrupt)
    except asyncio.CancelledError:
        if interrupt.triggered:
            raise ReconciliationInterrupted() from None
        raise
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


@contextlib.asynccontextmanager
async def open_connection(config: Dict[str, Any], interrupt: Interrupt):
    """
    Connect according to config, starting a local mongod when configured.

    The connection is closed on interrupt and on exit.
    """
    async with contextlib.AsyncExitStack() as stack:
        host, port = config["mongo_host"], config["mongo_port"]
        if config["start_mongodb"]:
            host, port = await stack.enter_async_context(start_mongod(config["project_path"]))

        conn = await SchemaConnection.connect(host, port, config["project_name"])
        stack.callback(conn.close)
        interrupt.on_interrupt(conn.close)
        yield conn
