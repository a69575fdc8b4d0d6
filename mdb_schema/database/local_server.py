"""
Local mongod for projects without an external MongoDB server.

start_mongod() runs a mongod process whose data lives in the project's
.hz/mongodb_data directory, waits until it accepts connections and stops it
on exit:

    async with start_mongod(project_path) as (host, port):
        conn = await SchemaConnection.connect(host, port, project_name)

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

import asyncio
import contextlib
import logging
import shutil
import socket
from pathlib import Path
from typing import AsyncIterator, Tuple

from ..exceptions import ConfigurationError, ReadinessTimeoutError

logger = logging.getLogger(__name__)

MONGOD_BINARY = "mongod"
DATA_DIR = Path(".hz") / "mongodb_data"
LOCAL_HOST = "127.0.0.1"
STARTUP_TIMEOUT = 30  # seconds
STOP_TIMEOUT = 10  # seconds


def _free_port() -> int:
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as sock:
        sock.bind((LOCAL_HOST, 0))
        return sock.getsockname()[1]


async def _wait_for_port(host: str, port: int, process: asyncio.subprocess.Process) -> None:
    while True:
        if process.returncode is not None:
            raise ConfigurationError(f"mongod exited with code {process.returncode} during startup")
        try:
            _, writer = await asyncio.open_connection(host, port)
        except OSError:
            await asyncio.sleep(0.2)
            continue
        writer.close()
        await writer.wait_closed()
        return


@contextlib.asynccontextmanager
async def start_mongod(project_path: str = ".") -> AsyncIterator[Tuple[str, int]]:
    """
    Start mongod for the project and yield (host, port).

    Raises:
        ConfigurationError: If mongod is not installed or exits early
        ReadinessTimeoutError: If mongod does not accept connections in time
    """
    binary = shutil.which(MONGOD_BINARY)
    if binary is None:
        raise ConfigurationError(
            "mongod not found in PATH; install MongoDB or pass --connect HOST:PORT"
        )

    data_dir = Path(project_path) / DATA_DIR
    data_dir.mkdir(parents=True, exist_ok=True)
    port = _free_port()

    logger.info(f"Starting mongod on {LOCAL_HOST}:{port} with data in {data_dir}")
    process = await asyncio.create_subprocess_exec(
        binary,
        "--dbpath", str(data_dir),
        "--bind_ip", LOCAL_HOST,
        "--port", str(port),
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )
    try:
        try:
            await asyncio.wait_for(_wait_for_port(LOCAL_HOST, port, process), STARTUP_TIMEOUT)
        except asyncio.TimeoutError:
            raise ReadinessTimeoutError(f"mongod on port {port}", STARTUP_TIMEOUT) from None
        yield LOCAL_HOST, port
    finally:
        if process.returncode is None:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), STOP_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("mongod did not stop in time, killing it")
                process.kill()
                await process.wait()
        logger.info("mongod stopped")
