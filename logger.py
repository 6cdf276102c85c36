import os
import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install

# ignore errors from these libs
import aiofiles, tomlkit, voluptuous, websockets

console = Console()

# libraries that log every frame or file operation at debug
QUIET_LOGGERS = ("websockets", "asyncio")


def setup_logging(level: Optional[str] = None):
    FORMAT = "%(message)s"
    level = level or os.environ.get("CONSOLE_KEEPER_LOGLEVEL") or os.environ.get("LOGLEVEL", "INFO")
    logging_handler = RichHandler(
        level=level,
        console=console,
        rich_tracebacks=True,
        tracebacks_suppress=[aiofiles, tomlkit, voluptuous, websockets]
    )

    logging.basicConfig(
        level="NOTSET", format=FORMAT, datefmt="[%X]", handlers=[logging_handler]
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO)

    install(
        console = console
    )
