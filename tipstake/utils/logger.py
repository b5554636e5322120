"""
Logging for tipstake.

Every module logs under the "tipstake" namespace (tipstake.staking,
tipstake.token, tipstake.storage.manager, ...). Console output is colored
and goes to stderr so CLI stdout stays parseable. A rotating file under the
configured log directory can be added to keep an audit trail of pool
operations across CLI invocations.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

import colorlog

ROOT = "tipstake"
LOG_FILE = "tipstake.log"

CONSOLE_FORMAT = "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s"
FILE_FORMAT = "%(asctime)s %(process)d [%(name)s] %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

_configured = False


def parse_level(level: Union[int, str]) -> int:
    """
    Resolve a level given as an int or a name ("debug", "WARNING").

    Raises:
        ValueError: Unknown level name
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[Union[str, Path]] = None,
    max_bytes: int = 5 * 1024 * 1024,
    backups: int = 3,
) -> logging.Logger:
    """
    (Re)configure the tipstake logger tree.

    Args:
        level: Threshold for every handler
        log_dir: If set, also append to <log_dir>/tipstake.log, rotated at
            max_bytes with `backups` old files kept
    Returns:
        The tipstake root logger
    """
    global _configured

    threshold = parse_level(level)
    root = logging.getLogger(ROOT)
    reset_logging()
    root.setLevel(threshold)
    # Keep records out of the interpreter's root logger
    root.propagate = False

    console = colorlog.StreamHandler(sys.stderr)
    console.setFormatter(
        colorlog.ColoredFormatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT, log_colors=LEVEL_COLORS)
    )
    root.addHandler(console)

    if log_dir is not None:
        path = Path(log_dir).expanduser()
        path.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            path / LOG_FILE, maxBytes=max_bytes, backupCount=backups, encoding="utf-8"
        )
        handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(handler)

    for handler in root.handlers:
        handler.setLevel(threshold)

    _configured = True
    return root


def reset_logging() -> None:
    """Close and detach every tipstake handler."""
    global _configured

    root = logging.getLogger(ROOT)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    _configured = False


def get_logger(name: str) -> logging.Logger:
    """
    Logger for one subsystem, e.g. get_logger("staking").

    The first call installs an INFO console handler unless
    configure_logging() already ran.
    """
    if not _configured:
        configure_logging()
    return logging.getLogger(f"{ROOT}.{name}")
