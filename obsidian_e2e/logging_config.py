"""
Console Logging Configuration for Obsidian E2E Runs
===================================================

Colorized console output so session transitions, window churn and plugin
staging stand out in long pytest logs.

Usage:
    from obsidian_e2e.logging_config import configure_logging, colorize

    configure_logging()          # honours OBSIDIAN_E2E_LOG_LEVEL
    logger.debug(colorize("Opening sandbox vault...", "green"))
"""

import logging
import sys
from datetime import datetime
from typing import Optional, Union

import colorama
from colorama import Fore, Style

from obsidian_e2e.config.env import get_env_str

colorama.init()

ROOT_LOGGER_NAME = "obsidian_e2e"

_NAMED_COLORS = {
    "red": Fore.RED,
    "green": Fore.GREEN,
    "yellow": Fore.YELLOW,
    "blue": Fore.BLUE,
    "magenta": Fore.MAGENTA,
    "cyan": Fore.CYAN,
    "white": Fore.WHITE,
}


def colorize(text: str, color: str) -> str:
    """Wrap text in a colorama color; unknown names return the text unchanged."""
    code = _NAMED_COLORS.get(color)
    if code is None:
        return text
    return f"{code}{text}{Style.RESET_ALL}"


class E2ELogFormatter(logging.Formatter):
    """Timestamp, colored level and logger name, then the message."""

    LEVEL_COLORS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]
        level = record.levelname.ljust(7)
        name = record.name
        if name.startswith(ROOT_LOGGER_NAME + "."):
            name = name[len(ROOT_LOGGER_NAME) + 1:]

        if self.use_color:
            color = self.LEVEL_COLORS.get(record.levelno, Fore.WHITE)
            line = (
                f"{Fore.BLUE}{timestamp}{Style.RESET_ALL} "
                f"{color}{level}{Style.RESET_ALL} "
                f"{Style.DIM}{name}{Style.RESET_ALL} {record.getMessage()}"
            )
        else:
            line = f"{timestamp} {level} {name} {record.getMessage()}"

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(
    level: Optional[Union[int, str]] = None,
    use_color: Optional[bool] = None,
) -> logging.Logger:
    """
    Attach a single console handler to the package logger.

    Calling it again replaces the handler instead of stacking duplicates.

    Args:
        level: Log level; defaults to $OBSIDIAN_E2E_LOG_LEVEL or INFO.
        use_color: Force color on/off; defaults to whether stderr is a TTY.
    """
    if level is None:
        level = get_env_str("OBSIDIAN_E2E_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    if use_color is None:
        use_color = sys.stderr.isatty()

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if getattr(handler, "_obsidian_e2e", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(E2ELogFormatter(use_color=use_color))
    handler._obsidian_e2e = True
    logger.addHandler(handler)
    return logger
