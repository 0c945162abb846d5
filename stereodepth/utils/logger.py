"""Console logging for stereodepth, colored with colorama."""

import copy
import logging
import sys
from typing import Optional
from colorama import Fore, Back, Style, init

init(autoreset=True)

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Module loggers from get_logger(__name__) all sit below this one
ROOT_LOGGER_NAME = "stereodepth"

LEVEL_COLORS = {
    logging.DEBUG: Fore.CYAN,
    logging.INFO: Fore.GREEN,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED + Back.WHITE + Style.BRIGHT,
}


class ColoredFormatter(logging.Formatter):
    """
    Colors the level name, and the message of warnings and errors.

    Formatting works on a copy of the record, so a second handler on the
    same logger (a log file, pytest's capture) still gets plain text.
    """

    def __init__(self, fmt: str, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)

        record = copy.copy(record)
        color = LEVEL_COLORS.get(record.levelno, '')
        record.levelname = f"{color}{record.levelname}{Style.RESET_ALL}"
        if record.levelno >= logging.WARNING:
            message_color = Fore.RED if record.levelno >= logging.ERROR else Fore.YELLOW
            record.msg = f"{message_color}{record.msg}{Style.RESET_ALL}"

        return super().format(record)


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str = "INFO",
    fmt: Optional[str] = None,
    use_colors: bool = True
) -> logging.Logger:
    """
    Attach a stdout handler to ``name`` and set its level.

    Calling it again only changes the level; the handler is reused.

    Raises:
        ValueError: If ``level`` is not a standard level name.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(numeric_level)
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    if use_colors:
        handler.setFormatter(ColoredFormatter(fmt or DEFAULT_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    logger.addHandler(handler)

    return logger


def setup_from_settings(logging_config) -> logging.Logger:
    """Configure the package logger from the ``logging`` settings section."""
    return setup_logger(
        ROOT_LOGGER_NAME,
        level=logging_config.level,
        fmt=logging_config.format,
        use_colors=logging_config.console_colors,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
