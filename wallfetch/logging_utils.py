"""Logging setup for the command-line tool."""

import logging
import sys
from pathlib import Path
from typing import Optional


class ColoredConsoleFormatter(logging.Formatter):
    """Formatter that colors the level name on the console."""

    COLORS = {
        "DEBUG": "\033[90m",
        "INFO": "\033[36m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(level: str = "WARNING", output_file: Optional[str] = None) -> None:
    """Set up logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        output_file: Optional file path to write logs to
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    format_string = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # stderr keeps log lines out of the command output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    if sys.stderr.isatty():
        console_handler.setFormatter(ColoredConsoleFormatter(format_string, datefmt="%H:%M:%S"))
    else:
        console_handler.setFormatter(logging.Formatter(format_string, datefmt="%H:%M:%S"))
    root_logger.addHandler(console_handler)

    if output_file:
        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(output_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S"))
        root_logger.addHandler(file_handler)

    for package in ("urllib3", "requests", "PIL"):
        logging.getLogger(package).setLevel(logging.WARNING)
