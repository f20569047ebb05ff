"""
Logging setup for the fund-docs CLI and for applications embedding the package.

Level, output style and log file default to the LOG_* settings in
fund_docs.core.config; explicit arguments win. Library modules only call
logging.getLogger(__name__) and never configure handlers themselves.
"""
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from fund_docs.core.config import LOG_DIR, LOG_FILE, LOG_FORMAT, LOG_LEVEL
from fund_docs.core.exceptions import ConfigurationError

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_STYLES = ("text", "json")


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record, Korean text left unescaped."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, DATE_FORMAT),
            "logger": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def resolve_level(level: str) -> int:
    """
    Map a level name to its logging constant.

    Raises:
        ConfigurationError: If the name is not a logging level
    """
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ConfigurationError(f"Unknown log level '{level}'", config_key="LOG_LEVEL")
    return value


def build_formatter(style: str) -> logging.Formatter:
    """
    Formatter for a LOG_FORMAT style, 'text' or 'json'.

    Raises:
        ConfigurationError: If the style is unknown
    """
    if style == "json":
        return JsonLineFormatter()
    if style == "text":
        return logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)
    raise ConfigurationError(
        f"Unknown log format '{style}'",
        details={"allowed": list(LOG_STYLES)},
        config_key="LOG_FORMAT",
    )


def setup_logging(
    name: str = "fund_docs",
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
    log_dir: Optional[Path] = None,
    console: bool = True,
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        name: Logger name (usually the package name, "fund_docs")
        level: Log level name, defaults to LOG_LEVEL
        log_format: 'text' or 'json', defaults to LOG_FORMAT
        log_file: Log file name created in log_dir, defaults to LOG_FILE
        log_dir: Directory for the log file, defaults to LOG_DIR
        console: Whether to write to stderr

    Returns:
        Configured logger instance

    Raises:
        ConfigurationError: If the level or format is not recognised

    Examples:
        >>> logger = setup_logging()
        >>> logger = setup_logging(level="DEBUG", log_format="json", log_file="compose.log")
    """
    level_value = resolve_level(level or LOG_LEVEL)
    formatter = build_formatter(log_format or LOG_FORMAT)
    log_file = log_file or LOG_FILE or None
    log_dir = Path(log_dir or LOG_DIR)

    logger = logging.getLogger(name)
    logger.setLevel(level_value)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    # stdout is reserved for command output (diff listings, page maps)
    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
