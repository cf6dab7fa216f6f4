"""
Logging configuration for caddyshack.

Everything logs below the ``caddyshack`` logger. The engine modules only emit
DEBUG records; the validator and admin client report process exit codes and
HTTP statuses at INFO/WARNING.
"""

import logging
import logging.handlers
import sys
from dataclasses import dataclass
from pathlib import Path

ROOT_LOGGER = "caddyshack"


class Colors:
    """ANSI color codes."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    BRIGHT_RED = "\033[91m"


LEVEL_COLORS = {
    logging.DEBUG: Colors.DIM + Colors.CYAN,
    logging.INFO: Colors.GREEN,
    logging.WARNING: Colors.YELLOW,
    logging.ERROR: Colors.RED,
    logging.CRITICAL: Colors.BOLD + Colors.BRIGHT_RED,
}

COMPONENT_COLORS = {
    "parser": Colors.MAGENTA,
    "classifier": Colors.MAGENTA,
    "validator": Colors.CYAN,
    "admin": Colors.BLUE,
    "exporter": Colors.GREEN,
}


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level and component name."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        original_levelname = record.levelname
        original_name = record.name

        if self.use_colors:
            level_color = LEVEL_COLORS.get(record.levelno, "")
            record.levelname = f"{level_color}{record.levelname:8}{Colors.RESET}"
            for key, color in COMPONENT_COLORS.items():
                if key in record.name.lower():
                    record.name = f"{color}{record.name}{Colors.RESET}"
                    break

        result = super().format(record)

        record.levelname = original_levelname
        record.name = original_name
        return result


class PlainFormatter(logging.Formatter):
    """Plain formatter without colors for file output."""

    def format(self, record: logging.LogRecord) -> str:
        original_levelname = record.levelname
        record.levelname = f"{record.levelname:8}"
        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname


@dataclass
class LogSettings:
    """Logging configuration."""

    console_level: str = "WARNING"
    console_colors: bool = True

    file_path: str | None = None
    file_level: str = "DEBUG"
    file_max_bytes: int = 5 * 1024 * 1024
    file_backup_count: int = 3

    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    # module name (without the caddyshack prefix) -> level
    module_levels: dict[str, str] | None = None


def get_log_level(level_str: str) -> int:
    """Convert string log level to logging constant."""
    levels = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "warn": logging.WARNING,
        "error": logging.ERROR,
        "critical": logging.CRITICAL,
    }
    return levels.get(level_str.lower(), logging.WARNING)


def setup_logging(settings: LogSettings | None = None) -> None:
    """
    Configure the ``caddyshack`` logger hierarchy.

    Args:
        settings: Logging configuration (uses defaults if None)
    """
    if settings is None:
        settings = LogSettings()

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    # stdout carries JSON output from the CLI, so log records go to stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(get_log_level(settings.console_level))
    use_colors = settings.console_colors and hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
    console_handler.setFormatter(
        ColoredFormatter(fmt=settings.format, datefmt=settings.date_format, use_colors=use_colors)
    )
    root_logger.addHandler(console_handler)

    if settings.file_path:
        log_path = Path(settings.file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=settings.file_max_bytes,
            backupCount=settings.file_backup_count,
        )
        file_handler.setLevel(get_log_level(settings.file_level))
        file_handler.setFormatter(PlainFormatter(fmt=settings.format, datefmt=settings.date_format))
        root_logger.addHandler(file_handler)

    if settings.module_levels:
        for module_name, level_str in settings.module_levels.items():
            get_logger(module_name).setLevel(get_log_level(level_str))

    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


def setup_logging_from_args(
    verbose: bool = False,
    debug: bool = False,
    log_file: str | None = None,
    default_level: str = "WARNING",
) -> None:
    """
    Setup logging from command-line flags.

    Args:
        verbose: Enable INFO level logging
        debug: Enable DEBUG level logging
        log_file: Optional log file path
        default_level: Console level when neither flag is given
    """
    settings = LogSettings(console_level=default_level, file_path=log_file)
    if debug:
        settings.console_level = "DEBUG"
    elif verbose:
        settings.console_level = "INFO"
    setup_logging(settings)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a component.

    Args:
        name: Component name (prefixed with ``caddyshack`` unless it already is)

    Returns:
        Logger instance
    """
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
