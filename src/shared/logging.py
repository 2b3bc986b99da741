"""Centralized logging utilities."""

import logging
import sys
from typing import Optional
from pathlib import Path

DEFAULT_FORMAT = '[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s'


def setup_logger(
    name: str,
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Set up a logger with console and optional file output.

    Args:
        name: Logger name
        level: Logging level
        log_file: Optional file to write logs to (appended, migrations run for hours)
        format_string: Custom format string

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    # Remove handlers installed by a previous call
    for handler in [h for h in logger.handlers if getattr(h, '_managed', False)]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT, datefmt='%H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler._managed = True
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        file_handler._managed = True
        logger.addHandler(file_handler)

    return logger


def configure_root(
    level: int = logging.INFO,
    log_file: Optional[Path] = None
) -> None:
    """
    Route every package logger through one set of handlers.

    Module loggers created with get_logger() before this call are reset to
    propagate so CLI verbosity applies to them too.
    """
    root = setup_logger('', level=level, log_file=log_file)
    root.propagate = True
    for existing in list(logging.Logger.manager.loggerDict.values()):
        if not isinstance(existing, logging.Logger):
            continue
        managed = [h for h in existing.handlers if getattr(h, '_managed', False)]
        if managed:
            for handler in managed:
                existing.removeHandler(handler)
            existing.propagate = True
            existing.setLevel(logging.NOTSET)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Falls back to a stdout handler when nothing upstream is configured, so
    library use without the CLI still shows progress.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)
    if not logger.handlers and not logging.getLogger().handlers:
        return setup_logger(name)
    return logger


class LoggerAdapter:
    """Adapter to make standard logger compatible with ILogger protocol."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message."""
        self._logger.debug(message, extra=kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message."""
        self._logger.info(message, extra=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message."""
        self._logger.warning(message, extra=kwargs)

    def error(self, message: str, **kwargs) -> None:
        """Log error message."""
        self._logger.error(message, extra=kwargs)

    def exception(self, message: str, **kwargs) -> None:
        """Log exception with traceback."""
        self._logger.exception(message, extra=kwargs)
