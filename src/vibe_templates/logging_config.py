"""
Logging Configuration for the vibe-templates MCP Server.

Provides centralized logger setup. Everything goes to stderr because stdout
carries the MCP stdio transport. When VIBE_TEMPLATES_LOG_DIR is set, a copy
of every record is also written to server.log in that directory.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "vibe_templates"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def get_log_level() -> int:
    """Resolve the log level from VIBE_TEMPLATES_LOG_LEVEL (default: info)."""
    level = os.getenv("VIBE_TEMPLATES_LOG_LEVEL", "info").lower()
    return _LEVELS.get(level, logging.INFO)


def _get_log_directory() -> Optional[Path]:
    log_dir = os.getenv("VIBE_TEMPLATES_LOG_DIR")
    if not log_dir:
        return None
    return Path(log_dir)


def _create_file_handler(log_filename: str) -> Optional[logging.FileHandler]:
    """
    Create a file handler for the specified log file.

    Args:
        log_filename: Name of the log file (e.g., 'server.log')

    Returns:
        Configured FileHandler, or None if file logging is not enabled
    """
    log_dir = _get_log_directory()
    if log_dir is None:
        return None

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_dir / log_filename, mode='a', encoding='utf-8')
    except OSError as e:
        print(f"WARNING: cannot open log file in {log_dir}: {e}", file=sys.stderr)
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FORMAT))
    return handler


class FlushingStreamHandler(logging.StreamHandler):
    """StreamHandler that flushes after every emit.

    ::: This is-in-layer Infrastructure-Layer.
    ::: This is a handler.
    ::: This is stateless.
    """
    def emit(self, record):
        super().emit(record)
        self.flush()


def _create_stderr_handler() -> logging.StreamHandler:
    """Create a stderr handler for console output with auto-flush."""
    handler = FlushingStreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FORMAT))
    return handler


def get_server_logger() -> logging.Logger:
    """
    Get the package root logger.

    Output goes to stderr and, optionally, VIBE_TEMPLATES_LOG_DIR/server.log.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)

    # Only configure once
    if not logger.handlers:
        logger.setLevel(get_log_level())
        logger.propagate = False

        file_handler = _create_file_handler("server.log")
        if file_handler:
            logger.addHandler(file_handler)

        logger.addHandler(_create_stderr_handler())

    return logger


server_logger = get_server_logger()


def configure_logger(logger_name: str) -> logging.Logger:
    """
    Configure a module logger to share the server handlers.

    Module loggers live under the ``vibe_templates`` namespace, so records
    reach the shared handlers through propagation; anything outside that
    namespace gets the handlers attached directly.

    Args:
        logger_name: Name of the logger to configure (e.g., __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)
    if logger_name == ROOT_LOGGER_NAME or logger_name.startswith(ROOT_LOGGER_NAME + "."):
        return logger
    logger.setLevel(get_log_level())
    for handler in server_logger.handlers:
        if handler not in logger.handlers:
            logger.addHandler(handler)
    return logger


def set_log_level(level: str) -> None:
    """Change the server log level at runtime (e.g. from config)."""
    server_logger.setLevel(_LEVELS.get(level.lower(), logging.INFO))


def suppress_stderr_logging():
    """
    Suppress stderr logging.

    Call this while the rich console output of the CLI is active.
    File logging continues to work normally.
    """
    for handler in server_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.CRITICAL + 1)  # Effectively disable


def restore_stderr_logging():
    """Restore stderr logging after the rich console output is done."""
    for handler in server_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.DEBUG)
