"""
Logging setup and logger lookup.
"""

import logging

from .file_logger import LogSinks

APP_LOGGER = "nolsaf_backend"

# Library loggers are routed through the app sinks at these levels.
# The access middleware writes the request lines, so uvicorn's are muted.
LIBRARY_LEVELS = {
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
    "asyncmy": logging.WARNING,
    "webauthn": logging.WARNING,
}

_sinks: LogSinks | None = None


def setup_logging(config=None) -> logging.Logger:
    """Send every logger through the queued sinks.

    Reads the ``log_*`` options from ``config`` (the application settings by
    default). Calling it again while configured is a no-op.
    """
    global _sinks
    if _sinks is not None:
        return get_logger()

    if config is None:
        from ...config import settings as config

    sinks = LogSinks(
        log_level=config.log_level,
        use_json_format=config.log_format.lower() == "json",
        log_file_path=config.log_file_path if config.log_to_file else None,
        max_bytes=config.log_max_bytes,
        backup_count=config.log_backup_count,
    )
    sinks.start()

    root = logging.getLogger()
    root.handlers = [sinks.handler]
    root.setLevel(sinks.level)

    for name, level in LIBRARY_LEVELS.items():
        library_logger = logging.getLogger(name)
        library_logger.handlers.clear()
        library_logger.propagate = True
        library_logger.setLevel(level)

    logging.captureWarnings(True)
    _sinks = sinks

    logger = get_logger()
    if sinks.file_error:
        logger.warning(
            f"File logging disabled: {sinks.file_error}",
            extra={"log_file_path": config.log_file_path},
        )
    return logger


def shutdown_logging() -> None:
    """Flush queued records and detach the sinks."""
    global _sinks
    if _sinks is None:
        return
    logging.getLogger().removeHandler(_sinks.handler)
    _sinks.stop()
    _sinks = None


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a logger instance.

    Module paths already under ``nolsaf_backend`` are used as-is; other
    names are prefixed with the app name.
    """
    if not name:
        return logging.getLogger(APP_LOGGER)
    if name.startswith(APP_LOGGER):
        return logging.getLogger(name)
    return logging.getLogger(f"{APP_LOGGER}.{name}")
