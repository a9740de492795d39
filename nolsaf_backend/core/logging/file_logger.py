"""
Log sinks.

Request code only ever enqueues records; a listener thread does the console
and rotating-file writes.
"""

import copy
import logging
import os
import queue
import sys
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler

from .middleware import ContextFilter
from .structured_logger import build_formatter, describe_exception


class ContextQueueHandler(QueueHandler):
    """Enqueues records with the request context already attached.

    Exception details are captured as data here, since tracebacks cannot be
    formatted after the record crosses the thread boundary.
    """

    def __init__(self, log_queue: queue.Queue):
        super().__init__(log_queue)
        self.addFilter(ContextFilter())

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        record = copy.copy(record)
        if record.exc_info:
            record.error = describe_exception(record.exc_info)
        record.message = record.getMessage()
        record.msg = record.message
        record.args = None
        record.exc_info = None
        record.exc_text = None
        return record


class LogSinks:
    """Console output plus an optional rotating file, fed through one queue."""

    def __init__(
        self,
        log_level: str = "INFO",
        use_json_format: bool = True,
        log_file_path: str | None = None,
        max_bytes: int = 50 * 1024 * 1024,
        backup_count: int = 5,
    ):
        self.level = getattr(logging, log_level.upper(), logging.INFO)
        self.use_json_format = use_json_format
        self.log_file_path = log_file_path
        self.max_bytes = max_bytes
        self.backup_count = backup_count
        self.file_error: OSError | None = None

        self._queue: queue.Queue = queue.Queue(-1)
        self.handler = ContextQueueHandler(self._queue)
        self.handler.setLevel(self.level)
        self._listener: QueueListener | None = None

    def _console_handler(self) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(self.level)
        handler.setFormatter(build_formatter(self.use_json_format))
        return handler

    def _file_handler(self) -> logging.Handler | None:
        if not self.log_file_path:
            return None
        try:
            log_dir = os.path.dirname(self.log_file_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            handler = RotatingFileHandler(
                self.log_file_path,
                maxBytes=self.max_bytes,
                backupCount=self.backup_count,
                encoding="utf-8",
            )
        except OSError as e:
            # Console logging still works; setup_logging reports this
            self.file_error = e
            return None
        handler.setLevel(self.level)
        # Files are always JSON so they can be shipped as-is
        handler.setFormatter(build_formatter(True))
        return handler

    def start(self) -> None:
        targets = [self._console_handler()]
        file_handler = self._file_handler()
        if file_handler:
            targets.append(file_handler)
        self._listener = QueueListener(self._queue, *targets, respect_handler_level=True)
        self._listener.start()

    def stop(self) -> None:
        if self._listener:
            self._listener.stop()
            for handler in self._listener.handlers:
                handler.close()
            self._listener = None
