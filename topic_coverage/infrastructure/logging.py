"""
Logging implementations for the topic coverage system.
"""
import json
import logging
import sys
from datetime import datetime
from typing import Optional, TextIO

from ..core.interfaces import Logger as LoggerInterface


class StandardLogger(LoggerInterface):
    """Standard Python logging implementation."""

    def __init__(self, name: str = "topic-coverage", level: int = logging.INFO):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        # Only add handler if none exist
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setLevel(level)
            handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            ))
            self.logger.addHandler(handler)
            self.logger.propagate = False

    def info(self, message: str) -> None:
        self.logger.info(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str) -> None:
        self.logger.error(message)

    def debug(self, message: str) -> None:
        self.logger.debug(message)


class StructuredLogger(LoggerInterface):
    """Structured logging implementation writing one JSON object per line."""

    def __init__(self, name: str = "topic-coverage", stream: Optional[TextIO] = None):
        self.name = name
        self.stream = stream

    def info(self, message: str, **kwargs) -> None:
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs) -> None:
        self._log("DEBUG", message, **kwargs)

    def _log(self, level: str, message: str, **kwargs) -> None:
        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "logger": self.name,
            "message": message,
            **kwargs
        }
        stream = self.stream or sys.stderr
        stream.write(json.dumps(log_entry, default=str) + "\n")


class NullLogger(LoggerInterface):
    """Null logger that does nothing (for testing)."""

    def info(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        pass

    def error(self, message: str) -> None:
        pass

    def debug(self, message: str) -> None:
        pass


def create_logger(kind: str = "standard", name: str = "topic-coverage") -> LoggerInterface:
    """Build a logger by kind: standard, structured or null."""
    if kind == "structured":
        return StructuredLogger(name)
    if kind == "null":
        return NullLogger()
    return StandardLogger(name)
