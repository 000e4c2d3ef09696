"""Shared logging utilities.

SafeStreamHandler tolerates broken pipes and closed file descriptors (e.g.
when uvicorn reloads while a request is still logging). bind_logger attaches
request/story context to every message from a multi-step operation.
"""
import logging
from typing import Any


class SafeStreamHandler(logging.StreamHandler):
    """StreamHandler that ignores broken pipe and closed file errors.

    File handlers attached next to it keep receiving every record.
    """

    def emit(self, record):
        try:
            super().emit(record)
        except BrokenPipeError:
            pass  # stdout closed, ignore silently
        except ValueError:
            pass  # I/O operation on closed file


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Prefixes bound key=value context to each message."""

    def process(self, msg, kwargs):
        context = " ".join(f"{key}={value}" for key, value in self.extra.items())
        return f"[{context}] {msg}", kwargs

    def bind(self, **context: Any) -> "ContextLoggerAdapter":
        return ContextLoggerAdapter(self.logger, {**self.extra, **context})


def bind_logger(logger: logging.Logger, **context: Any) -> ContextLoggerAdapter:
    """Return a logger that tags every message with `context`.

    Example:
        log = bind_logger(logger, story_id=story_id, include_comments=True)
        log.debug("starting to remove story")
    """
    return ContextLoggerAdapter(logger, context)


def configure_safe_logging(level=logging.INFO):
    """Configure root logger with SafeStreamHandler.

    Safe to call multiple times (guards against duplicate handlers).

    Args:
        level: Logging level to set (default: INFO)
    """
    logger = logging.getLogger()
    if not any(isinstance(h, SafeStreamHandler) for h in logger.handlers):
        handler = SafeStreamHandler()  # Defaults to sys.stderr
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handler.setLevel(level)
        logger.addHandler(handler)
        if logger.level == logging.NOTSET or logger.level > level:
            logger.setLevel(level)
