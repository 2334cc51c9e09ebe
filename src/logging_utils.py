"""Shared logging utilities.

SafeStreamHandler tolerates broken pipes and closed file descriptors, which
happen when the API runs as a background task and uvicorn reloads while a
generation call is still in flight. SessionLogAdapter prefixes records with
the authoring session they belong to.
"""
import logging


class SafeStreamHandler(logging.StreamHandler):
    """StreamHandler that ignores broken pipe and closed file errors.

    When running as a background task, stdout can be closed (e.g., uvicorn reload).
    Standard StreamHandler raises BrokenPipeError or ValueError in this case.
    This handler drops those records while file handlers keep logging.
    """

    def emit(self, record):
        try:
            super().emit(record)
        except BrokenPipeError:
            pass  # stdout closed
        except ValueError:
            pass  # I/O operation on closed file


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


class SessionLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the session it belongs to.

    Usage:
        log = SessionLogAdapter(logger, {"session": "3f2a"})
        log.info("Angles ready (%d)", 5)  # "[session 3f2a] Angles ready (5)"
    """

    def process(self, msg, kwargs):
        session = self.extra.get("session") if self.extra else None
        return f"[session {session or '-'}] {msg}", kwargs
