"""Centralized logging with rotation and per-request correlation ids."""
import logging
import os
import uuid
from logging.handlers import RotatingFileHandler

from flask import g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIdFilter(logging.Filter):
    """Stamp every record with the active request id, or '-' outside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = getattr(g, "request_id", "-") if has_request_context() else "-"
        return True


def assign_request_id() -> str:
    incoming = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    g.request_id = incoming[:64] if incoming else uuid.uuid4().hex
    return g.request_id


def init_logging(app) -> logging.Logger:
    level_name = (app.config.get("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(request_id)s | %(name)s | %(module)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    request_filter = RequestIdFilter()

    handlers: list[logging.Handler] = []
    stream_handler = logging.StreamHandler()
    handlers.append(stream_handler)

    log_path = None
    if app.config.get("LOG_TO_FILE", True):
        log_dir = app.config.get("LOG_DIR") or os.path.join(app.instance_path, "logs")
        os.makedirs(log_dir, exist_ok=True)
        log_path = os.path.join(log_dir, "app.log")
        handlers.append(RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(request_filter)

    # Replace rather than append so repeated factory calls (tests, reloads) do not duplicate output.
    app.logger.handlers = handlers
    app.logger.setLevel(level)
    app.logger.propagate = False

    app.logger.info("Logging initialized", extra={"log_path": log_path})
    return app.logger
