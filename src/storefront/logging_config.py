"""
Log output for the order service

Every record carries the service name and, while a span is active, the trace
and span ids so checkout logs line up with their traces.
"""
from opentelemetry import trace
from pythonjsonlogger import jsonlogger
from storefront.config import Settings
import logging
import sys

JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(trace_id)s %(span_id)s %(message)s"
TEXT_FORMAT = "%(asctime)s - %(service)s - %(name)s - %(levelname)s - [%(trace_id)s] %(message)s"

# Chatty at INFO and duplicated by request spans
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


class TraceContextFilter(logging.Filter):
    """Stamp records with the service name and the active trace context"""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service_name
        context = trace.get_current_span().get_span_context()
        if context.is_valid:
            record.trace_id = format(context.trace_id, "032x")
            record.span_id = format(context.span_id, "016x")
        else:
            record.trace_id = ""
            record.span_id = ""
        return True


def build_formatter(log_format: str) -> logging.Formatter:
    if log_format.lower() == "json":
        formatter = jsonlogger.JsonFormatter(
            fmt=JSON_FORMAT,
            rename_fields={"asctime": "timestamp", "name": "logger", "levelname": "level"}
        )
        formatter.default_time_format = "%Y-%m-%dT%H:%M:%S"
        formatter.default_msec_format = "%s.%03dZ"
        return formatter
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logging(settings: Settings) -> logging.Logger:
    """Replace root handlers with one stdout handler configured from settings"""
    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.log_level.upper()))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(TraceContextFilter(settings.service_name))
    handler.setFormatter(build_formatter(settings.log_format))
    root.addHandler(handler)

    if not settings.debug:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    root.info(f"Logging initialized for {settings.service_name} at level {settings.log_level}")
    return root
