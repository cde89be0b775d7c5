"""Structured JSON logging with per-request context and credential masking"""

import logging
import re
import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional

from pythonjsonlogger.json import JsonFormatter

from networth_gateway.utils.time_utils import utc_now

# Set by RequestIDMiddleware for the lifetime of one HTTP request
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

LOG_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"


class RequestContextFilter(logging.Filter):
    """Stamp every record with the current request ID unless the caller passed one"""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            request_id = request_id_ctx.get()
            if request_id is not None:
                record.request_id = request_id
        return True


class SourceKeyMaskingFilter(logging.Filter):
    """
    Mask data-source credentials in log messages.

    FRED and Census take their keys as query parameters, so httpx request
    logs would otherwise print them verbatim.
    """

    KEY_PATTERN = re.compile(r"(?i)\b(api_key|key|registrationkey)=([^&\s\"']+)")

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = self.KEY_PATTERN.sub(r"\1=***", message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class GatewayJsonFormatter(JsonFormatter):
    """One JSON object per line, tagged with timestamp, level and service name"""

    def __init__(self, *args: Any, service_name: str = "networth-gateway", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = utc_now().isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "networth-gateway") -> None:
    """Route the root logger through a single JSON stdout handler"""
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(GatewayJsonFormatter(LOG_FORMAT, service_name=service_name))
    handler.addFilter(RequestContextFilter())
    handler.addFilter(SourceKeyMaskingFilter())
    root.addHandler(handler)


def log_estimate(
    request_id: str,
    subject_id: str,
    layer: str,
    cached: bool,
    confidence: float,
    duration_ms: float,
) -> None:
    """One summary line per served estimate"""
    logging.info(
        "Estimate completed",
        extra={
            "request_id": request_id,
            "subject_id": subject_id,
            "step": "estimate_complete",
            "layer": layer,
            "cached": cached,
            "confidence": confidence,
            "duration_ms": duration_ms,
        },
    )
