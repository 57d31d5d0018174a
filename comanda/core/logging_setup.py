from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone

from comanda.core.request_context import get_request_id, get_sender, get_tenant_id

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# campos que los módulos pasan por extra={...}
_EXTRA_FIELDS = ("provider", "step", "edge_case", "status_code", "duration_ms")

_SECRET_RE = re.compile(
    r"((?:authorization\s*[:=]\s*)?bearer\s+|(?:access_)?token\s*[:=]\s*|secret\s*[:=]\s*|api_key\s*[:=]\s*|cbu\s*[:=]\s*)"
    r"([^\s\",}]+)",
    re.IGNORECASE,
)
_PHONE_RE = re.compile(r"(?<!\d)\+?(\d{6,11})(\d{4})(?!\d)")


def mask_phone(phone: str | None) -> str | None:
    if not phone:
        return phone
    text = str(phone)
    return "****" if len(text) <= 4 else f"***{text[-4:]}"


def redact(text: str) -> str:
    """Oculta credenciales y deja solo los últimos 4 dígitos de cada teléfono."""
    text = _SECRET_RE.sub(r"\1***", text)
    return _PHONE_RE.sub(lambda match: f"***{match.group(2)}", text)


class EventContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        if getattr(record, "tenant_id", None) is None:
            record.tenant_id = get_tenant_id()
        if getattr(record, "sender", None) is None:
            record.sender = get_sender()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "request_id": getattr(record, "request_id", None),
            "tenant_id": getattr(record, "tenant_id", None),
            "sender": mask_phone(getattr(record, "sender", None)),
            "module": record.name,
            "message": redact(record.getMessage()),
        }
        entry.update(
            {key: getattr(record, key) for key in _EXTRA_FIELDS if getattr(record, key, None) is not None}
        )
        if record.exc_info:
            entry["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(entry, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None) -> None:
    level = (level or LOG_LEVEL).upper()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(EventContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(level)
    # httpx loguea cada request con la URL completa
    for logger_name in ("httpx", "httpcore"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)
