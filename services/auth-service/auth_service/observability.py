"""Logging setup and Prometheus counters for the auth service."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from prometheus_client import Counter

LOGIN_ATTEMPTS = Counter(
    "auth_login_total",
    "Login attempts partitioned by outcome.",
    ["outcome"],
)
REGISTRATIONS = Counter(
    "auth_register_total",
    "Registration attempts partitioned by outcome.",
    ["outcome"],
)


# Extra attributes auth code attaches via ``logger.<level>(..., extra={...})``.
AUTH_LOG_FIELDS = ("outcome", "username", "path")


class JSONFormatter(logging.Formatter):
    """Render a record as one JSON line, carrying any auth log fields it has."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            {name: getattr(record, name) for name in AUTH_LOG_FIELDS if hasattr(record, name)}
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Install one root handler; ``fmt`` is ``json`` or anything else for plain text."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())
