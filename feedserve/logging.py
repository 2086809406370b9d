"""Logging setup shared by the web app and the validation worker."""

import json
import logging
import sys
from datetime import datetime, timezone

from feedserve.config import get_settings

DEV_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shipping in production."""

    def __init__(self, service: str = "feedserve"):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "service": self.service,
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(service: str = "feedserve") -> None:
    """
    Install a stdout handler on the root logger.

    ``prod`` gets :class:`JsonFormatter`; ``dev`` gets a readable line format.

    Args:
        service: Name stamped on JSON records (``feedserve`` or the worker)
    """
    settings = get_settings()
    handler = logging.StreamHandler(sys.stdout)
    if settings.env == "prod":
        handler.setFormatter(JsonFormatter(service))
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(settings.log_level.upper())

    # httpx logs every request at INFO; validator sweeps make that noisy
    logging.getLogger("httpx").setLevel(logging.WARNING)
