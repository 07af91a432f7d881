"""Logging setup for the API process.

Every module logs through ``logging.getLogger(__name__)``; ``setup_logging``
installs one stdout handler whose filter stamps the current request id.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar("request_id_var", default="-")

LOG_FORMAT = "%(asctime)s [%(levelname)s] [req %(request_id)s] %(name)s:%(lineno)d - %(message)s"


class RequestContextFilter(logging.Filter):
    """Injects ``request_id`` onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        return True


def new_request_id(incoming: str | None = None) -> str:
    # trust a short caller-supplied id, otherwise mint one
    if incoming and len(incoming) <= 64:
        return incoming
    return uuid.uuid4().hex[:12]


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for h in list(root.handlers):
        if getattr(h, "_salonhub", False):
            root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestContextFilter())
    handler._salonhub = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # passlib complains loudly about newer bcrypt builds
    logging.getLogger("passlib").setLevel(logging.ERROR)
