import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Optional

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> str:
    """Current request_id, bound lazily outside of a chat request."""
    rid = request_id_ctx.get()
    if rid is None:
        rid = new_request_id()
    return rid


def new_request_id() -> str:
    """Bind a fresh request_id for a new inbound message."""
    rid = str(uuid.uuid4())
    request_id_ctx.set(rid)
    return rid


class RequestIDFilter(logging.Filter):
    def filter(self, record):
        record.request_id = get_request_id()
        return True


def configure_logging(level: str = "INFO"):
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-8s | [%(request_id)s] | %(name)s - %(message)s"
    ))
    handler.addFilter(RequestIDFilter())
    root.addHandler(handler)

    for noisy in ("httpx", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


configure_logging()
logger = logging.getLogger("freshsheet")
