"""
Logging setup for the analytics backend.

- LOG_LEVEL from env (default INFO).
- LOG_JSON=1 switches to one JSON object per line for log shippers.
- Fields passed via ``extra={...}`` (e.g. symbol, cache_key) are copied into
  the JSON payload.
- Holdings are user data: log symbols and counts, never lot details.
"""
import json
import logging
import os
import sys
from typing import Any

# Attributes every LogRecord carries; anything else came in through `extra`.
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _json_default(obj: Any):
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    return str(obj)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S") + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED and key not in payload and value is not None:
                payload[key] = value
        if record.exc_info and record.exc_info[0]:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default)


def _use_json() -> bool:
    return os.getenv("LOG_JSON", "").lower() in ("1", "true", "yes")


def configure_logging() -> None:
    """Configure the root logger once at process start."""
    level_name = (os.getenv("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if _use_json():
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    root.addHandler(handler)

    # Upstream client chatter
    for noisy in ("uvicorn.access", "httpx", "httpcore", "urllib3", "yahooquery"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
