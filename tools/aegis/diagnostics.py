"""Side-channel diagnostic events keyed by request id.

Security-sensitive flows answer callers with a single opaque error. The
concrete cause goes here instead, as JSONL lines next to the request id that
produced it.
"""

from __future__ import annotations

import contextvars
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

DEFAULT_EVENT_LOG = ".aegis/events.jsonl"

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")

_event_log_path: Path = Path(DEFAULT_EVENT_LOG)


def configure(event_log: Optional[str]) -> None:
    global _event_log_path
    _event_log_path = Path(event_log or DEFAULT_EVENT_LOG)


def event_log_path() -> Path:
    return _event_log_path


def current_request_id() -> str:
    return request_id_var.get()


def log_event(event_type: str, **details: Any) -> None:
    try:
        file_path = event_log_path()
        file_path.parent.mkdir(parents=True, exist_ok=True)
        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            "request_id": current_request_id(),
            **details,
        }
        with file_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event, ensure_ascii=True, default=str) + "\n")
    except OSError:
        pass
