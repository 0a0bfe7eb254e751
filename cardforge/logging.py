"""Utilities for structured logging of generation outcomes."""

from __future__ import annotations

import datetime as _dt
import json
import os
from typing import Any, Dict, Optional

from cardforge.settings import DEFAULT_EVENT_LOG


def log_jsonl(path: str, record: Dict[str, Any]) -> None:
    """Append *record* as a JSON line to *path*.

    The target directory is created on demand and the record is written as
    UTF-8 JSON with a trailing newline so the file can be consumed as a JSONL
    stream.
    """

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, "a", encoding="utf-8") as handle:
        handle.write(json.dumps(record, sort_keys=True, default=str))
        handle.write("\n")


def log_generation_event(record: Dict[str, Any], *, path: Optional[str] = None) -> None:
    """Append *record* to the generation event stream."""

    payload = dict(record)
    payload.setdefault("timestamp", _dt.datetime.now(tz=_dt.timezone.utc).isoformat())
    log_jsonl(path or DEFAULT_EVENT_LOG, payload)


__all__ = ["log_generation_event", "log_jsonl"]
