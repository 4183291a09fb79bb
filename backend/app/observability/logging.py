"""
Structured event logging.

Every event is a single JSON object on the ``companion`` logger so log lines
stay greppable by event name.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

_LOGGER_NAME = "companion"
_logger = logging.getLogger(_LOGGER_NAME)


def setup_logging(level: str = "INFO", debug: bool = False):
    resolved = logging.DEBUG if debug else getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=resolved,
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
    )
    _logger.setLevel(resolved)


def log_event(event: str, level: int = logging.INFO, **fields: Any):
    payload = {"event": event, "ts": datetime.now(timezone.utc).isoformat()}
    payload.update(fields)
    _logger.log(level, json.dumps(payload, ensure_ascii=True, default=str))
