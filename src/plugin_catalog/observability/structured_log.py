import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict


def log_json(logger: logging.Logger, event: str, level: int = logging.INFO, **fields: Any) -> None:
    payload: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "event": event,
    }
    payload.update(fields)
    logger.log(level, json.dumps(payload, ensure_ascii=True, sort_keys=True, default=str))
