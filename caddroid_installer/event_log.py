from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .lib.safe_math import coerce_int

logger = logging.getLogger(__name__)


def _utc_timestamp() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def _whole_seconds(v: Any) -> int:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return coerce_int(v, 0)
    return max(0, int(v))


def event_record(
    *,
    action: str,
    step_index: Optional[int],
    status: str,
    detail: str = "",
    duration: int = 0,
) -> Dict[str, Any]:
    return {
        "timestamp": _utc_timestamp(),
        "step_index": step_index,
        "action": action,
        "status": status,
        "detail": detail,
        "duration": duration,
    }


@dataclass(frozen=True)
class EventLogger:
    """Append-only JSON-lines log of state transitions.

    Best-effort: an unset path or an unwritable file never propagates to the
    caller. Nothing in the installer reads these lines back.
    """

    path: Optional[Path] = None

    def log_event(
        self,
        action: str,
        step_index: Optional[int],
        status: str,
        detail: str = "",
        duration_seconds: int = 0,
    ) -> None:
        if self.path is None:
            return
        event = event_record(
            action=str(action),
            step_index=step_index if isinstance(step_index, int) else None,
            status=str(status),
            detail=str(detail),
            duration=_whole_seconds(duration_seconds),
        )
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(event, ensure_ascii=False) + "\n")
        except (OSError, ValueError) as e:
            logger.debug("Event log write failed (%s): %s", self.path, e)
