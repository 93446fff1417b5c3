from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .lib.safe_math import coerce_int, sub_int
from .registry import STEP_STATUSES, Step
from .state_store import save_document

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionSummary:
    successful: int
    failed: int
    total: int
    by_status: Dict[str, int] = field(default_factory=dict)
    total_duration_seconds: int = 0


def summarize(steps: Sequence[Step], total_steps: Optional[int] = None) -> CompletionSummary:
    """Count outcomes. ``failed`` is everything that did not succeed."""

    total = len(steps) if total_steps is None else coerce_int(total_steps, 0)
    by_status = {s: 0 for s in STEP_STATUSES}
    duration = 0
    for step in steps:
        by_status[step.status] = by_status.get(step.status, 0) + 1
        duration += max(0, coerce_int(step.duration_seconds, 0))

    successful = by_status["success"]
    failed = sub_int(total, successful).value if total >= successful else 0
    return CompletionSummary(
        successful=successful,
        failed=failed,
        total=total,
        by_status=by_status,
        total_duration_seconds=duration,
    )


def format_duration(seconds: Any) -> str:
    s = coerce_int(seconds, 0)
    if s < 60:
        return f"{s}s"
    if s < 3600:
        return f"{s // 60}m {s % 60}s"
    return f"{s // 3600}h {(s % 3600) // 60}m"


def render_summary(summary: CompletionSummary) -> List[str]:
    lines = [
        f"Setup complete: {summary.successful}/{summary.total} steps successful",
        f"Elapsed: {format_duration(summary.total_duration_seconds)}",
    ]
    details = [
        f"{summary.by_status.get(s, 0)} {s}"
        for s in ("failed", "skipped", "missing")
        if summary.by_status.get(s, 0)
    ]
    if details:
        lines.append("Outcomes: " + ", ".join(details))
    if summary.failed > 0:
        lines.append(f"{summary.failed} steps had issues - check logs for details")
    return lines


def completion_snapshot(
    *,
    version: str,
    distro: str,
    summary: CompletionSummary,
    termux_api_verified: bool = False,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    ts = (now or datetime.now().astimezone()).isoformat(timespec="seconds")
    return {
        "version": version,
        "completion_time": ts,
        "distro": distro,
        "termux_api_verified": "yes" if termux_api_verified else "no",
        "total_steps": summary.total,
        "successful_steps": summary.successful,
    }


def save_completion_snapshot(path: str | Path, snapshot: Dict[str, Any]) -> bool:
    """Overwrite the "where did the last run land" document. Never raises."""

    try:
        save_document(path, snapshot)
    except (OSError, RuntimeError, ValueError) as e:
        logger.warning("Could not write completion state %s: %s", path, e)
        return False
    logger.info("Completion state written: %s", path)
    return True


def metrics_document(steps: Sequence[Step], extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    doc: Dict[str, Any] = dict(extra or {})
    doc["steps"] = [
        {
            "index": i + 1,
            "name": s.name,
            "duration_sec": s.duration_seconds,
            "status": s.status,
        }
        for i, s in enumerate(steps)
    ]
    return doc


def write_metrics(path: str | Path, steps: Sequence[Step], extra: Optional[Dict[str, Any]] = None) -> bool:
    try:
        save_document(path, metrics_document(steps, extra))
    except (OSError, RuntimeError, ValueError) as e:
        logger.warning("Failed to write metrics file %s: %s", path, e)
        return False
    logger.info("Metrics written: %s", path)
    return True
