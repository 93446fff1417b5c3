from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, TextIO

from .event_log import EventLogger
from .lib.safe_math import add_int, is_nonneg_int, safe_progress_div
from .registry import RegistryTotals, Step, StepRegistry
from .report import format_duration

logger = logging.getLogger(__name__)

SELF_REPORTABLE = ("success", "failed", "skipped")
OUTCOME_LABELS = {"success": "Completed", "failed": "Failed", "skipped": "Skipped", "missing": "Missing"}


def classify_result(result: Any) -> str:
    """Tri-state outcome of a unit of work: success, failed or skipped."""

    if result is None or result is True:
        return "success"
    if result is False:
        return "failed"
    if isinstance(result, int):
        return "success" if result == 0 else "failed"
    if isinstance(result, str):
        r = result.strip().lower()
        if r in {"success", "ok"}:
            return "success"
        if r == "skipped":
            return "skipped"
        return "failed"
    return "success"


@dataclass(frozen=True)
class EngineResult:
    steps: List[Step]
    totals: RegistryTotals
    progress_accum: int
    ran_steps: List[str]


class StepEngine:
    """Walks the registry in order: start -> execute -> end for each step.

    A failing, raising or missing unit of work only changes that step's
    status; the run always reaches ``done``.
    """

    def __init__(
        self,
        registry: StepRegistry,
        *,
        events: Optional[EventLogger] = None,
        clock: Callable[[], float] = time.time,
        stream: Optional[TextIO] = None,
    ) -> None:
        self.registry = registry
        self.events = events or EventLogger()
        self.stream = stream if stream is not None else sys.stdout
        self.clock = clock
        self.current_index = -1
        self.progress_accum = 0
        self.finished = False
        self._active: Optional[int] = None
        self._self_reported: Optional[str] = None

    @property
    def phase(self) -> str:
        if self.finished:
            return "done"
        if self.current_index < 0:
            return "not_started"
        return "running"

    @property
    def active_index(self) -> Optional[int]:
        return self._active

    def progress_pct(self) -> int:
        return safe_progress_div(self.progress_accum, self.registry.totals.total_estimated_seconds)

    def _write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def _step(self, index: int) -> Step:
        if not isinstance(index, int) or index < 0 or index >= len(self.registry):
            raise IndexError(f"invalid step index: {index}")
        return self.registry[index]

    def mark_step_status(self, status: str) -> None:
        """Let the running unit of work report its own terminal status."""
        if self._active is None:
            logger.warning("mark_step_status(%r) called outside a running step", status)
            return
        if status not in SELF_REPORTABLE:
            logger.warning("Ignoring unsupported self-reported status %r", status)
            return
        self._self_reported = status

    def start(self, index: int) -> None:
        step = self._step(index)
        self.current_index = index
        self._active = index
        self._self_reported = None
        step.started_at = self.clock()

        total = self.registry.totals.total_steps
        header = f"Phase {index + 1} / {total}  ({self.progress_pct()}%)  {step.name}"
        self._write(f"\n==> {header}\n")
        logger.info("%s", header)
        self.events.log_event("step_start", index, "start", step.name)

    def execute(self, index: int) -> str:
        step = self._step(index)

        if not step.runnable:
            logger.error(
                "Step %d (%s): unit of work %r is not available; this is an installer defect",
                index + 1,
                step.name,
                step.work_id,
            )
            step.status = "missing"
            return step.status

        try:
            outcome = classify_result(step.work())
        except Exception:
            logger.exception("Step %d (%s) raised", index + 1, step.name)
            outcome = "failed"

        if outcome == "failed":
            logger.warning("Step %d failed: %s", index + 1, step.name)
            step.status = "failed"
        elif outcome == "skipped":
            step.status = "skipped"
        else:
            step.status = self._self_reported or "success"
        return step.status

    def end(self, index: int) -> None:
        step = self._step(index)
        step.ended_at = self.clock()
        started = step.started_at if step.started_at is not None else step.ended_at
        step.duration_seconds = max(0, int(step.ended_at - started))
        accum = add_int(self.progress_accum, step.estimated_seconds)
        if accum.ok:
            self.progress_accum = accum.value

        label = OUTCOME_LABELS.get(step.status, step.status.capitalize())
        self._write(f"{label}: {step.name} ({format_duration(step.duration_seconds)})\n")

        self._active = None
        self._self_reported = None
        self.events.log_event("step_end", index, step.status, step.name, step.duration_seconds)

    def run_step(self, index: int) -> Step:
        self.start(index)
        self.execute(index)
        self.end(index)
        return self._step(index)

    def reset(self) -> None:
        for step in self.registry:
            step.reset_outcome()
        self.current_index = -1
        self.progress_accum = 0
        self.finished = False
        self._active = None
        self._self_reported = None

    def run_all(self) -> EngineResult:
        self.reset()
        totals = self.registry.recompute_totals()
        logger.info("Starting installation with %d steps", totals.total_steps)
        self.events.log_event("run_start", None, "start", f"{totals.total_steps} steps")

        ran: List[str] = []
        for index in range(len(self.registry)):
            step = self.run_step(index)
            ran.append(step.name)

        self.finished = True
        self.events.log_event("run_done", None, "done", f"{len(ran)} steps")
        return EngineResult(
            steps=list(self.registry.steps),
            totals=totals,
            progress_accum=self.progress_accum,
            ran_steps=ran,
        )

    def resolve(self, identifier: str) -> Optional[int]:
        """Find a step by 1-based number or by name.

        An exact (case-insensitive) name wins; otherwise the first step whose
        name contains the identifier, in registration order.
        """

        ident = str(identifier).strip()
        if not ident:
            return None
        if is_nonneg_int(ident):
            n = int(ident)
            if 1 <= n <= len(self.registry):
                return n - 1
            return None

        needle = ident.lower()
        for i, step in enumerate(self.registry):
            if step.name.lower() == needle:
                return i

        matches = [i for i, step in enumerate(self.registry) if needle in step.name.lower()]
        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(
                "Step identifier %r matches %d steps; using %r",
                ident,
                len(matches),
                self.registry[matches[0]].name,
            )
        return matches[0]

    def run_single(self, identifier: str) -> Optional[Step]:
        index = self.resolve(identifier)
        if index is None:
            logger.error("Step not found: %s", identifier)
            return None
        step = self._step(index)
        logger.info("Running single step %d: %s", index + 1, step.name)
        return self.run_step(index)
