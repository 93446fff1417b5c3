from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Tuple

from .lib.safe_math import clamp, coerce_int

logger = logging.getLogger(__name__)


StepStatus = Literal["pending", "success", "failed", "skipped", "missing"]
STEP_STATUSES: Tuple[str, ...] = ("pending", "success", "failed", "skipped", "missing")

WorkFn = Callable[[], Any]

DEFAULT_STEP_ESTIMATE = 30
MIN_STEP_ESTIMATE = 1
MAX_STEP_ESTIMATE = 3600
MAX_TOTAL_STEPS = 100
MIN_TOTAL_ESTIMATE = 300
MAX_TOTAL_ESTIMATE = 36000


class RegistryError(RuntimeError):
    pass


@dataclass
class Step:
    """One registered unit of installable work and its per-run outcome."""

    name: str
    work_id: str
    estimated_seconds: int
    work: Optional[WorkFn] = None
    status: StepStatus = "pending"
    started_at: Optional[float] = None
    ended_at: Optional[float] = None
    duration_seconds: int = 0

    @property
    def runnable(self) -> bool:
        return callable(self.work)

    def reset_outcome(self) -> None:
        self.status = "pending"
        self.started_at = None
        self.ended_at = None
        self.duration_seconds = 0


@dataclass(frozen=True)
class RegistryTotals:
    total_steps: int
    total_estimated_seconds: int


@dataclass(frozen=True)
class StepDefinition:
    name: str
    work_id: str
    estimated_seconds: int


def normalize_estimate(v: Any) -> int:
    """Per-step estimate clamped to [1, 3600]; non-numeric or negative gives 1."""
    return clamp(v, MIN_STEP_ESTIMATE, MAX_STEP_ESTIMATE)


def eta(normal: Any, fast: Any, *, fast_mode: bool) -> int:
    """Pick the FAST_MODE estimate when enabled."""
    return coerce_int(fast, 10) if fast_mode else coerce_int(normal, DEFAULT_STEP_ESTIMATE)


def compute_totals(steps: Sequence[Step]) -> RegistryTotals:
    total_steps = min(len(steps), MAX_TOTAL_STEPS)
    total_est = sum(normalize_estimate(s.estimated_seconds) for s in steps)
    total_est = max(MIN_TOTAL_ESTIMATE, min(MAX_TOTAL_ESTIMATE, total_est))
    return RegistryTotals(total_steps=total_steps, total_estimated_seconds=total_est)


class StepRegistry:
    """Ordered steps; registration order is execution order.

    ``catalog`` maps work ids to zero-argument callables. Ids are resolved
    when a step is registered, so an unknown id is reported immediately; the
    step is still kept and ends up ``missing`` when executed.
    """

    def __init__(self, catalog: Optional[Mapping[str, WorkFn]] = None) -> None:
        self._catalog: Dict[str, WorkFn] = dict(catalog or {})
        self._steps: List[Step] = []
        self._initialized = False
        self._totals = compute_totals(self._steps)

    @property
    def steps(self) -> List[Step]:
        return self._steps

    @property
    def totals(self) -> RegistryTotals:
        return self._totals

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self):
        return iter(self._steps)

    def __getitem__(self, index: int) -> Step:
        return self._steps[index]

    def provide(self, work_id: str, work: WorkFn) -> None:
        """Add a callable to the catalog (before registering steps that use it)."""
        existing = self._catalog.get(work_id)
        if existing is not None and existing is not work:
            raise RegistryError(f"work id {work_id!r} is already bound to a different callable")
        self._catalog[work_id] = work

    def register(
        self,
        name: str,
        work_id: str,
        estimated_seconds: Any = DEFAULT_STEP_ESTIMATE,
        work: Optional[WorkFn] = None,
    ) -> Step:
        if len(self._steps) >= MAX_TOTAL_STEPS:
            raise RegistryError(f"cannot register {name!r}: at most {MAX_TOTAL_STEPS} steps")
        if work is not None:
            self.provide(work_id, work)
        resolved = self._catalog.get(work_id)

        if resolved is None or not callable(resolved):
            logger.error("Step %r: unit of work %r is not defined", name, work_id)
            resolved = None

        step = Step(
            name=str(name),
            work_id=str(work_id),
            estimated_seconds=normalize_estimate(estimated_seconds),
            work=resolved,
        )
        self._steps.append(step)
        self.recompute_totals()
        return step

    def initialize(self, definitions: Iterable[StepDefinition]) -> RegistryTotals:
        """Register a whole step list; refuses to run twice without reset()."""
        if self._initialized:
            raise RegistryError("step registry already initialized; call reset() first")
        for d in definitions:
            self.register(d.name, d.work_id, d.estimated_seconds)
        self._initialized = True
        return self.recompute_totals()

    def reset(self) -> None:
        self._steps = []
        self._initialized = False
        self.recompute_totals()

    def recompute_totals(self) -> RegistryTotals:
        self._totals = compute_totals(self._steps)
        return self._totals
