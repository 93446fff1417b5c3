from __future__ import annotations

import logging

import pytest

from caddroid_installer.registry import (
    RegistryError,
    RegistryTotals,
    Step,
    StepDefinition,
    StepRegistry,
    compute_totals,
    eta,
    normalize_estimate,
)


def noop():
    return None


def test_registration_order_is_execution_order():
    reg = StepRegistry({"a": noop, "b": noop, "c": noop})
    for name, wid in [("Alpha", "a"), ("Beta", "b"), ("Gamma", "c")]:
        reg.register(name, wid, 10)
    assert [s.name for s in reg] == ["Alpha", "Beta", "Gamma"]
    assert all(s.status == "pending" for s in reg)


@pytest.mark.parametrize("raw, expected", [(0, 1), (5000, 3600), ("abc", 1), ("45", 45), (None, 1), (-5, 1)])
def test_estimate_normalized(raw, expected):
    assert normalize_estimate(raw) == expected


def test_totals_are_floored_and_capped():
    assert compute_totals([]) == RegistryTotals(0, 300)
    small = [Step("s", "w", 2), Step("t", "w", 3)]
    assert compute_totals(small).total_estimated_seconds == 300
    big = [Step(f"s{i}", "w", 3600) for i in range(20)]
    assert compute_totals(big).total_estimated_seconds == 36000


def test_registration_stops_at_100_steps():
    reg = StepRegistry({"w": noop})
    for i in range(100):
        reg.register(f"s{i}", "w", 1)
    assert reg.totals.total_steps == 100
    with pytest.raises(RegistryError, match="at most 100"):
        reg.register("s100", "w", 1)
    assert len(reg) == 100
    assert reg.totals.total_steps == 100


def test_totals_recomputed_on_every_change():
    reg = StepRegistry({"w": noop})
    reg.register("one", "w", 200)
    reg.register("two", "w", 250)
    assert reg.totals == RegistryTotals(2, 450)
    assert reg.recompute_totals() == reg.recompute_totals()


def test_unknown_work_id_is_kept_without_callable(caplog):
    reg = StepRegistry({})
    with caplog.at_level(logging.ERROR):
        step = reg.register("Ghost", "step_ghost")
    assert step.work is None
    assert not step.runnable
    assert step.estimated_seconds == 30
    assert "step_ghost" in caplog.text


def test_conflicting_binding_raises():
    reg = StepRegistry({"w": noop})
    with pytest.raises(RegistryError):
        reg.register("Other", "w", 10, work=lambda: 1)
    # Re-binding the same callable is fine.
    reg.provide("w", noop)


def test_initialize_twice_requires_reset():
    defs = [StepDefinition("A", "w", 10), StepDefinition("B", "w", 20)]
    reg = StepRegistry({"w": noop})
    reg.initialize(defs)
    with pytest.raises(RegistryError):
        reg.initialize(defs)
    reg.reset()
    assert len(reg) == 0
    reg.initialize(defs)
    assert len(reg) == 2


def test_eta_picks_fast_estimate():
    assert eta(90, 30, fast_mode=False) == 90
    assert eta(90, 30, fast_mode=True) == 30


def test_step_reset_outcome():
    s = Step("x", "w", 10, status="failed", started_at=1.0, ended_at=2.0, duration_seconds=1)
    s.reset_outcome()
    assert (s.status, s.started_at, s.ended_at, s.duration_seconds) == ("pending", None, None, 0)
