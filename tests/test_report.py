from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from caddroid_installer.registry import Step
from caddroid_installer.report import (
    CompletionSummary,
    completion_snapshot,
    format_duration,
    metrics_document,
    render_summary,
    save_completion_snapshot,
    summarize,
    write_metrics,
)
from caddroid_installer.state_store import load_document


def steps_with(*statuses):
    return [Step(f"S{i}", f"w{i}", 10, status=s, duration_seconds=i + 1) for i, s in enumerate(statuses)]


def test_summarize_counts_every_non_success_as_failed():
    s = summarize(steps_with("success", "failed", "skipped", "missing", "success"))
    assert s.successful == 2
    assert s.failed == 3
    assert s.total == 5
    assert s.by_status["skipped"] == 1
    assert s.by_status["pending"] == 0
    assert s.total_duration_seconds == 15


def test_summarize_never_goes_negative():
    s = summarize(steps_with("success", "success", "success"), total_steps=2)
    assert s.failed == 0


@pytest.mark.parametrize("secs, text", [(42, "42s"), (185, "3m 5s"), (3725, "1h 2m"), ("bad", "0s")])
def test_format_duration(secs, text):
    assert format_duration(secs) == text


def test_render_summary_mentions_issues_only_when_present():
    clean = render_summary(summarize(steps_with("success", "success")))
    assert clean[0] == "Setup complete: 2/2 steps successful"
    assert not any("issues" in ln for ln in clean)

    mixed = render_summary(summarize(steps_with("success", "failed", "skipped")))
    assert "Outcomes: 1 failed, 1 skipped" in mixed
    assert mixed[-1].startswith("2 steps had issues")


def test_completion_snapshot_fields():
    summary = CompletionSummary(successful=14, failed=1, total=15)
    doc = completion_snapshot(
        version="2.0.0",
        distro="debian",
        summary=summary,
        termux_api_verified=True,
        now=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
    )
    assert doc == {
        "version": "2.0.0",
        "completion_time": "2026-01-02T03:04:05+00:00",
        "distro": "debian",
        "termux_api_verified": "yes",
        "total_steps": 15,
        "successful_steps": 14,
    }


def test_save_completion_snapshot_overwrites(tmp_path):
    path = tmp_path / "state" / "completion-state.json"
    summary = CompletionSummary(successful=1, failed=0, total=1)
    assert save_completion_snapshot(path, completion_snapshot(version="1", distro="ubuntu", summary=summary))
    assert save_completion_snapshot(path, completion_snapshot(version="2", distro="arch", summary=summary))
    doc = load_document(path)
    assert doc["version"] == "2"
    assert doc["distro"] == "arch"
    assert not (path.parent / "completion-state.json.tmp").exists()


def test_save_completion_snapshot_as_yaml(tmp_path):
    path = tmp_path / "completion-state.yaml"
    summary = CompletionSummary(successful=3, failed=0, total=3)
    assert save_completion_snapshot(path, completion_snapshot(version="2", distro="alpine", summary=summary))
    assert load_document(path)["successful_steps"] == 3


def test_save_failure_is_not_fatal(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    assert save_completion_snapshot(blocker / "state.json", {"version": "x"}) is False


def test_metrics_file(tmp_path):
    path = tmp_path / "setup-summary.json"
    assert write_metrics(path, steps_with("success", "failed"), {"version": "2.0.0"})
    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["version"] == "2.0.0"
    assert doc["steps"] == [
        {"index": 1, "name": "S0", "duration_sec": 1, "status": "success"},
        {"index": 2, "name": "S1", "duration_sec": 2, "status": "failed"},
    ]


def test_metrics_document_does_not_mutate_extra():
    extra = {"fast_mode": True}
    metrics_document(steps_with("success"), extra)
    assert extra == {"fast_mode": True}
