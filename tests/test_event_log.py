from __future__ import annotations

import json

from caddroid_installer.event_log import EventLogger, event_record

from conftest import read_events


def test_log_event_appends_one_json_object_per_line(tmp_path):
    path = tmp_path / "logs" / "setup-events.json"
    log = EventLogger(path)
    log.log_event("step_start", 0, "start", "Storage Setup")
    log.log_event("step_end", 0, "success", "Storage Setup", 3)

    events = read_events(path)
    assert [e["action"] for e in events] == ["step_start", "step_end"]
    assert events[1]["duration"] == 3
    assert set(events[0]) == {"timestamp", "step_index", "action", "status", "detail", "duration"}
    assert events[0]["timestamp"].endswith("Z")


def test_detail_with_quotes_stays_valid_json(tmp_path):
    path = tmp_path / "events.json"
    EventLogger(path).log_event("cmd_done", 2, "fail", 'say "hi" \\ then\nexit')

    line = path.read_text(encoding="utf-8").splitlines()
    assert len(line) == 1
    assert json.loads(line[0])["detail"] == 'say "hi" \\ then\nexit'


def test_run_level_events_have_null_index(tmp_path):
    path = tmp_path / "events.json"
    EventLogger(path).log_event("run_start", None, "start")
    assert read_events(path)[0]["step_index"] is None


def test_unset_path_is_a_no_op():
    EventLogger().log_event("step_start", 0, "start")


def test_unwritable_path_is_swallowed(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    EventLogger(blocker / "events.json").log_event("step_start", 0, "start")


def test_bad_duration_becomes_zero(tmp_path):
    path = tmp_path / "events.json"
    log = EventLogger(path)
    log.log_event("cmd_done", 1, "ok", "x", "abc")
    log.log_event("cmd_done", 1, "ok", "x", -4.2)
    log.log_event("cmd_done", 1, "ok", "x", 2.9)
    assert [e["duration"] for e in read_events(path)] == [0, 0, 2]


def test_event_record_shape():
    rec = event_record(action="a", step_index=1, status="ok")
    assert rec["detail"] == ""
    assert rec["duration"] == 0
