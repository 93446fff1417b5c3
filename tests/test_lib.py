from __future__ import annotations

import logging
import sys

import pytest

from caddroid_installer.lib import net, pkg
from caddroid_installer.lib.command import CmdResult, run_cmd
from caddroid_installer.logging_utils import configure_logging


def test_run_cmd_captures_output():
    r = run_cmd([sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr); sys.exit(2)"])
    assert r.returncode == 2
    assert r.stdout.strip() == "out"
    assert r.stderr.strip() == "err"
    assert not r.ok


def test_run_cmd_missing_binary():
    assert run_cmd(["no-such-binary-xyz"]).returncode == 127
    with pytest.raises(RuntimeError):
        run_cmd(["no-such-binary-xyz"], check=True)


def test_run_cmd_check_raises_on_failure():
    with pytest.raises(RuntimeError, match="Command failed"):
        run_cmd([sys.executable, "-c", "raise SystemExit(1)"], check=True)


class FakeRunner:
    def __init__(self):
        self.calls = []

    def run_with_progress(self, label, est, work):
        self.calls.append((label, list(work)))
        return 0

    def soft_step(self, label, est, work):
        self.run_with_progress(label, est, work)


def test_pkg_install_builds_apt_argv():
    runner = FakeRunner()
    assert pkg.pkg_install(runner, ["git", "curl"], download_only=True) == 0
    label, argv = runner.calls[0]
    assert label == "Install git curl"
    assert argv[-5:] == ["-y", "install", "--download-only", "git", "curl"]
    assert pkg.pkg_install(runner, []) == 0
    assert len(runner.calls) == 1


def test_install_if_needed_skips_installed(monkeypatch):
    monkeypatch.setattr(pkg, "is_installed", lambda name: name == "git")
    runner = FakeRunner()
    assert pkg.install_if_needed(runner, "git") == 0
    assert runner.calls == []
    pkg.install_if_needed(runner, "jq")
    assert runner.calls[0][0] == "Install jq"


def test_is_installed_parses_dpkg_status(monkeypatch):
    monkeypatch.setattr(pkg, "have", lambda tool: True)
    monkeypatch.setattr(
        pkg,
        "run_cmd",
        lambda argv: CmdResult(list(argv), 0, "Package: git\nStatus: install ok installed\n", ""),
    )
    assert pkg.is_installed("git")
    assert pkg.missing_packages(["git", ""]) == []


def test_fix_broken_is_best_effort():
    runner = FakeRunner()
    pkg.fix_broken(runner)
    assert [c[0] for c in runner.calls] == ["dpkg configure -a", "apt -f install", "apt clean"]


def test_wait_for_network_retries():
    answers = iter([False, False, True])
    sleeps = []
    assert net.wait_for_network(3, sleep=sleeps.append, check=lambda: next(answers))
    assert sleeps == [1.0, 1.0]


def test_wait_for_network_gives_up(caplog):
    with caplog.at_level(logging.WARNING):
        assert not net.wait_for_network(2, sleep=lambda s: None, check=lambda: False)
    assert "not reachable" in caplog.text


def test_probe_url_passes_timeouts(monkeypatch):
    seen = {}
    monkeypatch.setattr(net, "have", lambda tool: True)

    def fake_run(argv):
        seen["argv"] = argv
        return CmdResult(argv, 0, "", "")

    monkeypatch.setattr(net, "run_cmd", fake_run)
    assert net.probe_url("https://example.invalid", connect_timeout=7, max_time=30)
    assert seen["argv"][:6] == ["curl", "-fsSIL", "--connect-timeout", "7", "--max-time", "30"]


def test_configure_logging_once(tmp_path):
    first = configure_logging(str(tmp_path / "logs" / "setup.log"), also_console=False)
    second = configure_logging(str(tmp_path / "other.log"), also_console=False)
    assert first == second == str(tmp_path / "logs" / "setup.log")
    logging.getLogger("caddroid_installer.test").info("hello")
    for h in logging.getLogger().handlers:
        h.flush()
    assert "hello" in (tmp_path / "logs" / "setup.log").read_text()
