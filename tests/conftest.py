from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List

import pytest

from caddroid_installer.install_config import InstallConfig, load_install_config
from caddroid_installer.lib.env import Paths, paths_for


class FakeClock:
    """Manually advanced clock; every read may also advance it."""

    def __init__(self, start: float = 1000.0, step: float = 0.0) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> float:
        t = self.now
        self.now += self.step
        return t

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_root_logging():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        if h not in before:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
    for attr in ("_caddroid_configured", "_caddroid_log_path"):
        if hasattr(root, attr):
            delattr(root, attr)


@pytest.fixture
def dev_environ(tmp_path: Path) -> Dict[str, str]:
    home = tmp_path / "home"
    prefix = tmp_path / "usr"
    home.mkdir()
    prefix.mkdir()
    return {
        "HOME": str(home),
        "PREFIX": str(prefix),
        "CAD_WORK_DIR": str(home / ".cad"),
        "DEVELOPMENT_MODE": "1",
        "NON_INTERACTIVE": "1",
    }


@pytest.fixture
def cfg(dev_environ: Dict[str, str]) -> InstallConfig:
    return load_install_config(None, dev_environ)


@pytest.fixture
def paths(cfg: InstallConfig) -> Paths:
    return paths_for(cfg)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def read_events(path: Path) -> List[dict]:
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]
