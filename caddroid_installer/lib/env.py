from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

from ..install_config import InstallConfig

logger = logging.getLogger(__name__)


class EnvironmentCheckError(RuntimeError):
    pass


@dataclass(frozen=True)
class Paths:
    work_dir: Path
    home: Path
    prefix: Path

    @property
    def cred_dir(self) -> Path:
        return self.work_dir / "credentials"

    @property
    def state_dir(self) -> Path:
        return self.work_dir / "state"

    @property
    def log_dir(self) -> Path:
        return self.work_dir / "logs"

    @property
    def snap_dir(self) -> Path:
        return self.work_dir / "snapshots"

    @property
    def scripts_dir(self) -> Path:
        return self.work_dir / "scripts"

    @property
    def event_log(self) -> Path:
        return self.log_dir / "setup-events.json"

    @property
    def setup_log(self) -> Path:
        return self.log_dir / "setup.log"

    @property
    def state_json(self) -> Path:
        return self.state_dir / "completion-state.json"

    @property
    def metrics_json(self) -> Path:
        return self.work_dir / "setup-summary.json"

    @property
    def termux_dir(self) -> Path:
        return self.home / ".termux"

    def all_dirs(self) -> List[Path]:
        return [self.work_dir, self.cred_dir, self.state_dir, self.log_dir, self.snap_dir, self.scripts_dir]


def paths_for(cfg: InstallConfig) -> Paths:
    return Paths(
        work_dir=Path(cfg.work_dir).expanduser(),
        home=Path(cfg.home).expanduser(),
        prefix=Path(cfg.prefix),
    )


def ensure_dirs(paths: Paths) -> None:
    """Create the working directories, private to the user."""
    for d in paths.all_dirs():
        d.mkdir(parents=True, exist_ok=True)
        try:
            d.chmod(0o700)
        except OSError:
            logger.debug("Could not chmod %s", d)


def check_environment(
    cfg: InstallConfig,
    *,
    geteuid: Callable[[], int] = getattr(os, "geteuid", lambda: 1000),
) -> Paths:
    """Startup preconditions; any failure is fatal for the run."""

    if geteuid() == 0:
        raise EnvironmentCheckError("Do not run the installer as root")

    if not cfg.development_mode and not Path(cfg.termux_root).is_dir():
        raise EnvironmentCheckError(
            f"Termux not detected ({cfg.termux_root} missing); set DEVELOPMENT_MODE=1 to override"
        )

    paths = paths_for(cfg)
    if not paths.prefix.is_dir():
        raise EnvironmentCheckError(f"PREFIX does not exist: {paths.prefix}")
    if not paths.home.is_dir():
        raise EnvironmentCheckError(f"HOME does not exist: {paths.home}")

    try:
        ensure_dirs(paths)
    except OSError as e:
        raise EnvironmentCheckError(f"Cannot create work directory {paths.work_dir}: {e}") from e

    logger.info("Environment OK (prefix=%s home=%s work=%s)", paths.prefix, paths.home, paths.work_dir)
    return paths
