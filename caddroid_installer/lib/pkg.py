from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

from ..progress import ProgressRunner
from .command import have, run_cmd

logger = logging.getLogger(__name__)

NONINTERACTIVE = ["env", "DEBIAN_FRONTEND=noninteractive"]


def apt_argv(*args: str) -> List[str]:
    return [*NONINTERACTIVE, "apt-get", "-y", *args]


def is_installed(package: str) -> bool:
    if not have("dpkg"):
        return False
    r = run_cmd(["dpkg", "-s", package])
    return r.ok and "Status: install ok installed" in r.stdout


def missing_packages(packages: Iterable[str]) -> List[str]:
    return [p for p in packages if p and not is_installed(p)]


def pkg_update(runner: ProgressRunner, *, label: str = "Update package lists", estimate: int = 18) -> int:
    if have("pkg"):
        return runner.run_with_progress(label, estimate, ["pkg", "update", "-y"])
    return runner.run_with_progress(label, estimate, apt_argv("update"))


def pkg_install(
    runner: ProgressRunner,
    packages: Sequence[str],
    *,
    label: str | None = None,
    estimate: int = 30,
    download_only: bool = False,
) -> int:
    if not packages:
        return 0
    args = ["install"]
    if download_only:
        args.append("--download-only")
    label = label or f"Install {' '.join(packages)}"
    return runner.run_with_progress(label, estimate, apt_argv(*args, *packages))


def install_if_needed(runner: ProgressRunner, package: str, *, estimate: int = 20) -> int:
    if is_installed(package):
        logger.info("%s already installed", package)
        return 0
    return pkg_install(runner, [package], estimate=estimate)


def fix_broken(runner: ProgressRunner) -> None:
    """Best-effort dpkg/apt repair after a failed update or upgrade."""
    runner.soft_step("dpkg configure -a", 14, [*NONINTERACTIVE, "dpkg", "--configure", "-a"])
    runner.soft_step("apt -f install", 14, apt_argv("-f", "install"))
    runner.soft_step("apt clean", 5, ["apt-get", "clean"])
