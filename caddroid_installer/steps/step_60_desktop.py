from __future__ import annotations

import logging
from pathlib import Path

from ..install_config import SUPPORTED_DISTROS
from ..lib.pkg import apt_argv, install_if_needed, is_installed
from .context import InstallStep

logger = logging.getLogger(__name__)

XFCE_PARTS = ["xfce4-session", "xfce4-panel", "xfce4-terminal", "xfce4-settings", "thunar"]

CONTAINER_SETUP = """\
set -e
export DEBIAN_FRONTEND=noninteractive
if command -v apt-get >/dev/null 2>&1; then
  apt-get update && apt-get -y install sudo git curl nano
elif command -v pacman >/dev/null 2>&1; then
  pacman -Sy --noconfirm sudo git curl nano
elif command -v apk >/dev/null 2>&1; then
  apk add sudo git curl nano
fi
"""


def rootfs_dir(prefix: Path, distro: str) -> Path:
    return prefix / "var" / "lib" / "proot-distro" / "installed-rootfs" / distro


class XfceDesktopStep(InstallStep):
    work_id = "step_xfce"
    name = "XFCE Desktop"
    eta = (75, 25)

    def run(self):
        if is_installed("xfce4"):
            logger.info("XFCE already installed")
            return "success"
        runner = self.ctx.runner
        if runner.run_with_progress("Install xfce4 meta", 55, apt_argv("install", "xfce4")) == 0:
            return "success"
        return runner.run_with_progress("Install xfce4 parts", 50, apt_argv("install", *XFCE_PARTS))


class ContainerSetupStep(InstallStep):
    work_id = "step_container"
    name = "Container Setup"
    eta = (120, 40)

    def choose_distro(self) -> str:
        default = self.ctx.config.distro
        options = ", ".join(f"{i}={d}" for i, d in enumerate(SUPPORTED_DISTROS, start=1))
        answer = self.ctx.ask(f"Linux distro ({options})", str(SUPPORTED_DISTROS.index(default) + 1))
        if answer.isdigit() and 1 <= int(answer) <= len(SUPPORTED_DISTROS):
            return SUPPORTED_DISTROS[int(answer) - 1]
        return answer.lower() if answer.lower() in SUPPORTED_DISTROS else default

    def run(self):
        ctx = self.ctx
        if install_if_needed(ctx.runner, "proot-distro", estimate=20) != 0:
            return False

        distro = self.choose_distro()
        ctx.facts["distro"] = distro
        logger.info("Selected distro: %s", distro)

        rootfs = rootfs_dir(ctx.paths.prefix, distro)
        if not rootfs.is_dir():
            ctx.runner.run_with_progress(f"Install {distro} container", 45, ["proot-distro", "install", distro])
        if not rootfs.is_dir():
            logger.warning("Failed to install %s", distro)
            return False

        rc = ctx.runner.run_with_progress(
            f"Configure {distro} container",
            60,
            ["proot-distro", "login", distro, "--", "sh", "-c", CONTAINER_SETUP],
        )
        if rc != 0:
            logger.warning("Container configuration failed")
            return False
        return "success"
