from __future__ import annotations

import logging

from ..lib.command import have
from ..lib.pkg import apt_argv, fix_broken, install_if_needed, pkg_update
from .context import InstallStep

logger = logging.getLogger(__name__)

NETWORK_TOOLS = ("wget", "nmap")


class SystemUpdateStep(InstallStep):
    work_id = "step_systemup"
    name = "System Update"
    eta = (45, 15)

    def run(self):
        runner = self.ctx.runner
        if pkg_update(runner, label="System apt update", estimate=28) != 0:
            fix_broken(runner)
        if runner.run_with_progress("System apt upgrade", 75, apt_argv("upgrade")) != 0:
            fix_broken(runner)
        install_if_needed(runner, "termux-exec", estimate=6)
        return "success"


class NetworkToolsStep(InstallStep):
    work_id = "step_nettools"
    name = "Network Tools"
    eta = (30, 10)

    def run(self):
        ready = []
        for tool in NETWORK_TOOLS:
            self.ctx.runner.soft_step(f"Install {tool}", 18, apt_argv("install", tool))
            if have(tool):
                ready.append(tool)
        self.ctx.facts["network_tools"] = ready
        logger.info("Network tools available: %s", ", ".join(ready) or "none")
        return "success"
