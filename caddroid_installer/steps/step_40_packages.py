from __future__ import annotations

import logging

from ..lib.pkg import install_if_needed, missing_packages, pkg_install
from .context import InstallStep

logger = logging.getLogger(__name__)


class CoreInstallStep(InstallStep):
    work_id = "step_coreinst"
    name = "Core Installation"
    eta = (90, 30)

    def run(self):
        cfg = self.ctx.config
        need = missing_packages([*cfg.core_packages, *cfg.extra_packages])
        if not need:
            logger.info("All core packages already installed")
            return "success"

        failed = [p for p in need if install_if_needed(self.ctx.runner, p) != 0]
        self.ctx.facts["packages_failed"] = failed
        if failed:
            logger.warning("Core packages not installed: %s", ", ".join(failed))
        return "success"


class PackagePrefetchStep(InstallStep):
    work_id = "step_prefetch"
    name = "Package Prefetch"
    eta = (60, 20)

    def run(self):
        need = missing_packages(self.ctx.config.core_packages)
        if not need:
            logger.info("All core packages already present; nothing to prefetch")
            return "success"
        rc = pkg_install(self.ctx.runner, need, label="Download core packages", estimate=28, download_only=True)
        if rc != 0:
            logger.info("Prefetch incomplete; packages will be fetched during installation")
        return "success"
