from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..lib.command import have, run_cmd
from ..lib.pkg import install_if_needed
from .context import InstallStep

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")
GITHUB_API = "https://api.github.com/repos/{repo}/releases/latest"


@dataclass(frozen=True)
class AddonApk:
    label: str
    package: str
    repo: str
    asset_pattern: str


ADDONS = (
    AddonApk("Termux:API", "com.termux.api", "termux/termux-api", r".*api.*\.apk$"),
    AddonApk("Termux:X11", "com.termux.x11", "termux/termux-x11", r".*x11.*\.apk$"),
    AddonApk("Termux:GUI", "com.termux.gui", "termux/termux-gui", r".*gui.*\.apk$"),
)


def pick_asset(release: dict, pattern: str) -> Optional[str]:
    """Download URL of the first release asset whose name matches ``pattern``."""
    rx = re.compile(pattern, re.IGNORECASE)
    for asset in release.get("assets") or []:
        name = str(asset.get("name") or "")
        if rx.match(name) and asset.get("browser_download_url"):
            return str(asset["browser_download_url"])
    return None


def valid_username(name: str) -> bool:
    return bool(USERNAME_RE.match(name))


class ApkInstallStep(InstallStep):
    work_id = "step_apk"
    name = "APK Installation"
    eta = (30, 10)

    def _curl(self, *args: str) -> List[str]:
        cfg = self.ctx.config
        return [
            "curl",
            "-fsSL",
            "--connect-timeout",
            str(cfg.curl_connect),
            "--max-time",
            str(cfg.curl_max_time),
            *args,
        ]

    def fetch(self, addon: AddonApk, dest_dir: Path) -> bool:
        r = run_cmd(self._curl(GITHUB_API.format(repo=addon.repo)))
        if not r.ok:
            logger.warning("%s: release lookup failed (%s)", addon.label, r.returncode)
            return False
        try:
            url = pick_asset(json.loads(r.stdout), addon.asset_pattern)
        except ValueError:
            logger.warning("%s: release metadata is not JSON", addon.label)
            return False
        if not url:
            logger.warning("%s: no matching APK in latest release", addon.label)
            return False

        dest = dest_dir / url.rsplit("/", 1)[-1]
        rc = self.ctx.runner.run_with_progress(f"Download {addon.label}", 20, self._curl("-o", str(dest), url))
        if rc != 0:
            return False
        size = dest.stat().st_size if dest.exists() else 0
        if size < self.ctx.config.min_apk_size:
            logger.warning("%s: downloaded file too small (%d bytes)", addon.label, size)
            dest.unlink(missing_ok=True)
            return False
        return True

    def run(self):
        ctx = self.ctx
        if not ctx.config.enable_apk_auto:
            logger.info("APK installation disabled; skipping")
            ctx.mark_step_status("skipped")
            return "skipped"
        if not have("curl"):
            logger.warning("curl not available; cannot download add-on APKs")
            return False

        dest_dir = Path(ctx.config.apk_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)

        missing = [a.label for a in ADDONS if not self.fetch(a, dest_dir)]
        ctx.facts["apk_missing"] = missing
        if missing:
            logger.warning("APKs needing manual installation: %s", ", ".join(missing))

        if have("termux-open"):
            ctx.runner.soft_step("Open APK directory", 5, ["termux-open", str(dest_dir)])
        ctx.pause(f"Install the APKs from {dest_dir}", ctx.config.apk_pause_timeout)

        verified = have("termux-battery-status") and run_cmd(["termux-battery-status"], timeout=10).ok
        ctx.facts["termux_api_verified"] = verified
        if not verified:
            logger.warning("Termux:API did not respond; setup may be incomplete")
        return "success"


class UserConfigStep(InstallStep):
    work_id = "step_usercfg"
    name = "User Configuration"
    eta = (10, 3)

    def phone_type(self) -> str:
        r = run_cmd(["getprop", "ro.product.manufacturer"])
        kind = r.stdout.strip().lower() if r.ok else ""
        return re.sub(r"[^a-z0-9._-]", "", kind) or "android"

    def run(self):
        ctx = self.ctx
        name = ctx.ask("Enter Termux username", "user")
        if not valid_username(name):
            logger.warning("Invalid username %r; using 'user'", name)
            name = "user"
        username = f"{name}@{self.phone_type()}"
        ctx.facts["username"] = username
        logger.info("User: %s", username)

        if not have("git"):
            logger.info("git not installed yet; skipping git identity")
            return "success"

        git_user = ctx.ask("Git username", name)
        git_email = ctx.ask("Git email", f"{name}@example.com")
        ok = True
        for key, value in (("user.name", git_user), ("user.email", git_email)):
            ok = run_cmd(["git", "config", "--global", key, value]).ok and ok
        return "success" if ok else False


class AdbSetupStep(InstallStep):
    work_id = "step_adb"
    name = "ADB Wireless Setup"
    eta = (20, 5)

    def run(self):
        ctx = self.ctx
        cfg = ctx.config
        if cfg.skip_adb or not cfg.enable_adb:
            logger.info("ADB wireless setup %s", "skipped by request" if cfg.skip_adb else "disabled")
            ctx.mark_step_status("skipped")
            return "skipped"
        if not cfg.non_interactive and not ctx.ask_yes_no("Set up ADB wireless debugging?", True):
            ctx.mark_step_status("skipped")
            return "skipped"

        if install_if_needed(ctx.runner, "android-tools", estimate=20) != 0:
            return False

        if have("am"):
            ctx.runner.soft_step(
                "Open developer settings",
                5,
                ["am", "start", "-a", "android.settings.APPLICATION_DEVELOPMENT_SETTINGS"],
            )

        pair_addr = ctx.ask("Pairing address (host:port, empty to skip)", "")
        if not pair_addr:
            logger.info("ADB pairing left for later (Developer Options > Wireless debugging)")
            return "success"
        code = ctx.ask("Pairing code", "")
        if ctx.runner.run_with_progress("adb pair", 15, ["adb", "pair", pair_addr, code]) != 0:
            return False
        connect_addr = ctx.ask("Connect address (host:port)", pair_addr.rsplit(":", 1)[0])
        return ctx.runner.run_with_progress("adb connect", 10, ["adb", "connect", connect_addr])
