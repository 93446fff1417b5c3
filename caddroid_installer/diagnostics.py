from __future__ import annotations

import logging
import platform
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Literal, Optional, TextIO

from .install_config import InstallConfig
from .lib.net import is_online, probe_url

logger = logging.getLogger(__name__)

CheckStatus = Literal["ok", "warn", "info"]

TOOLS = ("pkg", "apt-get", "git", "curl", "wget", "nano", "proot-distro")
LOW_DISK_MB = 500

APK_SOURCES = (
    ("F-Droid", "https://f-droid.org/"),
    ("GitHub", "https://github.com/"),
)


@dataclass(frozen=True)
class Check:
    section: str
    label: str
    status: CheckStatus
    detail: str = ""


@dataclass
class DiagnosticReport:
    checks: List[Check] = field(default_factory=list)

    def add(self, section: str, label: str, status: CheckStatus, detail: str = "") -> None:
        self.checks.append(Check(section, label, status, detail))

    @property
    def warnings(self) -> List[Check]:
        return [c for c in self.checks if c.status == "warn"]

    def render(self, stream: TextIO) -> None:
        section = None
        for c in self.checks:
            if c.section != section:
                section = c.section
                stream.write(f"\n{section}:\n")
            mark = {"ok": "[OK]", "warn": "[WARN]", "info": "[INFO]"}[c.status]
            stream.write(f"  {mark} {c.label}{': ' + c.detail if c.detail else ''}\n")
        stream.flush()


def free_mb(path: Path) -> Optional[int]:
    try:
        return shutil.disk_usage(path).free // (1024 * 1024)
    except OSError:
        return None


def run_diagnostics(
    cfg: InstallConfig,
    *,
    which: Callable[[str], Optional[str]] = shutil.which,
    online: Callable[[], bool] = is_online,
) -> DiagnosticReport:
    """System, tool, disk and connectivity checks for ``--doctor``."""

    report = DiagnosticReport()
    report.add("System", "Platform", "info", platform.platform())
    report.add("System", "Python", "info", platform.python_version())
    report.add("System", "Architecture", "info", platform.machine() or "unknown")

    for tool in TOOLS:
        found = which(tool)
        report.add("Tools", tool, "ok" if found else "warn", found or "not found")

    mb = free_mb(Path(cfg.home))
    if mb is None:
        report.add("Storage", "Free space", "warn", f"cannot stat {cfg.home}")
    elif mb < LOW_DISK_MB:
        report.add("Storage", "Free space", "warn", f"{mb} MB (below {LOW_DISK_MB} MB)")
    else:
        report.add("Storage", "Free space", "ok", f"{mb} MB")

    if online():
        report.add("Network", "Internet connectivity", "ok")
    else:
        report.add("Network", "Internet connectivity", "warn", "no ping reply")

    logger.info("Diagnostics finished with %d warnings", len(report.warnings))
    return report


def probe_apk_sources(
    cfg: InstallConfig,
    *,
    probe: Callable[..., bool] = probe_url,
) -> DiagnosticReport:
    """HEAD probes against the APK download sources for ``--apk-diagnose``."""

    report = DiagnosticReport()
    report.add(
        "Settings",
        "curl timeouts",
        "info",
        f"connect={cfg.curl_connect}s max={cfg.curl_max_time}s",
    )
    for name, url in APK_SOURCES:
        ok = probe(url, connect_timeout=cfg.curl_connect, max_time=cfg.curl_max_time)
        report.add("APK sources", name, "ok" if ok else "warn", url)
    return report
