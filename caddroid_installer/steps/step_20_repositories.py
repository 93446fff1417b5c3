from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from ..lib.command import have
from ..lib.net import wait_for_network
from ..lib.pkg import apt_argv, fix_broken, install_if_needed
from .context import InstallStep

logger = logging.getLogger(__name__)

MIRRORS: List[Tuple[str, str]] = [
    ("Default", "https://packages.termux.dev/apt/termux-main"),
    ("Cloudflare (US Anycast)", "https://packages-cf.termux.dev/apt/termux-main"),
    ("FAU (DE)", "https://fau.mirror.termux.dev/apt/termux-main"),
    ("BFSU (CN)", "https://mirror.bfsu.edu.cn/termux/apt/termux-main"),
    ("Tsinghua (CN)", "https://mirrors.tuna.tsinghua.edu.cn/termux/apt/termux-main"),
    ("Grimler (SE)", "https://grimler.se/termux/termux-main"),
    ("Mentality (UK)", "https://termux.mentality.rip/termux/apt/termux-main"),
]

BASELINE_UTILS = [
    "coreutils",
    "termux-exec",
    "findutils",
    "procps",
    "grep",
    "sed",
    "gawk",
    "busybox",
    "curl",
    "jq",
]

APT_NONINTERACTIVE_CONF = """\
APT::Get::Assume-Yes "true";
APT::Color "0";
Acquire::Retries "4";
Dpkg::Progress-Fancy "0";
Dpkg::Options { "--force-confdef"; "--force-confold"; }
"""


def current_mirror(sources_list: Path) -> Optional[str]:
    if not sources_list.exists():
        return None
    for line in sources_list.read_text(encoding="utf-8", errors="replace").splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "deb":
            return parts[1]
    return None


def sanitize_sources(sources_dir: Path) -> List[Path]:
    """Drop extra source lists so only main (and x11) remain."""
    removed: List[Path] = []
    if not sources_dir.is_dir():
        return removed
    for f in sorted(sources_dir.glob("*.list")):
        if "x11" not in f.name.lower():
            f.unlink()
            removed.append(f)
    return removed


def choose_mirror(answer: str) -> Tuple[str, str]:
    a = answer.strip()
    if a.isdigit() and int(a) < len(MIRRORS):
        return MIRRORS[int(a)]
    return MIRRORS[0]


class MirrorSelectionStep(InstallStep):
    work_id = "step_mirror"
    name = "Mirror Selection"
    eta = (20, 5)

    def run(self):
        ctx = self.ctx
        apt_dir = ctx.paths.prefix / "etc" / "apt"
        sources_list = apt_dir / "sources.list"

        if ctx.config.mirror_url:
            name, url = "(configured)", ctx.config.mirror_url
        else:
            if not ctx.config.non_interactive:
                for i, (label, _) in enumerate(MIRRORS):
                    print(f"[{i}] {label}")
            name, url = choose_mirror(ctx.ask(f"Mirror (0-{len(MIRRORS) - 1})", "0"))

        def write_sources() -> None:
            apt_dir.mkdir(parents=True, exist_ok=True)
            sources_list.write_text(f"deb {url} stable main\n", encoding="utf-8")

        if ctx.runner.run_with_progress("Write mirror config", 5, write_sources) != 0:
            return False

        for f in sanitize_sources(apt_dir / "sources.list.d"):
            logger.info("Removed source list %s", f)

        ctx.facts["mirror_name"] = name
        ctx.facts["mirror_url"] = current_mirror(sources_list) or url
        logger.info("Mirror: %s (%s)", name, ctx.facts["mirror_url"])

        if ctx.runner.run_with_progress("Test mirror connection", 18, apt_argv("update")) != 0:
            logger.warning("Mirror connection failed, continuing")
            fix_broken(ctx.runner)
        return "success"


class BootstrapStep(InstallStep):
    work_id = "step_bootstrap"
    name = "System Bootstrap"
    eta = (35, 10)

    def run(self):
        ctx = self.ctx
        wait_for_network(sleep=ctx.sleep)
        ctx.runner.soft_step("Baseline apt update", 18, apt_argv("update"))
        ctx.runner.soft_step("Install baseline utils", 28, apt_argv("install", *BASELINE_UTILS))
        if not have("jq"):
            install_if_needed(ctx.runner, "jq", estimate=12)
        return "success"


class X11RepoStep(InstallStep):
    work_id = "step_x11repo"
    name = "X11 Repository"
    eta = (25, 8)

    attempts = 3

    def run(self):
        ctx = self.ctx
        plan = [
            ("Update apt lists", apt_argv("update")),
            ("Install x11-repo", apt_argv("install", "x11-repo")),
            ("Refresh lists", apt_argv("update")),
        ]
        failed = 0
        for label, argv in plan:
            for attempt in range(1, self.attempts + 1):
                if ctx.runner.run_with_progress(label, 24, argv) == 0:
                    break
                if attempt < self.attempts:
                    ctx.sleep(1)
            else:
                failed += 1
                logger.warning("%s failed after %d attempts", label, self.attempts)
        return "success" if failed == 0 else False


class AptConfigStep(InstallStep):
    work_id = "step_aptni"
    name = "APT Configuration"
    eta = (15, 5)

    def run(self):
        conf_dir = self.ctx.paths.prefix / "etc" / "apt" / "apt.conf.d"

        def write_conf() -> None:
            conf_dir.mkdir(parents=True, exist_ok=True)
            (conf_dir / "99cad-noninteractive").write_text(APT_NONINTERACTIVE_CONF, encoding="utf-8")

        return self.ctx.runner.run_with_progress("Apply apt NI config", 4, write_conf)
