from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

from ..lib.command import have
from .context import InstallStep

logger = logging.getLogger(__name__)

BASHRC_BEGIN = "# >>> cad-droid >>>"
BASHRC_END = "# <<< cad-droid <<<"

NANORC = """\
set autoindent
set linenumbers
set tabsize 4
set tabstospaces
set mouse
include "{prefix}/share/nano/*.nanorc"
"""

HEALTH_TOOLS = ("git", "curl", "nano", "proot-distro", "termux-x11", "pulseaudio")


def launch_scripts(prefix: Path, distro: str) -> Dict[str, str]:
    return {
        "start-xfce.sh": (
            f"#!{prefix}/bin/bash\n"
            "pulseaudio --start --exit-idle-time=-1 2>/dev/null || true\n"
            "termux-x11 :1 >/dev/null 2>&1 &\n"
            "sleep 2\n"
            "DISPLAY=:1 dbus-launch --exit-with-session xfce4-session\n"
        ),
        f"start-{distro}.sh": (
            f"#!{prefix}/bin/bash\n"
            f"exec proot-distro login {distro} --shared-tmp\n"
        ),
    }


def replace_block(text: str, body: str) -> str:
    """Insert or replace the managed block in a dotfile, keeping the rest."""
    block = f"{BASHRC_BEGIN}\n{body.rstrip()}\n{BASHRC_END}\n"
    start = text.find(BASHRC_BEGIN)
    end = text.find(BASHRC_END)
    if start != -1 and end > start:
        return text[:start] + block + text[end + len(BASHRC_END) :].lstrip("\n")
    sep = "" if not text or text.endswith("\n") else "\n"
    return text + sep + block


class FinalConfigStep(InstallStep):
    work_id = "step_final"
    name = "Final Configuration"
    eta = (25, 8)

    def write_scripts(self) -> List[Path]:
        paths = self.ctx.paths
        distro = self.ctx.facts.get("distro") or self.ctx.config.distro
        paths.scripts_dir.mkdir(parents=True, exist_ok=True)
        written = []
        for name, body in launch_scripts(paths.prefix, distro).items():
            p = paths.scripts_dir / name
            p.write_text(body, encoding="utf-8")
            p.chmod(0o755)
            written.append(p)
        return written

    def configure_shell(self) -> None:
        paths = self.ctx.paths
        bashrc = paths.home / ".bashrc"
        body = "\n".join(
            [
                f'export PATH="{paths.scripts_dir}:$PATH"',
                "alias ll='ls -la'",
                "alias desktop='start-xfce.sh'",
            ]
        )
        current = bashrc.read_text(encoding="utf-8") if bashrc.exists() else ""
        bashrc.write_text(replace_block(current, body), encoding="utf-8")

        nanorc = paths.home / ".nanorc"
        if not nanorc.exists():
            nanorc.write_text(NANORC.format(prefix=paths.prefix), encoding="utf-8")

    def health(self) -> Dict[str, bool]:
        report = {tool: have(tool) for tool in HEALTH_TOOLS}
        missing = [t for t, ok in report.items() if not ok]
        if missing:
            logger.warning("Not available after setup: %s", ", ".join(missing))
        return report

    def run(self):
        def finalize() -> None:
            for p in self.write_scripts():
                logger.info("Wrote %s", p)
            self.configure_shell()

        if self.ctx.runner.run_with_progress("Write launch scripts and shell config", 5, finalize) != 0:
            return False
        self.ctx.facts["health"] = self.health()
        return "success"
