from __future__ import annotations

import logging
from datetime import datetime

from ..lib.command import have
from ..lib.env import ensure_dirs
from .context import InstallStep

logger = logging.getLogger(__name__)

TERMUX_PROPERTIES = """\
# Termux properties generated by CAD-Droid setup ({stamp})
allow-external-apps = true

extra-keys = [[ \\
  {{key: ESC, popup: {{macro: "CTRL f d", display: "tmux exit"}}}}, \\
  {{key: "/", popup: "?"}}, \\
  {{key: "-", popup: "_"}}, \\
  {{key: HOME, popup: {{macro: "CTRL a", display: "line start"}}}}, \\
  {{key: UP, popup: {{macro: "CTRL p", display: "prev cmd"}}}}, \\
  {{key: END, popup: {{macro: "CTRL e", display: "line end"}}}}, \\
  {{key: PGUP, popup: {{macro: "CTRL u", display: "del line"}}}} \\
], [ \\
  {{key: TAB, popup: {{macro: "CTRL i", display: "tab"}}}}, \\
  {{key: CTRL, popup: {{macro: "CTRL SHIFT c CTRL SHIFT v", display: "copy/paste"}}}}, \\
  {{key: ALT, popup: {{macro: "ALT b ALT f", display: "word nav"}}}}, \\
  {{key: LEFT, popup: {{macro: "CTRL b", display: "char left"}}}}, \\
  {{key: DOWN, popup: {{macro: "CTRL n", display: "next cmd"}}}}, \\
  {{key: RIGHT, popup: {{macro: "CTRL f", display: "char right"}}}}, \\
  {{key: PGDN, popup: {{macro: "CTRL k", display: "del to end"}}}} \\
]]

use-black-ui = true
hide-soft-keyboard-on-startup = false
bell-character = ignore
enforce-char-based-input = true
terminal-transcript-rows = 10000
bracketed-paste-mode = true
"""


class StorageSetupStep(InstallStep):
    work_id = "step_storage"
    name = "Storage Setup"
    eta = (15, 5)

    def run(self):
        ctx = self.ctx
        ensure_dirs(ctx.paths)

        if not (ctx.paths.home / "storage" / "shared").exists() and have("termux-setup-storage"):
            ctx.runner.soft_step("Request storage permission", 10, ["termux-setup-storage"])

        prop = ctx.paths.termux_dir / "termux.properties"
        prop.parent.mkdir(parents=True, exist_ok=True)
        prop.write_text(
            TERMUX_PROPERTIES.format(stamp=datetime.now().isoformat(timespec="seconds")),
            encoding="utf-8",
        )
        logger.info("Wrote %s", prop)

        if have("termux-reload-settings"):
            ctx.runner.soft_step("Reload termux settings", 5, ["termux-reload-settings"])
        return "success"
