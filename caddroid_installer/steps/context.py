from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from ..install_config import InstallConfig
from ..lib.env import Paths
from ..progress import ProgressRunner

logger = logging.getLogger(__name__)


def _no_status(status: str) -> None:
    logger.debug("No engine attached; dropping self-reported status %r", status)


@dataclass
class InstallContext:
    """Everything a unit of work needs, handed over once at construction.

    ``facts`` carries what one step learns for later ones and for the
    completion report (chosen mirror, distro, whether Termux:API answered).
    ``mark_step_status`` is bound to the engine after it is created.
    """

    config: InstallConfig
    paths: Paths
    runner: ProgressRunner
    mark_step_status: Callable[[str], None] = _no_status
    input_fn: Callable[[str], str] = input
    sleep: Callable[[float], None] = time.sleep
    facts: Dict[str, Any] = field(default_factory=dict)

    def ask(self, question: str, default: str) -> str:
        if self.config.non_interactive:
            return default
        try:
            answer = self.input_fn(f"{question} [{default}]: ").strip()
        except EOFError:
            return default
        return answer or default

    def ask_yes_no(self, question: str, default: bool = True) -> bool:
        answer = self.ask(f"{question} (y/n)", "y" if default else "n").lower()
        return answer in {"y", "yes"}

    def pause(self, message: str, seconds: Optional[int] = None) -> None:
        """Wait for Enter, or sleep for ``seconds`` when non-interactive."""
        if self.config.non_interactive:
            if seconds:
                logger.info("%s (continuing in %ss)", message, seconds)
                self.sleep(seconds)
            return
        try:
            self.input_fn(f"{message} - press Enter to continue...")
        except EOFError:
            pass


class InstallStep:
    """A registered unit of work: ``run()`` takes no arguments.

    Returns the tri-state result understood by the engine (None/True/0 for
    success, False/nonzero for failure, "skipped").
    """

    work_id: str = ""
    name: str = ""
    eta: Tuple[int, int] = (30, 10)

    def __init__(self, ctx: InstallContext) -> None:
        self.ctx = ctx

    def run(self) -> Any:
        raise NotImplementedError
