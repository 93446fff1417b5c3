from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def have(tool: str) -> bool:
    return shutil.which(tool) is not None


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = False,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    timeout: float | None = None,
) -> CmdResult:
    """Run a short probe command synchronously, without the progress line.

    Long-running installer work goes through ``ProgressRunner`` instead; this
    is for quick queries (``dpkg -s``, ``proot-distro list``, ``curl -I``).
    A missing executable yields returncode 127 unless ``check`` is set.
    """

    argv_list = list(argv)
    logger.debug("CMD %s", fmt_argv(argv_list))

    try:
        p = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        if check:
            raise RuntimeError(f"Command could not run: {fmt_argv(argv_list)}: {e}") from e
        rc = 124 if isinstance(e, subprocess.TimeoutExpired) else 127
        return CmdResult(argv=argv_list, returncode=rc, stdout="", stderr=str(e))

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())

    if check and p.returncode != 0:
        raise RuntimeError(f"Command failed ({p.returncode}): {fmt_argv(argv_list)}\n{p.stderr}")

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)
