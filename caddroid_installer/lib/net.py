from __future__ import annotations

import logging
import time
from typing import Callable, Sequence

from .command import have, run_cmd

logger = logging.getLogger(__name__)

PING_TARGETS = ("1.1.1.1", "8.8.8.8")


def is_online(targets: Sequence[str] = PING_TARGETS) -> bool:
    """Best-effort online check."""

    for host in targets:
        if run_cmd(["ping", "-c", "1", "-W", "2", host]).ok:
            return True
    return False


def wait_for_network(
    attempts: int = 3,
    *,
    pause: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    check: Callable[[], bool] = is_online,
) -> bool:
    for n in range(max(1, attempts)):
        if check():
            return True
        if n + 1 < attempts:
            sleep(pause)
    logger.warning("Network not reachable after %d attempts; continuing anyway", attempts)
    return False


def probe_url(url: str, *, connect_timeout: int = 5, max_time: int = 40) -> bool:
    """HEAD request through curl, following redirects."""

    if not have("curl"):
        logger.debug("curl not available; cannot probe %s", url)
        return False
    r = run_cmd(
        [
            "curl",
            "-fsSIL",
            "--connect-timeout",
            str(connect_timeout),
            "--max-time",
            str(max_time),
            url,
        ]
    )
    logger.debug("Probe %s -> %s", url, r.returncode)
    return r.ok
