from __future__ import annotations

import functools
import logging
import shlex
import shutil
import subprocess
import sys
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, TextIO, Tuple, Union

from .event_log import EventLogger
from .lib.safe_math import is_nonneg_int

logger = logging.getLogger(__name__)

Work = Union[str, Sequence[str], Callable[[], Any]]

SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")

DEFAULT_ESTIMATE = 20
MIN_ESTIMATE = 5
MAX_ESTIMATE = 3600
DEFAULT_POLL_DELAY = 0.02
FAILURE_TAIL_LINES = 12
RUNNING_PCT_CAP = 99
TERMINATE_GRACE = 5.0


def validate_estimate(estimated_seconds: Any) -> int:
    """Estimate used by the ramp: non-numeric or < 5 gives 20, > 3600 gives 3600."""

    if not is_nonneg_int(estimated_seconds):
        return DEFAULT_ESTIMATE
    est = int(str(estimated_seconds))
    if est < MIN_ESTIMATE:
        return DEFAULT_ESTIMATE
    if est > MAX_ESTIMATE:
        return MAX_ESTIMATE
    return est


def progress_percent(elapsed: float, estimated_seconds: int) -> int:
    """Percentage shown while a command is still running.

    Linear to 90% over the estimate, then creeps toward (but never reaches)
    100% over a tail of max(5, est // 3) seconds.
    """

    est = estimated_seconds if estimated_seconds > 0 else 1
    elapsed = elapsed if elapsed > 0 else 0
    if elapsed <= est:
        pct = int(elapsed * 90 // est)
    else:
        over = elapsed - est
        tail = max(5, est // 3)
        add = min(10, int(over * 10 // tail))
        pct = 90 + add
    return max(0, min(RUNNING_PCT_CAP, pct))


def exit_code_from(result: Any) -> int:
    """Map a unit-of-work return value onto a process-style exit code."""

    if result is None or result is True:
        return 0
    if result is False:
        return 1
    if isinstance(result, int):
        return result
    if isinstance(result, str):
        return 0 if result.lower() in {"success", "ok", "skipped"} else 1
    return 0


@dataclass(frozen=True)
class WorkOutcome:
    returncode: int
    output: str


def _spawn(argv: Sequence[str]) -> Union[subprocess.Popen, WorkOutcome]:
    argv_list = list(argv)
    if not argv_list:
        return WorkOutcome(returncode=127, output="empty command")
    try:
        return subprocess.Popen(
            argv_list,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
    except OSError as e:
        # Same convention as a shell: command not found / not executable.
        return WorkOutcome(returncode=127, output=f"{argv_list[0] if argv_list else '?'}: {e}")


def _collect(proc: subprocess.Popen) -> WorkOutcome:
    out, _ = proc.communicate()
    return WorkOutcome(returncode=proc.returncode, output=out or "")


def stop_child(proc: subprocess.Popen, grace: float = TERMINATE_GRACE) -> None:
    """SIGTERM, then SIGKILL once ``grace`` seconds have passed."""
    if proc.poll() is not None:
        return
    logger.warning("Stopping child process %s", proc.pid)
    proc.terminate()
    try:
        proc.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()


def _run_callable(fn: Callable[[], Any]) -> WorkOutcome:
    try:
        result = fn()
    except Exception as e:
        logger.debug("Background work raised", exc_info=True)
        return WorkOutcome(returncode=1, output=f"{type(e).__name__}: {e}")
    return WorkOutcome(returncode=exit_code_from(result), output="")


def _prepare(work: Work) -> Tuple[Optional[subprocess.Popen], Callable[[], WorkOutcome]]:
    """Start command work in the foreground; the returned task only waits on it."""
    if callable(work):
        return None, functools.partial(_run_callable, work)
    argv = shlex.split(work) if isinstance(work, str) else list(work)
    spawned = _spawn(argv)
    if isinstance(spawned, WorkOutcome):
        return None, lambda: spawned
    return spawned, functools.partial(_collect, spawned)


def tail_lines(text: str, n: int = FAILURE_TAIL_LINES) -> list[str]:
    lines = text.splitlines()
    return lines[-n:] if n > 0 else []


class ProgressRunner:
    """Runs one unit of work in the background while animating a status line.

    Only this (foreground) object writes to the terminal and the event log;
    the background operation reports back solely through its captured output
    and exit code.
    """

    def __init__(
        self,
        *,
        events: Optional[EventLogger] = None,
        stream: Optional[TextIO] = None,
        delay: float = DEFAULT_POLL_DELAY,
        step_index: Callable[[], Optional[int]] = lambda: None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.events = events or EventLogger()
        self.stream = stream if stream is not None else sys.stdout
        self.delay = delay if delay > 0 else DEFAULT_POLL_DELAY
        self.step_index = step_index
        self.clock = clock

    def _columns(self) -> int:
        cols = shutil.get_terminal_size((80, 24)).columns
        return cols - 14 if cols > 14 else 40

    def _write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def _render(self, frame: int, label: str, pct: int) -> None:
        width = self._columns()
        sym = SPINNER_FRAMES[frame % len(SPINNER_FRAMES)]
        self._write(f"\r\033[2K{sym} {label:<{width}.{width}} ({pct:3d}%)")

    def run_with_progress(self, label: str, estimated_seconds: Any, work: Work) -> int:
        est = validate_estimate(estimated_seconds)
        idx = self.step_index()

        self.events.log_event("cmd_start", idx, "start", label)
        logger.debug("Starting %r (estimate %ss)", label, est)

        start = self.clock()
        proc, task = _prepare(work)
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="caddroid-work")
        try:
            future = pool.submit(task)
            frame = 0
            while True:
                elapsed = max(0.0, self.clock() - start)
                self._render(frame, label, progress_percent(elapsed, est))
                frame = (frame + 1) % len(SPINNER_FRAMES)
                done, _ = wait([future], timeout=self.delay)
                if done:
                    break
        except BaseException:
            # Interrupted while waiting: the child goes down with the run.
            if proc is not None:
                stop_child(proc)
            pool.shutdown(wait=False)
            self._write("\r\033[2K")
            self.events.log_event("cmd_done", idx, "abort", label, max(0, int(self.clock() - start)))
            raise
        pool.shutdown(wait=True)
        outcome = future.result()

        duration = max(0, int(self.clock() - start))
        rc = outcome.returncode

        self._write("\r\033[2K")
        if rc == 0:
            self._write(f"[OK] {label}\n")
            logger.info("OK %s (%ss)", label, duration)
            self.events.log_event("cmd_done", idx, "ok", label, duration)
        else:
            self._write(f"[FAIL] {label} (exit {rc})\n")
            for ln in tail_lines(outcome.output):
                self._write(f"  > {ln}\n")
            logger.warning("FAILED %s (exit %s, %ss)", label, rc, duration)
            self.events.log_event("cmd_done", idx, "fail", f"{label} (exit {rc})", duration)
        return rc

    def soft_step(self, label: str, estimated_seconds: Any, work: Work) -> None:
        """Like run_with_progress, for work whose failure must not matter."""
        rc = self.run_with_progress(label, estimated_seconds, work)
        if rc != 0:
            logger.info("Ignoring failure of optional command: %s", label)
