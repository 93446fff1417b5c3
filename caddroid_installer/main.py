from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from typing import Mapping, Optional, TextIO

from . import __version__
from .diagnostics import probe_apk_sources, run_diagnostics
from .engine import StepEngine
from .event_log import EventLogger
from .install_config import InstallConfig, load_install_config
from .lib.env import EnvironmentCheckError, Paths, check_environment, paths_for
from .logging_utils import configure_logging
from .progress import ProgressRunner
from .registry import StepRegistry
from .report import completion_snapshot, render_summary, save_completion_snapshot, summarize, write_metrics
from .snapshots import SnapshotError, create_snapshot, list_snapshots, restore_snapshot
from .steps import InstallContext, build_catalog, default_definitions

logger = logging.getLogger(__name__)


@dataclass
class Installer:
    config: InstallConfig
    paths: Paths
    events: EventLogger
    registry: StepRegistry
    engine: StepEngine
    context: InstallContext


def build_installer(
    cfg: InstallConfig,
    paths: Paths,
    *,
    stream: Optional[TextIO] = None,
    catalog=None,
    definitions=None,
) -> Installer:
    """Wire config, runner, registry and engine together.

    ``catalog``/``definitions`` default to the built-in steps.
    """

    events = EventLogger(paths.event_log)
    runner = ProgressRunner(events=events, stream=stream, delay=cfg.spinner_delay)
    ctx = InstallContext(config=cfg, paths=paths, runner=runner)

    registry = StepRegistry(build_catalog(ctx) if catalog is None else catalog)
    registry.initialize(default_definitions(fast_mode=cfg.fast_mode) if definitions is None else definitions)

    engine = StepEngine(registry, events=events, stream=runner.stream)
    runner.step_index = lambda: engine.active_index
    ctx.mark_step_status = engine.mark_step_status
    return Installer(config=cfg, paths=paths, events=events, registry=registry, engine=engine, context=ctx)


def run_single(inst: Installer, identifier: str, out: TextIO) -> int:
    step = inst.engine.run_single(identifier)
    if step is None:
        out.write(f"Step not found: {identifier}\n")
        out.write("Available steps:\n")
        for i, s in enumerate(inst.registry, start=1):
            out.write(f"  {i:2d}. {s.name}\n")
        return 1
    out.write(f"{step.name}: {step.status}\n")
    return 0 if step.status in {"success", "skipped"} else 1


def run_all(inst: Installer, out: TextIO) -> int:
    result = inst.engine.run_all()
    summary = summarize(result.steps, result.totals.total_steps)
    for line in render_summary(summary):
        out.write(line + "\n")

    facts = inst.context.facts
    save_completion_snapshot(
        inst.paths.state_json,
        completion_snapshot(
            version=__version__,
            distro=str(facts.get("distro") or inst.config.distro),
            summary=summary,
            termux_api_verified=bool(facts.get("termux_api_verified", False)),
        ),
    )
    write_metrics(
        inst.paths.metrics_json,
        result.steps,
        {
            "version": __version__,
            "fast_mode": inst.config.fast_mode,
            "total_estimated_seconds": result.totals.total_estimated_seconds,
            "progress_accum": result.progress_accum,
            "successful_steps": summary.successful,
            "failed_steps": summary.failed,
        },
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="caddroid-setup", description="CAD-Droid mobile development setup")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--non-interactive", action="store_true", help="Use defaults, never prompt")
    p.add_argument("--only-step", metavar="N|NAME", help="Run a single step by number or name")
    p.add_argument("--doctor", action="store_true", help="Run system diagnostics")
    p.add_argument("--apk-diagnose", action="store_true", help="Test APK download connections")
    p.add_argument("--snapshot-create", metavar="NAME", help="Snapshot the current configuration")
    p.add_argument("--snapshot-restore", metavar="NAME", help="Restore a configuration snapshot")
    p.add_argument("--list-snapshots", action="store_true", help="List available snapshots")
    p.add_argument("--config", help="Path to installer config (yaml)")
    p.add_argument("--log", help="Path to installer log")
    return p


def main(argv: Optional[list[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    args = build_parser().parse_args(argv)
    out = sys.stdout

    try:
        cfg = load_install_config(args.config, environ)
    except (OSError, ValueError, RuntimeError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    if args.non_interactive:
        raw = dict(cfg.raw)
        raw["environment"] = {**raw.get("environment", {}), "NON_INTERACTIVE": "1"}
        cfg = InstallConfig(raw=raw)

    paths = paths_for(cfg)
    configure_logging(
        log_path=args.log or str(paths.setup_log),
        level=logging.DEBUG if cfg.debug else logging.INFO,
    )

    try:
        if args.doctor:
            run_diagnostics(cfg).render(out)
            return 0
        if args.apk_diagnose:
            probe_apk_sources(cfg).render(out)
            return 0
        if args.list_snapshots:
            names = list_snapshots(paths)
            for name in names:
                out.write(name + "\n")
            if not names:
                out.write("No snapshots found\n")
            return 0
        if args.snapshot_create:
            archive = create_snapshot(paths, args.snapshot_create, version=__version__)
            out.write(f"Snapshot created: {archive}\n")
            return 0
        if args.snapshot_restore:
            restored = restore_snapshot(paths, args.snapshot_restore)
            out.write(f"Restored {len(restored)} files from {args.snapshot_restore}\n")
            return 0

        paths = check_environment(cfg)
    except (EnvironmentCheckError, SnapshotError) as e:
        logger.info("Aborting: %s", e)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    inst = build_installer(cfg, paths)
    try:
        if args.only_step:
            return run_single(inst, args.only_step, out)
        return run_all(inst, out)
    except KeyboardInterrupt:
        inst.events.log_event("run_abort", inst.engine.active_index, "interrupted")
        out.write("\nInterrupted\n")
        logger.info("Run interrupted by user")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
