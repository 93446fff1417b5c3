from __future__ import annotations

import io
import json
import logging
import re
import tarfile
from datetime import datetime
from pathlib import Path
from typing import Dict, List

from .lib.env import Paths

logger = logging.getLogger(__name__)

SNAPSHOT_NAME_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")
SUFFIX = ".tar.gz"
METADATA = "metadata.json"


class SnapshotError(RuntimeError):
    pass


def snapshot_members(paths: Paths) -> Dict[str, Path]:
    """Archive member name -> live file it is taken from and restored to."""
    return {
        "termux.properties": paths.termux_dir / "termux.properties",
        "bashrc": paths.home / ".bashrc",
        "gitconfig": paths.home / ".gitconfig",
        "nanorc": paths.home / ".nanorc",
        "cad-state.json": paths.state_json,
    }


def _archive(paths: Paths, name: str) -> Path:
    if not SNAPSHOT_NAME_RE.match(name or "") or name in {".", ".."}:
        raise SnapshotError(f"Invalid snapshot name: {name!r}")
    return paths.snap_dir / f"{name}{SUFFIX}"


def _add_bytes(tar: tarfile.TarFile, member: str, data: bytes) -> None:
    info = tarfile.TarInfo(member)
    info.size = len(data)
    info.mtime = int(datetime.now().timestamp())
    info.mode = 0o600
    tar.addfile(info, io.BytesIO(data))


def create_snapshot(paths: Paths, name: str, *, version: str = "") -> Path:
    archive = _archive(paths, name)
    if archive.exists():
        raise SnapshotError(f"Snapshot already exists: {name}")
    paths.snap_dir.mkdir(parents=True, exist_ok=True)

    included: List[str] = []
    try:
        with tarfile.open(archive, "w:gz") as tar:
            for member, src in snapshot_members(paths).items():
                if src.is_file():
                    _add_bytes(tar, member, src.read_bytes())
                    included.append(member)
            meta = {
                "name": name,
                "created": datetime.now().astimezone().isoformat(timespec="seconds"),
                "version": version,
                "files": included,
            }
            _add_bytes(tar, METADATA, json.dumps(meta, indent=2).encode("utf-8"))
    except (OSError, tarfile.TarError) as e:
        archive.unlink(missing_ok=True)
        raise SnapshotError(f"Failed to create snapshot {name}: {e}") from e

    logger.info("Snapshot %s created with %d files", name, len(included))
    return archive


def list_snapshots(paths: Paths) -> List[str]:
    if not paths.snap_dir.is_dir():
        return []
    return sorted(p.name[: -len(SUFFIX)] for p in paths.snap_dir.glob(f"*{SUFFIX}") if p.is_file())


def restore_snapshot(paths: Paths, name: str) -> List[Path]:
    """Write the archived files back. Unknown members are ignored."""

    archive = _archive(paths, name)
    if not archive.is_file():
        raise SnapshotError(f"Snapshot not found: {name}")

    targets = snapshot_members(paths)
    restored: List[Path] = []
    try:
        with tarfile.open(archive, "r:gz") as tar:
            for info in tar.getmembers():
                dest = targets.get(info.name)
                if dest is None or not info.isfile():
                    if info.name != METADATA:
                        logger.warning("Ignoring unexpected snapshot member %r", info.name)
                    continue
                fh = tar.extractfile(info)
                if fh is None:
                    continue
                dest.parent.mkdir(parents=True, exist_ok=True)
                dest.write_bytes(fh.read())
                restored.append(dest)
    except (OSError, tarfile.TarError) as e:
        raise SnapshotError(f"Failed to restore snapshot {name}: {e}") from e

    logger.info("Snapshot %s restored (%d files)", name, len(restored))
    return restored
