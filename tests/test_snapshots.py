from __future__ import annotations

import io
import tarfile

import pytest

from caddroid_installer.snapshots import SnapshotError, create_snapshot, list_snapshots, restore_snapshot


def seed(paths):
    paths.termux_dir.mkdir(parents=True, exist_ok=True)
    (paths.termux_dir / "termux.properties").write_text("allow-external-apps = true\n")
    (paths.home / ".bashrc").write_text("export A=1\n")
    paths.state_json.parent.mkdir(parents=True, exist_ok=True)
    paths.state_json.write_text('{"version": "2.0.0"}\n')


def test_create_list_restore(paths):
    seed(paths)
    archive = create_snapshot(paths, "before-xfce", version="2.0.0")
    assert archive.name == "before-xfce.tar.gz"
    assert list_snapshots(paths) == ["before-xfce"]

    (paths.home / ".bashrc").write_text("broken\n")
    (paths.termux_dir / "termux.properties").unlink()

    restored = restore_snapshot(paths, "before-xfce")
    assert (paths.home / ".bashrc").read_text() == "export A=1\n"
    assert (paths.termux_dir / "termux.properties").exists()
    assert len(restored) == 3


def test_snapshot_metadata(paths):
    seed(paths)
    archive = create_snapshot(paths, "meta")
    with tarfile.open(archive, "r:gz") as tar:
        names = tar.getnames()
    assert "metadata.json" in names
    assert "gitconfig" not in names


@pytest.mark.parametrize("name", ["", "../evil", "a/b", "x" * 65, "..", "semi;colon"])
def test_invalid_names_rejected(paths, name):
    with pytest.raises(SnapshotError):
        create_snapshot(paths, name)


def test_duplicate_and_missing(paths):
    seed(paths)
    create_snapshot(paths, "one")
    with pytest.raises(SnapshotError, match="already exists"):
        create_snapshot(paths, "one")
    with pytest.raises(SnapshotError, match="not found"):
        restore_snapshot(paths, "two")


def test_restore_ignores_unknown_members(paths):
    paths.snap_dir.mkdir(parents=True, exist_ok=True)
    archive = paths.snap_dir / "crafted.tar.gz"
    with tarfile.open(archive, "w:gz") as tar:
        for member, data in [("../../escape.txt", b"pwned"), ("bashrc", b"ok\n")]:
            info = tarfile.TarInfo(member)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))

    restored = restore_snapshot(paths, "crafted")

    assert restored == [paths.home / ".bashrc"]
    assert not (paths.work_dir.parent.parent / "escape.txt").exists()


def test_list_without_directory(paths):
    assert list_snapshots(paths) == []
