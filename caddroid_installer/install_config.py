from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .lib.safe_math import env_delay, env_flag, env_int

logger = logging.getLogger(__name__)

TERMUX_ROOT = "/data/data/com.termux"
DEFAULT_PREFIX = f"{TERMUX_ROOT}/files/usr"
DEFAULT_HOME = f"{TERMUX_ROOT}/files/home"
DEFAULT_DISTRO = "ubuntu"
SUPPORTED_DISTROS = ("ubuntu", "debian", "arch", "alpine")

DEFAULT_CORE_PACKAGES = (
    "jq",
    "git",
    "curl",
    "nano",
    "vim",
    "tmux",
    "python",
    "openssh",
    "pulseaudio",
    "dbus",
    "fontconfig",
    "ttf-dejavu",
    "proot-distro",
    "termux-api",
)

# (section, key) in the YAML file for each recognised environment variable.
KNOBS: Dict[str, Tuple[str, str]] = {
    "NON_INTERACTIVE": ("installer", "non_interactive"),
    "FAST_MODE": ("installer", "fast_mode"),
    "DEBUG": ("installer", "debug"),
    "DEVELOPMENT_MODE": ("installer", "development_mode"),
    "DISTRO": ("installer", "distro"),
    "SPINNER_DELAY": ("ui", "spinner_delay"),
    "CURL_CONNECT": ("network", "curl_connect"),
    "CURL_MAX_TIME": ("network", "curl_max_time"),
    "APK_PAUSE_TIMEOUT": ("apk", "pause_timeout"),
    "MIN_APK_SIZE": ("apk", "min_size"),
    "ENABLE_APK_AUTO": ("apk", "auto"),
    "ENABLE_ADB": ("adb", "enabled"),
    "SKIP_ADB": ("adb", "skip"),
    "PREFIX": ("paths", "prefix"),
    "HOME": ("paths", "home"),
    "CAD_WORK_DIR": ("paths", "work_dir"),
}


def _as_text(v: Any) -> Optional[str]:
    if v is None:
        return None
    if isinstance(v, bool):
        return "1" if v else "0"
    return str(v)


@dataclass(frozen=True)
class InstallConfig:
    """Installer settings: YAML file values with the environment on top.

    ``raw["environment"]`` holds the recognised variables captured at load
    time. Every numeric knob goes through the fail-closed validators, so a
    malformed value silently becomes its default.
    """

    raw: Dict[str, Any]

    def _section(self, name: str) -> Dict[str, Any]:
        v = self.raw.get(name)
        return v if isinstance(v, dict) else {}

    def settings(self) -> Dict[str, str]:
        """Flat NAME -> text view used by the validators."""
        out: Dict[str, str] = {}
        for name, (section, key) in KNOBS.items():
            v = _as_text(self._section(section).get(key))
            if v is not None:
                out[name] = v
        for name, v in self._section("environment").items():
            if name in KNOBS and v is not None:
                out[name] = str(v)
        return out

    @property
    def non_interactive(self) -> bool:
        return env_flag(self.settings(), "NON_INTERACTIVE", False)

    @property
    def fast_mode(self) -> bool:
        return env_flag(self.settings(), "FAST_MODE", False)

    @property
    def debug(self) -> bool:
        return env_flag(self.settings(), "DEBUG", False)

    @property
    def development_mode(self) -> bool:
        return env_flag(self.settings(), "DEVELOPMENT_MODE", False)

    @property
    def spinner_delay(self) -> float:
        return env_delay(self.settings(), "SPINNER_DELAY", 0.02)

    @property
    def curl_connect(self) -> int:
        return env_int(self.settings(), "CURL_CONNECT", 5, 1, 60, fallback_high=5)

    @property
    def curl_max_time(self) -> int:
        return env_int(self.settings(), "CURL_MAX_TIME", 40, 10, 300)

    @property
    def apk_pause_timeout(self) -> int:
        return env_int(self.settings(), "APK_PAUSE_TIMEOUT", 45, 1, 3600)

    @property
    def min_apk_size(self) -> int:
        return env_int(self.settings(), "MIN_APK_SIZE", 12288, 1024, 500 * 1024 * 1024)

    @property
    def enable_apk_auto(self) -> bool:
        return env_flag(self.settings(), "ENABLE_APK_AUTO", True)

    @property
    def enable_adb(self) -> bool:
        return env_flag(self.settings(), "ENABLE_ADB", True)

    @property
    def skip_adb(self) -> bool:
        return env_flag(self.settings(), "SKIP_ADB", False)

    @property
    def distro(self) -> str:
        d = (self.settings().get("DISTRO") or "").strip().lower()
        if d in SUPPORTED_DISTROS:
            return d
        if d:
            logger.debug("Unsupported DISTRO=%r; using %s", d, DEFAULT_DISTRO)
        return DEFAULT_DISTRO

    @property
    def prefix(self) -> str:
        return self.settings().get("PREFIX") or DEFAULT_PREFIX

    @property
    def home(self) -> str:
        return self.settings().get("HOME") or DEFAULT_HOME

    @property
    def work_dir(self) -> str:
        return self.settings().get("CAD_WORK_DIR") or str(Path(self.home) / ".cad")

    @property
    def termux_root(self) -> str:
        return str(self._section("paths").get("termux_root") or TERMUX_ROOT)

    @property
    def mirror_url(self) -> Optional[str]:
        v = self._section("network").get("mirror_url")
        return str(v) if v else None

    @property
    def core_packages(self) -> List[str]:
        pkgs = self._section("packages").get("core")
        if isinstance(pkgs, list) and pkgs:
            return [str(p) for p in pkgs]
        return list(DEFAULT_CORE_PACKAGES)

    @property
    def extra_packages(self) -> List[str]:
        return [str(p) for p in (self._section("packages").get("extra") or [])]

    @property
    def apk_dir(self) -> str:
        v = self._section("apk").get("dir")
        return str(v) if v else str(Path(self.home) / "storage" / "downloads" / "CAD-Droid-APKs")


def load_install_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> InstallConfig:
    """Load an optional YAML file and overlay the environment."""

    env = os.environ if environ is None else environ
    raw: Dict[str, Any] = {}

    if path:
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(path)
        if p.suffix.lower() not in {".yaml", ".yml"}:
            raise ValueError("installer config must be YAML")

        try:
            import yaml  # type: ignore
        except Exception as e:
            raise RuntimeError("PyYAML is required to read the installer config") from e

        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{path} must contain a mapping/object")
        logger.debug("Loaded installer config from %s", p)

    raw = dict(raw)
    raw["environment"] = {name: env[name] for name in KNOBS if name in env}
    return InstallConfig(raw=raw)
