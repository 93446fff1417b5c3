from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def load_document(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    fmt = _detect_format(p)
    text = p.read_text(encoding="utf-8")
    data: Any

    if fmt in {"yaml", "yml"}:
        try:
            import yaml  # type: ignore
        except Exception as e:  # pragma: no cover
            raise RuntimeError(
                "YAML document requested but PyYAML is not available. "
                "Use a .json path or install PyYAML."
            ) from e
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text) if text.strip() else {}

    if not isinstance(data, dict):
        raise ValueError(f"{p} must contain an object/dict, got {type(data).__name__}")

    return data


def save_document(path: str | Path, doc: Dict[str, Any]) -> None:
    """Write ``doc`` to ``path``, replacing whatever was there."""

    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    fmt = _detect_format(p)
    if fmt in {"yaml", "yml"}:
        try:
            import yaml  # type: ignore
        except Exception as e:  # pragma: no cover
            raise RuntimeError(
                "YAML document requested but PyYAML is not available. "
                "Use a .json path or install PyYAML."
            ) from e
        body = yaml.safe_dump(doc, sort_keys=False)
    else:
        body = json.dumps(doc, indent=2, sort_keys=True) + "\n"

    # Readers must never observe a partially written document.
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(body, encoding="utf-8")
    tmp.replace(p)
    logger.debug("Wrote %s", p)
