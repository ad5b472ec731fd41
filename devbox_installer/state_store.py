from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def load_state(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    if _detect_format(p) in {"yaml", "yml"}:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    else:
        data = json.loads(p.read_text(encoding="utf-8"))

    if not isinstance(data, dict):
        raise ValueError(f"State file must be an object/dict, got {type(data)}")

    return data


def save_state(path: str, state: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) in {"yaml", "yml"}:
        p.write_text(yaml.safe_dump(state, sort_keys=False) + "\n", encoding="utf-8")
    else:
        p.write_text(json.dumps(state, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def ensure_defaults(state: Dict[str, Any]) -> Dict[str, Any]:
    """Fill required keys without overriding existing values."""

    state.setdefault("version", 1)
    state.setdefault("recipes", {})
    state.setdefault("fragments", {})
    state.setdefault("errors", [])
    return state


def record_fragment(state: Dict[str, Any], *, path: str, key: str, sha256: str) -> None:
    """Structured sentinel for an appended fragment.

    Informational only: whether a fragment is applied is always decided by
    reading the target file.
    """

    state.setdefault("fragments", {}).setdefault(path, {})[key] = {
        "sha256": sha256,
        "applied_at": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
    }


def record_run(state: Dict[str, Any], recipe: str, summary: Dict[str, Any]) -> None:
    entry = dict(summary)
    entry["finished_at"] = time.strftime("%Y-%m-%dT%H:%M:%S%z")
    state.setdefault("recipes", {})[recipe] = entry


def record_error(state: Dict[str, Any], *, recipe: str, step: str | None, error: str) -> None:
    state.setdefault("errors", []).append({"recipe": recipe, "step": step, "error": error})
