from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Optional

_VERSION_RE = re.compile(r"v?(\d+)(?:\.(\d+))?")


def parse_os_release(text: str) -> Dict[str, str]:
    info: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, val = line.partition("=")
        info[key.strip()] = val.strip().strip('"').strip("'")
    return info


def read_os_release(path: Path) -> Dict[str, str]:
    """Parse an os-release file; a missing file yields an empty mapping."""
    try:
        return parse_os_release(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}


def is_os_family(info: Dict[str, str], family: str) -> bool:
    family = family.lower()
    if info.get("ID", "").lower() == family:
        return True
    return family in info.get("ID_LIKE", "").lower().split()


def parse_major_version(text: str) -> Optional[int]:
    """Leading major version from tool output such as `v20.11.1`."""
    m = _VERSION_RE.search(text.strip())
    if not m:
        return None
    return int(m.group(1))
