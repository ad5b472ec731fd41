"""Append-once, marker-delimited edits to shared text files.

A fragment is written as::

    # >>> devbox-installer:<key> >>>
    <body>
    # <<< devbox-installer:<key> <<<

The begin tag is the idempotency key: a file containing it (or one of the
fragment's legacy markers) is never modified again.
"""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

NAMESPACE = "devbox-installer"


@dataclass(frozen=True)
class ShellFragment:
    key: str
    body: str
    legacy_markers: Tuple[str, ...] = ()

    @property
    def begin_marker(self) -> str:
        return f"# >>> {NAMESPACE}:{self.key} >>>"

    @property
    def end_marker(self) -> str:
        return f"# <<< {NAMESPACE}:{self.key} <<<"

    def render(self) -> str:
        return f"{self.begin_marker}\n{self.body.rstrip(chr(10))}\n{self.end_marker}\n"

    def sha256(self) -> str:
        return hashlib.sha256(self.render().encode("utf-8")).hexdigest()

    def is_applied(self, data: bytes) -> bool:
        if self.begin_marker.encode("utf-8") in data:
            return True
        return any(m.encode("utf-8") in data for m in self.legacy_markers)


def _read(path: Path) -> Optional[bytes]:
    # bytes: rc files are not guaranteed to be UTF-8
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None


def fragment_present(path: Path, fragment: ShellFragment) -> bool:
    data = _read(path)
    return data is not None and fragment.is_applied(data)


def fragment_status(path: Path, fragment: ShellFragment) -> str:
    """One of: missing-file, absent, legacy, current, stale.

    stale means the tagged block differs from the current body. It is
    reported, never rewritten.
    """

    data = _read(path)
    if data is None:
        return "missing-file"
    begin = fragment.begin_marker.encode("utf-8")
    end_tag = fragment.end_marker.encode("utf-8")
    if begin not in data:
        return "legacy" if fragment.is_applied(data) else "absent"
    start = data.index(begin)
    end = data.find(end_tag, start)
    if end < 0:
        return "stale"
    block = data[start : end + len(end_tag)] + b"\n"
    return "current" if block == fragment.render().encode("utf-8") else "stale"


def append_fragment(path: Path, fragment: ShellFragment, *, dry_run: bool = False) -> bool:
    """Append the fragment unless already present. Returns True if appended.

    The target file must already exist; rc files are only extended, never
    created.
    """

    data = _read(path)
    if data is None:
        raise FileNotFoundError(str(path))
    if fragment.is_applied(data):
        return False

    if dry_run:
        logger.info("Would append %s to %s", fragment.key, path)
        return True

    sep = "\n" if data.endswith(b"\n") or not data else "\n\n"
    with path.open("ab") as f:
        f.write((sep + fragment.render()).encode("utf-8"))
    logger.info("Appended %s configuration to %s", fragment.key, path)
    return True


def write_managed_file(
    path: Path,
    fragment: ShellFragment,
    *,
    mode: int,
    header: str = "",
    dry_run: bool = False,
) -> None:
    """Create a file holding only the fragment (e.g. /etc/profile.d/*.sh).

    header goes before the begin tag, for a script's shebang line.
    """

    if dry_run:
        logger.info("Would write %s", path)
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(header + fragment.render(), encoding="utf-8")
    os.chmod(path, mode)
    logger.info("Wrote %s", path)
