from __future__ import annotations

import os
from typing import List, Sequence


def is_host_root(target_root: str) -> bool:
    return os.path.normpath(target_root) == "/"


def chroot_argv(target_root: str, argv: Sequence[str]) -> List[str]:
    """argv as run inside target root; unchanged when the root is /."""

    if is_host_root(target_root):
        return list(argv)
    return ["chroot", os.path.normpath(target_root), *argv]
