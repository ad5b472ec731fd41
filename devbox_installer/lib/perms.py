from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Iterator, Optional

from .command import CommandRunner

logger = logging.getLogger(__name__)

_GROUP_RW = stat.S_IRGRP | stat.S_IWGRP


def walk_tree(top: Path) -> Iterator[Path]:
    """top itself, then every entry below it. Symlinks are not followed."""
    yield top
    for dirpath, dirnames, filenames in os.walk(top):
        for name in dirnames + filenames:
            yield Path(dirpath) / name


def _wants_group_exec(st: os.stat_result) -> bool:
    # chmod's X: directories, or files already executable by someone
    return stat.S_ISDIR(st.st_mode) or bool(st.st_mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))


def shared_tree_problem(top: Path, *, uid: Optional[int], gid: Optional[int]) -> Optional[str]:
    """First reason `top` is not a group-shared tree, or None.

    Shared means: owned by uid:gid, group read/write everywhere, group
    execute where chmod's X applies, set-group-id on every directory.
    """

    if not top.is_dir():
        return f"{top} is not a directory"
    for p in walk_tree(top):
        st = p.lstat()
        if stat.S_ISLNK(st.st_mode):
            continue
        if uid is not None and st.st_uid != uid:
            return f"{p} owned by uid {st.st_uid}"
        if gid is not None and st.st_gid != gid:
            return f"{p} owned by gid {st.st_gid}"
        if st.st_mode & _GROUP_RW != _GROUP_RW:
            return f"{p} not group read/write"
        if _wants_group_exec(st) and not st.st_mode & stat.S_IXGRP:
            return f"{p} not group executable"
        if stat.S_ISDIR(st.st_mode) and not st.st_mode & stat.S_ISGID:
            return f"{p} missing set-group-id"
    return None


def chown_tree(runner: CommandRunner, host_path: str, user: str, group: str) -> None:
    runner.run(["chown", "-R", f"{user}:{group}", host_path])


def make_group_shared(top: Path, *, dry_run: bool = False) -> int:
    """Equivalent of `chmod -R g+rwX` plus `chmod g+s` on every directory.

    Returns the number of entries changed.
    """

    if dry_run:
        logger.info("Would chmod -R g+rwX and set-group-id on directories under %s", top)
        return 0

    changed = 0
    for p in walk_tree(top):
        st = p.lstat()
        if stat.S_ISLNK(st.st_mode):
            continue
        mode = stat.S_IMODE(st.st_mode) | _GROUP_RW
        if _wants_group_exec(st):
            mode |= stat.S_IXGRP
        if stat.S_ISDIR(st.st_mode):
            mode |= stat.S_ISGID
        if mode != stat.S_IMODE(st.st_mode):
            os.chmod(p, mode)
            changed += 1
    logger.info("Group-shared permissions set on %s (%d entries changed)", top, changed)
    return changed


def tree_has_mode(top: Path, bits: int) -> bool:
    if not top.exists():
        return False
    for p in walk_tree(top):
        st = p.lstat()
        if stat.S_ISLNK(st.st_mode):
            continue
        if st.st_mode & bits != bits:
            return False
    return True


def chmod_tree(top: Path, mode: int, *, dry_run: bool = False) -> None:
    """Equivalent of `chmod -R <mode>`."""

    if dry_run:
        logger.info("Would chmod -R %o %s", mode, top)
        return
    for p in walk_tree(top):
        if p.is_symlink():
            continue
        os.chmod(p, mode)
