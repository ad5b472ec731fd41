from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from .command import CommandRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountSpec:
    name: str
    home: str
    shell: str = "/bin/bash"
    group: Optional[str] = None
    system: bool = True


def group_exists(runner: CommandRunner, group: str) -> bool:
    return runner.query(["getent", "group", group]).ok


def user_exists(runner: CommandRunner, user: str) -> bool:
    return runner.query(["id", user]).ok


def user_groups(runner: CommandRunner, user: str) -> List[str]:
    r = runner.query(["id", "-nG", user])
    if not r.ok:
        return []
    return r.stdout.split()


def user_in_group(runner: CommandRunner, user: str, group: str) -> bool:
    return group in user_groups(runner, user)


def lookup_uid(runner: CommandRunner, user: str) -> Optional[int]:
    r = runner.query(["id", "-u", user])
    if not r.ok:
        return None
    return int(r.stdout.strip())


def lookup_gid(runner: CommandRunner, group: str) -> Optional[int]:
    # getent group: name:passwd:gid:members
    r = runner.query(["getent", "group", group])
    if not r.ok:
        return None
    parts = r.stdout.strip().split(":")
    if len(parts) < 3:
        return None
    return int(parts[2])


def create_group(runner: CommandRunner, group: str) -> None:
    runner.run(["groupadd", group])


def create_user(runner: CommandRunner, spec: AccountSpec) -> None:
    argv = ["useradd"]
    if spec.system:
        argv.append("-r")
    if spec.group:
        argv += ["-g", spec.group]
    argv += ["-d", spec.home, "-s", spec.shell, spec.name]
    runner.run(argv)


def add_to_group(runner: CommandRunner, user: str, group: str) -> None:
    runner.run(["usermod", "-aG", group, user])


def home_users(runner: CommandRunner, home_root: Path, *, exclude: Tuple[str, ...] = ()) -> List[Tuple[str, Path]]:
    """Accounts that own a directory under /home (directory name == user name).

    Directories with no matching account are ignored.
    """

    if not home_root.is_dir():
        return []
    out: List[Tuple[str, Path]] = []
    for d in sorted(home_root.iterdir()):
        if not d.is_dir() or d.name in exclude:
            continue
        if user_exists(runner, d.name):
            out.append((d.name, d))
        else:
            logger.debug("Skipping %s: no such user", d)
    return out
