from __future__ import annotations

import logging
from typing import List, Sequence

from .command import CommandRunner

logger = logging.getLogger(__name__)


def apt_update(runner: CommandRunner) -> None:
    runner.run(["apt-get", "update"])


def apt_install(runner: CommandRunner, packages: Sequence[str]) -> None:
    if not packages:
        return
    runner.run(["apt-get", "install", "-y", *packages])


def dpkg_is_installed(runner: CommandRunner, package: str) -> bool:
    r = runner.query(["dpkg-query", "-W", "-f=${Status}", package])
    return r.ok and r.stdout.strip() == "install ok installed"


def missing_packages(runner: CommandRunner, packages: Sequence[str]) -> List[str]:
    return [p for p in packages if not dpkg_is_installed(runner, p)]


def locale_available(runner: CommandRunner, locale: str) -> bool:
    # `locale -a` lists e.g. en_US.utf8 for en_US.UTF-8
    r = runner.query(["locale", "-a"])
    if not r.ok:
        return False
    wanted = locale.lower().replace("-", "")
    return any(line.strip().lower().replace("-", "") == wanted for line in r.stdout.splitlines())


def locale_gen(runner: CommandRunner, locale: str) -> None:
    runner.run(["locale-gen", locale])
