from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

from .chroot import chroot_argv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandError(RuntimeError):
    def __init__(self, result: CmdResult) -> None:
        super().__init__(
            f"Command failed ({result.returncode}): {fmt_argv(result.argv)}\n{result.stderr}".rstrip()
        )
        self.result = result


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command.
    - A missing executable is reported as return code 127, like a shell.
    - dry_run logs but does not execute.
    """

    argv_list = list(argv)
    if env:
        logger.info("CMD %s %s", " ".join(f"{k}={v}" for k, v in env.items()), fmt_argv(argv_list))
    else:
        logger.info("CMD %s", fmt_argv(argv_list))

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    try:
        p = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
        )
    except FileNotFoundError as e:
        result = CmdResult(argv=argv_list, returncode=127, stdout="", stderr=str(e))
    else:
        result = CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)

    if result.stdout:
        logger.debug("STDOUT %s", result.stdout.strip())
    if result.stderr:
        logger.debug("STDERR %s", result.stderr.strip())

    if check and not result.ok:
        raise CommandError(result)

    return result


class CommandRunner:
    """Host command collaborator.

    query() is for read-only lookups and always executes, even in dry-run.
    run() mutates the host and is skipped (logged only) in dry-run.
    Under a root other than / every command runs via chroot, so command
    arguments name paths inside that root.
    """

    def __init__(self, *, dry_run: bool = False, root: str = "/") -> None:
        self.dry_run = dry_run
        self.root = root

    def command(self, argv: Sequence[str]) -> list[str]:
        return chroot_argv(self.root, argv)

    def query(self, argv: Sequence[str], *, env: Mapping[str, str] | None = None) -> CmdResult:
        argv_list = self.command(argv)
        logger.debug("QUERY %s", fmt_argv(argv_list))
        try:
            p = subprocess.run(
                argv_list,
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=dict(os.environ, **(env or {})),
            )
        except FileNotFoundError as e:
            return CmdResult(argv=argv_list, returncode=127, stdout="", stderr=str(e))
        return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> CmdResult:
        return run_cmd(self.command(argv), check=check, env=env, dry_run=self.dry_run)
