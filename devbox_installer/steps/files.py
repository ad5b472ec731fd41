from __future__ import annotations

import logging
import os
import stat

from ..context import ProvisionCtx
from ..lib.fragments import ShellFragment, append_fragment, fragment_present, write_managed_file
from ..state_store import record_fragment
from .base import BaseStep

logger = logging.getLogger(__name__)


class EnsureDirStep(BaseStep):
    def __init__(self, step_id: str, host_path: str, *, mode: int = 0o755) -> None:
        self.step_id = step_id
        self.host_path = host_path
        self.mode = mode

    def check(self, ctx: ProvisionCtx) -> bool:
        p = ctx.path(self.host_path)
        return p.is_dir() and stat.S_IMODE(p.stat().st_mode) == self.mode

    def apply(self, ctx: ProvisionCtx) -> None:
        p = ctx.path(self.host_path)
        if ctx.dry_run:
            logger.info("Would create %s (mode %o)", p, self.mode)
            return
        p.mkdir(parents=True, exist_ok=True)
        os.chmod(p, self.mode)
        logger.info("Created %s", p)


class ManagedFileStep(BaseStep):
    """A file owned entirely by us, e.g. /etc/profile.d/homebrew.sh."""

    def __init__(
        self,
        step_id: str,
        host_path: str,
        fragment: ShellFragment,
        *,
        mode: int = 0o644,
        header: str = "",
    ) -> None:
        self.step_id = step_id
        self.host_path = host_path
        self.fragment = fragment
        self.mode = mode
        self.header = header

    def check(self, ctx: ProvisionCtx) -> bool:
        return fragment_present(ctx.path(self.host_path), self.fragment)

    def apply(self, ctx: ProvisionCtx) -> None:
        write_managed_file(
            ctx.path(self.host_path),
            self.fragment,
            mode=self.mode,
            header=self.header,
            dry_run=ctx.dry_run,
        )
        if not ctx.dry_run:
            record_fragment(ctx.state, path=self.host_path, key=self.fragment.key, sha256=self.fragment.sha256())


class AppendFragmentStep(BaseStep):
    """Append a fragment to a shared file exactly once.

    With only_if_exists, a missing target means nothing to do (satisfied).
    """

    def __init__(
        self,
        step_id: str,
        host_path: str,
        fragment: ShellFragment,
        *,
        only_if_exists: bool = False,
        critical: bool = True,
    ) -> None:
        self.step_id = step_id
        self.host_path = host_path
        self.fragment = fragment
        self.only_if_exists = only_if_exists
        self.critical = critical

    def check(self, ctx: ProvisionCtx) -> bool:
        p = ctx.path(self.host_path)
        if self.only_if_exists and not p.exists():
            return True
        return fragment_present(p, self.fragment)

    def apply(self, ctx: ProvisionCtx) -> None:
        p = ctx.path(self.host_path)
        if not p.exists():
            # /etc/bash.bashrc and friends are expected on Ubuntu; create empty
            if ctx.dry_run:
                logger.info("Would create %s", p)
                return
            p.parent.mkdir(parents=True, exist_ok=True)
            p.touch(mode=0o644)
        if append_fragment(p, self.fragment, dry_run=ctx.dry_run) and not ctx.dry_run:
            record_fragment(ctx.state, path=self.host_path, key=self.fragment.key, sha256=self.fragment.sha256())
