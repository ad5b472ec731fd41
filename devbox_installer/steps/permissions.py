from __future__ import annotations

import logging

from ..context import ProvisionCtx
from ..lib.accounts import lookup_gid, lookup_uid
from ..lib.perms import chmod_tree, chown_tree, make_group_shared, shared_tree_problem, tree_has_mode
from .base import BaseStep

logger = logging.getLogger(__name__)


class SharedTreeStep(BaseStep):
    """user:group ownership, g+rwX everywhere, set-group-id on directories,
    so new files inherit the group."""

    def __init__(self, step_id: str, host_path: str, *, user: str, group: str) -> None:
        self.step_id = step_id
        self.host_path = host_path
        self.user = user
        self.group = group

    def check(self, ctx: ProvisionCtx) -> bool:
        uid = lookup_uid(ctx.runner, self.user)
        gid = lookup_gid(ctx.runner, self.group)
        if uid is None or gid is None:
            return False
        problem = shared_tree_problem(ctx.path(self.host_path), uid=uid, gid=gid)
        if problem:
            logger.debug("%s: %s", self.step_id, problem)
        return problem is None

    def apply(self, ctx: ProvisionCtx) -> None:
        logger.info("Setting permissions for shared access on %s", self.host_path)
        chown_tree(ctx.runner, self.host_path, self.user, self.group)
        make_group_shared(ctx.path(self.host_path), dry_run=ctx.dry_run)


class TreeModeStep(BaseStep):
    """Every entry under host_path carries `mode` (chmod -R)."""

    def __init__(self, step_id: str, host_path: str, *, mode: int) -> None:
        self.step_id = step_id
        self.host_path = host_path
        self.mode = mode

    def check(self, ctx: ProvisionCtx) -> bool:
        return tree_has_mode(ctx.path(self.host_path), self.mode)

    def apply(self, ctx: ProvisionCtx) -> None:
        chmod_tree(ctx.path(self.host_path), self.mode, dry_run=ctx.dry_run)
