from __future__ import annotations

import logging
from typing import List

from ..context import ProvisionCtx
from ..lib.accounts import (
    AccountSpec,
    add_to_group,
    create_group,
    create_user,
    group_exists,
    home_users,
    user_exists,
    user_in_group,
)
from .base import BaseStep, PerMemberStep

logger = logging.getLogger(__name__)


class GroupStep(BaseStep):
    def __init__(self, step_id: str, group: str) -> None:
        self.step_id = step_id
        self.group = group

    def check(self, ctx: ProvisionCtx) -> bool:
        return group_exists(ctx.runner, self.group)

    def apply(self, ctx: ProvisionCtx) -> None:
        create_group(ctx.runner, self.group)
        logger.info("Created group: %s", self.group)


class UserStep(BaseStep):
    def __init__(self, step_id: str, spec: AccountSpec) -> None:
        self.step_id = step_id
        self.spec = spec

    def check(self, ctx: ProvisionCtx) -> bool:
        return user_exists(ctx.runner, self.spec.name)

    def apply(self, ctx: ProvisionCtx) -> None:
        create_user(ctx.runner, self.spec)
        logger.info("Created user: %s", self.spec.name)


class GroupMembersStep(PerMemberStep[str]):
    """Add every account with a /home directory, plus named extras, to a group."""

    def __init__(self, step_id: str, group: str, *, owner: str, extra_members: List[str]) -> None:
        self.step_id = step_id
        self.group = group
        self.owner = owner
        self.extra_members = extra_members

    def members(self, ctx: ProvisionCtx) -> List[str]:
        names = [name for name, _ in home_users(ctx.runner, ctx.path("/home"), exclude=(self.owner,))]
        for extra in self.extra_members:
            if extra in names or extra == self.owner:
                continue
            if user_exists(ctx.runner, extra):
                names.append(extra)
            else:
                logger.info("%s: no such user %s, skipping", self.step_id, extra)
        return names

    def member_done(self, ctx: ProvisionCtx, member: str) -> bool:
        return user_in_group(ctx.runner, member, self.group)

    def apply_member(self, ctx: ProvisionCtx, member: str) -> None:
        add_to_group(ctx.runner, member, self.group)
        logger.info("Added %s to %s group", member, self.group)
