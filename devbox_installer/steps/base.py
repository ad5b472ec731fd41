from __future__ import annotations

import logging
from typing import Generic, List, TypeVar

from ..context import ProvisionCtx

logger = logging.getLogger(__name__)

M = TypeVar("M")


class BaseStep:
    step_id = ""
    critical = True
    verify_after_apply = True

    def check(self, ctx: ProvisionCtx) -> bool:
        raise NotImplementedError

    def apply(self, ctx: ProvisionCtx) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.step_id}>"


class PerMemberStep(BaseStep, Generic[M]):
    """Apply the same idempotent change to each member of a dynamic set.

    A failure on one member, including one whose state cannot be read, is
    logged and the remaining members are still attempted.
    """

    critical = False
    # failures are already reported per member
    verify_after_apply = False

    def members(self, ctx: ProvisionCtx) -> List[M]:
        raise NotImplementedError

    def member_done(self, ctx: ProvisionCtx, member: M) -> bool:
        raise NotImplementedError

    def apply_member(self, ctx: ProvisionCtx, member: M) -> None:
        raise NotImplementedError

    def describe(self, member: M) -> str:
        return str(member)

    def _done(self, ctx: ProvisionCtx, member: M) -> bool:
        try:
            return self.member_done(ctx, member)
        except Exception as e:
            logger.debug("%s: cannot read state of %s: %s", self.step_id, self.describe(member), e)
            return False

    def check(self, ctx: ProvisionCtx) -> bool:
        return all(self._done(ctx, m) for m in self.members(ctx))

    def apply(self, ctx: ProvisionCtx) -> None:
        updated = failed = 0
        for m in self.members(ctx):
            try:
                if self.member_done(ctx, m):
                    continue
                self.apply_member(ctx, m)
            except Exception as e:
                failed += 1
                ctx.warn(self.step_id, f"{self.describe(m)}: {e}")
            else:
                updated += 1
        logger.info("%s: %d updated, %d failed", self.step_id, updated, failed)
