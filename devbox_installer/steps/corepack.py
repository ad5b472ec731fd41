from __future__ import annotations

import logging

from ..context import ProvisionCtx
from .base import BaseStep

logger = logging.getLogger(__name__)


class CorepackEnableStep(BaseStep):
    """Install the Corepack shims (yarn, pnpm) next to node."""

    step_id = "corepack_enable"

    def check(self, ctx: ProvisionCtx) -> bool:
        return ctx.runner.query(["which", "yarn"]).ok

    def apply(self, ctx: ProvisionCtx) -> None:
        ctx.runner.run(["corepack", "enable"])


class YarnActivateStep(BaseStep):
    """Download and activate a Yarn release into the shared COREPACK_HOME."""

    step_id = "yarn_activate"

    def _cache_dir(self, ctx: ProvisionCtx):
        # Corepack caches releases as $COREPACK_HOME/v1/yarn/<version>
        return ctx.path(ctx.cfg.corepack_home) / "v1" / "yarn"

    def check(self, ctx: ProvisionCtx) -> bool:
        cache = self._cache_dir(ctx)
        return cache.is_dir() and any(p.is_dir() for p in cache.iterdir())

    def apply(self, ctx: ProvisionCtx) -> None:
        logger.info("Activating %s", ctx.cfg.yarn_spec)
        ctx.runner.run(
            ["corepack", "prepare", ctx.cfg.yarn_spec, "--activate"],
            env={"COREPACK_HOME": ctx.cfg.corepack_home},
        )
