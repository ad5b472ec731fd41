from __future__ import annotations

import logging
from typing import List

from ..context import ProvisionCtx
from ..lib.pkg import apt_install, apt_update, locale_available, locale_gen, missing_packages
from .base import BaseStep

logger = logging.getLogger(__name__)


class AptPrerequisitesStep(BaseStep):
    def __init__(self, step_id: str, packages: List[str]) -> None:
        self.step_id = step_id
        self.packages = packages

    def check(self, ctx: ProvisionCtx) -> bool:
        return not missing_packages(ctx.runner, self.packages)

    def apply(self, ctx: ProvisionCtx) -> None:
        logger.info("Installing required dependencies: %s", " ".join(self.packages))
        apt_update(ctx.runner)
        apt_install(ctx.runner, self.packages)


class LocaleStep(BaseStep):
    critical = False

    def __init__(self, step_id: str, locale: str) -> None:
        self.step_id = step_id
        self.locale = locale

    def check(self, ctx: ProvisionCtx) -> bool:
        return locale_available(ctx.runner, self.locale)

    def apply(self, ctx: ProvisionCtx) -> None:
        locale_gen(ctx.runner, self.locale)
