from __future__ import annotations

import logging
from typing import List

from ..context import ProvisionCtx
from ..errors import VerificationFailure

logger = logging.getLogger(__name__)


class CommandVerification:
    """The installed tool answers `--version`."""

    def __init__(self, check_id: str, argv: List[str], *, label: str) -> None:
        self.check_id = check_id
        self.argv = argv
        self.label = label

    def verify(self, ctx: ProvisionCtx) -> str:
        r = ctx.runner.query(self.argv)
        if not r.ok:
            raise VerificationFailure(f"{self.label} installation verification failed: {r.stderr.strip() or r.returncode}")
        version = r.stdout.strip().splitlines()[0] if r.stdout.strip() else ""
        logger.info("%s installed successfully! %s", self.label, version)
        return version
