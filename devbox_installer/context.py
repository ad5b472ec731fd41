from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List

from .config import ProvisionConfig
from .lib.command import CommandRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisionCtx:
    """Everything a step may touch: config, the host command runner, the
    filesystem (via path()) and the run journal."""

    cfg: ProvisionConfig
    runner: CommandRunner
    state: Dict[str, Any] = field(default_factory=dict)
    geteuid: Callable[[], int] = os.geteuid
    warnings: List[str] = field(default_factory=list)
    check_only: bool = False

    @property
    def dry_run(self) -> bool:
        return self.runner.dry_run

    @property
    def root(self) -> Path:
        return Path(self.cfg.root)

    def path(self, host_path: str) -> Path:
        """Map an absolute host path onto the configured root."""
        return self.root / host_path.lstrip("/")

    def warn(self, step_id: str, message: str) -> None:
        logger.warning("%s: %s", step_id, message)
        self.warnings.append(f"{step_id}: {message}")
