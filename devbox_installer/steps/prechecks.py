from __future__ import annotations

import logging

from ..context import ProvisionCtx
from ..errors import PreconditionUnmet
from ..lib.osinfo import is_os_family, parse_major_version, read_os_release

logger = logging.getLogger(__name__)


class OsFamilyGate:
    check_id = "os_family"

    def verify(self, ctx: ProvisionCtx) -> str:
        family = ctx.cfg.os_family
        info = read_os_release(ctx.path("/etc/os-release"))
        if not info:
            raise PreconditionUnmet("/etc/os-release not found, cannot detect OS")
        if not is_os_family(info, family):
            raise PreconditionUnmet(
                f"This installer is designed for {family}. Detected: {info.get('PRETTY_NAME') or info.get('ID', 'unknown')}"
            )
        return info.get("PRETTY_NAME") or info.get("ID", family)


class RootGate:
    check_id = "root"

    def verify(self, ctx: ProvisionCtx) -> str:
        if not ctx.cfg.require_root:
            return "not required"
        euid = ctx.geteuid()
        if euid != 0:
            raise PreconditionUnmet(f"Must run as root (euid={euid}); try sudo")
        return "euid=0"


class ToolVersionGate:
    """Tool is on PATH and `<tool> --version` reports at least min_major."""

    def __init__(self, tool: str, min_major: int, *, label: str | None = None) -> None:
        self.tool = tool
        self.min_major = min_major
        self.label = label or tool
        self.check_id = f"{tool}_version"

    def verify(self, ctx: ProvisionCtx) -> str:
        r = ctx.runner.query([self.tool, "--version"])
        if not r.ok:
            raise PreconditionUnmet(f"{self.label} is not installed. Please install {self.label} {self.min_major}+ first.")
        reported = r.stdout.strip()
        major = parse_major_version(reported)
        if major is None:
            raise PreconditionUnmet(f"Cannot parse {self.label} version from {reported!r}")
        if major < self.min_major:
            raise PreconditionUnmet(f"{self.label} {self.min_major}+ required. Found: {reported}")
        return f"{self.label} {reported}"
