from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .lib.env import PATHS

DEFAULT_APT_PACKAGES = [
    "build-essential",
    "procps",
    "curl",
    "file",
    "git",
    "locales",
]


@dataclass(frozen=True)
class ProvisionConfig:
    raw: Dict[str, Any] = field(default_factory=dict)

    def _section(self, name: str) -> Dict[str, Any]:
        return self.raw.get(name) or {}

    @property
    def root(self) -> str:
        return str(self.raw.get("root") or PATHS.root)

    @property
    def os_family(self) -> str:
        return str(self.raw.get("os_family") or "ubuntu")

    @property
    def require_root(self) -> bool:
        return bool(self.raw.get("require_root", True))

    # yarn / corepack

    @property
    def corepack_home(self) -> str:
        return str(self._section("yarn").get("corepack_home") or "/usr/local/share/corepack")

    @property
    def yarn_spec(self) -> str:
        return str(self._section("yarn").get("spec") or "yarn@stable")

    @property
    def node_min_major(self) -> int:
        return int(self._section("yarn").get("node_min_major") or 16)

    # linuxbrew

    @property
    def brew_user(self) -> str:
        return str(self._section("linuxbrew").get("user") or "linuxbrew")

    @property
    def brew_group(self) -> str:
        return str(self._section("linuxbrew").get("group") or self.brew_user)

    @property
    def brew_home(self) -> str:
        return str(self._section("linuxbrew").get("home") or f"/home/{self.brew_user}")

    @property
    def brew_prefix(self) -> str:
        return str(self._section("linuxbrew").get("prefix") or f"{self.brew_home}/.linuxbrew")

    @property
    def brew_repo_url(self) -> str:
        return str(self._section("linuxbrew").get("repo_url") or "https://github.com/Homebrew/brew")

    @property
    def apt_packages(self) -> List[str]:
        pkgs = self._section("linuxbrew").get("apt_packages")
        return list(pkgs) if pkgs else list(DEFAULT_APT_PACKAGES)

    @property
    def locale(self) -> str:
        return str(self._section("linuxbrew").get("locale") or "en_US.UTF-8")

    @property
    def extra_members(self) -> List[str]:
        members = self._section("linuxbrew").get("extra_members")
        if members is None:
            return ["ssm-user", "root"]
        return [str(m) for m in members]

    @property
    def helper_script(self) -> str:
        return str(self._section("linuxbrew").get("helper_script") or "/usr/local/bin/add-user-to-brew")

    @property
    def update_checkout(self) -> bool:
        return bool(self._section("linuxbrew").get("update_checkout", False))

    def with_overrides(self, **overrides: Any) -> "ProvisionConfig":
        raw = dict(self.raw)
        raw.update({k: v for k, v in overrides.items() if v is not None})
        return ProvisionConfig(raw=raw)


def load_config(path: str | None) -> ProvisionConfig:
    """Load a YAML config; a missing default config yields built-in defaults."""

    if path is None:
        return ProvisionConfig()

    p = Path(path)
    if not p.exists():
        if path == PATHS.config_default:
            return ProvisionConfig()
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("config must be YAML")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a mapping/object")

    return ProvisionConfig(raw=raw)
