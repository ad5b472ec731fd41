from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    root: str = "/"
    state_default: str = "/var/lib/devbox-installer/state.json"
    log_default: str = "/var/log/devbox-installer.log"
    config_default: str = "/etc/devbox-installer.yaml"


PATHS = Paths()
