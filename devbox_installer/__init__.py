"""devbox-installer: idempotent provisioning of shared package-manager tooling.

Core design goals:
- Every step checks the live host before mutating it
- Fail fast on unmet preconditions, before any mutation
- Marker-delimited, append-once edits to shared shell profiles
- Best-effort propagation to every existing user
- Centralized logging
"""

__all__ = []
