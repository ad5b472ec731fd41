from __future__ import annotations


class ProvisionError(RuntimeError):
    """Base class for failures that abort a provisioning run."""


class PreconditionUnmet(ProvisionError):
    """The host does not satisfy a prerequisite; nothing was mutated."""


class MutationFailure(ProvisionError):
    """A critical step failed. Partial state is left in place."""

    def __init__(self, step_id: str, message: str) -> None:
        super().__init__(f"Step {step_id} failed: {message}")
        self.step_id = step_id


class VerificationFailure(ProvisionError):
    """Post-install verification did not pass."""
