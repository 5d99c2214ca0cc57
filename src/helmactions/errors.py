"""Domain errors for helmactions."""

from typing import Optional, Sequence


class ActionError(RuntimeError):
    """Raised when an application action cannot complete."""


class ActionLookupError(ActionError, LookupError):
    """Raised when an app, cluster or template version cannot be found."""


class CredentialError(ActionError):
    """Raised when cluster credentials cannot be built or written."""


class ProvisioningError(ActionError):
    """Raised when the workspace, chart files or backend cannot be prepared."""


class ProcessError(ActionError):
    """Raised when an external command cannot be spawned or exits nonzero."""

    def __init__(self, message: str, command: Sequence[str], returncode: Optional[int] = None):
        super().__init__(message)
        self.command = list(command)
        self.returncode = returncode


class StateUpdateError(ActionError):
    """Raised when the application resource cannot be updated."""
