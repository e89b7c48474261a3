"""Exception taxonomy for deployments, upgrades and the address registry."""

from typing import Optional


class DeploymentError(Exception):
    """
    Base exception for a failed orchestrator step.

    Carries the step that failed and the underlying cause so that callers
    can decide whether (and how) to re-submit.
    """

    def __init__(
        self, message: str, step: Optional[str] = None, cause: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.step = step
        self.cause = cause

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        message = super().__str__()
        if self.cause is not None:
            message = f"{message} (caused by {type(self.cause).__name__}: {self.cause})"
        return message


class DeployError(DeploymentError):
    """Raised when a transaction is rejected, reverts or is not confirmed in time."""


class AlreadyInitializedError(DeploymentError):
    """Raised when the initializer is invoked on an already-initialized proxy."""


class UnauthorizedError(DeploymentError):
    """Raised when the signer is not the recorded upgrade authority."""


class PersistenceError(DeploymentError):
    """Raised when the address registry cannot be read or written."""


class DeploymentNotFound(DeploymentError):
    """Raised when an upgrade is requested for a name with no registry entry."""


class NetworkConfigError(ValueError):
    """Raised when the network configuration table is malformed."""


class InvalidParameters(ValueError):
    """Raised when initializer parameters do not match the contract ABI."""
