# installer/errors.py
# -*- coding: utf-8 -*-
"""
Fatal error taxonomy for the bootstrapper.

Every class here aborts the run when it reaches the orchestrator.
Non-fatal conditions are not exceptions; they are StepResult values with a
WARNING status (see installer.results).
"""

from typing import List, Optional


class ProvisioningError(Exception):
    """Base class for errors that abort the provisioning run."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class ElevatedPrivilegeError(ProvisioningError, PermissionError):
    """The process cannot mutate system package state."""


class ProbeExecutionError(ProvisioningError):
    """A probe command could not run, so presence cannot be decided."""


class PackageOperationError(ProvisioningError):
    """Repository setup, index refresh or package install/removal failed."""


class PostInstallVerificationError(ProvisioningError):
    """A target is still absent after its install path completed."""


class ServiceError(ProvisioningError):
    """Enabling and/or starting a systemd service failed."""

    def __init__(
        self,
        service_name: str,
        failed_operations: List[str],
        stage: Optional[str] = None,
    ):
        self.service_name = service_name
        self.failed_operations = list(failed_operations)
        super().__init__(
            f"Service '{service_name}' could not be brought up: "
            f"{', '.join(self.failed_operations)} failed",
            stage=stage,
        )


class CredentialStoreWriteError(ProvisioningError):
    """The reverse-proxy credential store could not be written."""


class StackStartError(ProvisioningError):
    """The compose stack could not be started."""


class MissingToolingError(ProvisioningError):
    """A command the bootstrapper itself drives is not on PATH."""

    def __init__(self, tools: List[str], stage: Optional[str] = None):
        self.tools = list(tools)
        super().__init__(
            f"Required tooling not found on PATH: {', '.join(self.tools)}",
            stage=stage,
        )
