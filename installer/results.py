# installer/results.py
# -*- coding: utf-8 -*-
"""
Result records produced during a provisioning run.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StepStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    FATAL = "fatal"


class StepResult(BaseModel):
    """Outcome of a single command-level step, tagged instead of swallowed."""

    model_config = ConfigDict(frozen=True)

    step: str
    status: StepStatus
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == StepStatus.OK


class DecisionKind(str, Enum):
    SKIPPED = "skipped"
    INSTALLED = "installed"
    REINSTALLED = "reinstalled"
    FAILED = "failed"


SKIP_REQUESTED = "requested"
SKIP_ALREADY_PRESENT = "already present"
VERIFICATION_FAILED = "post-install verification failed"


class ProvisioningDecision(BaseModel):
    """The single decision taken for one install target in one run."""

    model_config = ConfigDict(frozen=True)

    target: str
    kind: DecisionKind
    reason: Optional[str] = None

    @classmethod
    def skipped(cls, target: str, reason: str) -> "ProvisioningDecision":
        return cls(target=target, kind=DecisionKind.SKIPPED, reason=reason)

    @classmethod
    def installed(cls, target: str) -> "ProvisioningDecision":
        return cls(target=target, kind=DecisionKind.INSTALLED)

    @classmethod
    def reinstalled(cls, target: str) -> "ProvisioningDecision":
        return cls(target=target, kind=DecisionKind.REINSTALLED)

    @classmethod
    def failed(cls, target: str, cause: str) -> "ProvisioningDecision":
        return cls(target=target, kind=DecisionKind.FAILED, reason=cause)

    def __str__(self) -> str:
        label = self.kind.value.capitalize()
        return f"{label}({self.reason})" if self.reason else label


class ProbeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool: str
    present: bool
    version: Optional[str] = None


class CredentialReceipt(BaseModel):
    """What the orchestrator keeps after a credential write: no secret."""

    model_config = ConfigDict(frozen=True)

    principal: str
    location: str
    generated: bool


class RunState(str, Enum):
    INIT = "Init"
    PRIVILEGE_CHECK = "PrivilegeCheck"
    DEPENDENCY_CHECK = "DependencyCheck"
    INSTALL = "Install"
    SERVICE_ENABLE = "ServiceEnable"
    CREDENTIAL_BOOTSTRAP = "CredentialBootstrap"
    STACK_START = "StackStart"
    DONE = "Done"
    ABORTED = "Aborted"


class RunReport(BaseModel):
    """Aggregated outcome of one orchestrator run."""

    state: RunState = RunState.INIT
    decisions: List[ProvisioningDecision] = Field(default_factory=list)
    warnings: List[StepResult] = Field(default_factory=list)
    credential: Optional[CredentialReceipt] = None
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    docker_group_changed: bool = False

    @property
    def exit_code(self) -> int:
        return 0 if self.state == RunState.DONE else 1

    def decision_for(self, target: str) -> Optional[ProvisioningDecision]:
        for decision in self.decisions:
            if decision.target == target:
                return decision
        return None
