# installer/orchestrator.py
# -*- coding: utf-8 -*-
"""
Fixed-order provisioning run.

Init -> PrivilegeCheck -> DependencyCheck -> Install -> ServiceEnable
-> CredentialBootstrap -> [StackStart] -> Done, with Aborted reachable from
every stage. A ProvisioningError from any stage stops the run; nothing that
completed before it is rolled back. Disabled stages and flag-skipped targets
are logged, never silently passed over.
"""

import logging
from typing import Callable, List, Optional

from common.command_utils import log_message
from installer.config_models import Context
from installer.credential_bootstrapper import CredentialBootstrapper
from installer.errors import (
    MissingToolingError,
    PostInstallVerificationError,
    ProvisioningError,
)
from installer.package_installer import PackageInstaller
from installer.privilege import require_elevated
from installer.prober import DependencyProber
from installer.prompter import Prompter
from installer.results import (
    SKIP_ALREADY_PRESENT,
    SKIP_REQUESTED,
    VERIFICATION_FAILED,
    DecisionKind,
    ProvisioningDecision,
    RunReport,
    RunState,
)
from installer.service_enabler import ServiceEnabler
from installer.stack_starter import StackStarter
from installer.targets import BOOTSTRAP_TOOLING, InstallTarget, install_plan

module_logger = logging.getLogger(__name__)

NOT_REACHED = "not reached: run aborted"


class Orchestrator:
    def __init__(
        self,
        context: Context,
        prompter: Prompter,
        logger: Optional[logging.Logger] = None,
        prober: Optional[DependencyProber] = None,
        privilege_check: Callable[..., None] = require_elevated,
        service_enabler: Optional[ServiceEnabler] = None,
        package_installer: Optional[PackageInstaller] = None,
        credential_bootstrapper: Optional[CredentialBootstrapper] = None,
        stack_starter: Optional[StackStarter] = None,
    ):
        self.context = context
        self.settings = context.settings
        self.symbols = context.settings.symbols
        self.prompter = prompter
        self.logger = logger or module_logger
        self.privilege_check = privilege_check
        self.prober = prober or DependencyProber(self.settings, self.logger)
        self.service_enabler = service_enabler or ServiceEnabler(
            self.settings, self.logger
        )
        self.package_installer = package_installer or PackageInstaller(
            context,
            self.prober,
            prompter,
            service_enabler=self.service_enabler,
            logger=self.logger,
        )
        self.credential_bootstrapper = (
            credential_bootstrapper
            or CredentialBootstrapper(
                context, prompter, self.package_installer, logger=self.logger
            )
        )
        self.stack_starter = stack_starter or StackStarter(
            self.settings, self.logger
        )
        self.plan: List[InstallTarget] = install_plan(
            include_cache_server=self.settings.servers.cache,
            include_database_server=self.settings.servers.database,
        )

    def _log(self, message: str, level: str = "info") -> None:
        log_message(message, level, self.logger, self.settings)

    def _enter(self, report: RunReport, state: RunState) -> None:
        report.state = state
        self._log(f"{self.symbols.get('step', '➡️')} Stage: {state.value}")

    def _skipped_by_flag(self, target: InstallTarget) -> bool:
        return bool(
            target.skip_flag and getattr(self.context.flags, target.skip_flag)
        )

    def run(self) -> RunReport:
        report = RunReport()
        current: Optional[InstallTarget] = None
        try:
            self._enter(report, RunState.PRIVILEGE_CHECK)
            self.privilege_check(self.context, self.logger)

            self._enter(report, RunState.DEPENDENCY_CHECK)
            self._check_dependencies()

            self._enter(report, RunState.INSTALL)
            for target in self.plan:
                current = target
                report.decisions.append(self._provision(target))
                current = None

            self._enter(report, RunState.SERVICE_ENABLE)
            self._enable_services(report)

            self._enter(report, RunState.CREDENTIAL_BOOTSTRAP)
            self._bootstrap_credential(report)

            self._enter(report, RunState.STACK_START)
            if self.settings.start_stack:
                self.stack_starter.start()
            else:
                self._log(
                    f"{self.symbols.get('info', 'ℹ️')} StackStart stage disabled (start_stack is off)."
                )

            report.state = RunState.DONE
        except ProvisioningError as e:
            report.failed_stage = report.state.value
            report.error = str(e)
            if current is not None:
                cause = (
                    VERIFICATION_FAILED
                    if isinstance(e, PostInstallVerificationError)
                    else str(e)
                )
                report.decisions.append(
                    ProvisioningDecision.failed(current.name, cause)
                )
            for target in self.plan:
                if report.decision_for(target.name) is None:
                    report.decisions.append(
                        ProvisioningDecision.skipped(target.name, NOT_REACHED)
                    )
            self._log(
                f"{self.symbols.get('critical', '🔥')} {report.failed_stage} failed: {e}",
                "critical",
            )
            report.state = RunState.ABORTED
        finally:
            report.warnings = list(self.package_installer.warnings)
            report.docker_group_changed = (
                "docker" in self.package_installer.groups_changed
            )

        self._summarize(report)
        return report

    def _check_dependencies(self) -> None:
        results = self.prober.probe_all(BOOTSTRAP_TOOLING)
        missing = [name for name, r in results.items() if not r.present]
        if missing:
            raise MissingToolingError(missing, stage="DependencyCheck")

        for target in self.plan:
            if self._skipped_by_flag(target):
                continue
            present = self.prober.probe(target.probe_tool).present
            self._log(
                f"{self.symbols.get('info', 'ℹ️')} {target.name}: "
                f"{'present' if present else 'not installed'}."
            )

    def _provision(self, target: InstallTarget) -> ProvisioningDecision:
        if self._skipped_by_flag(target):
            self._log(
                f"{self.symbols.get('info', 'ℹ️')} Skipping {target.name} "
                f"(--{target.skip_flag.replace('_', '-')})."
            )
            return ProvisioningDecision.skipped(target.name, SKIP_REQUESTED)
        return self.package_installer.install(target)

    def _enable_services(self, report: RunReport) -> None:
        # Targets installed this run had their service started by the installer.
        pending = []
        for target in self.plan:
            decision = report.decision_for(target.name)
            if (
                target.service_name
                and decision is not None
                and decision.kind == DecisionKind.SKIPPED
                and decision.reason == SKIP_ALREADY_PRESENT
            ):
                pending.append(target)
        if not pending:
            self._log(
                f"{self.symbols.get('info', 'ℹ️')} No pre-existing services to check."
            )
            return
        for target in pending:
            self.service_enabler.ensure_running(target.service_name)

    def _bootstrap_credential(self, report: RunReport) -> None:
        if self.settings.skip_credentials:
            self._log(
                f"{self.symbols.get('info', 'ℹ️')} CredentialBootstrap stage disabled (skip_credentials is on)."
            )
            return
        principal = self.settings.credential_principal
        try:
            report.credential = self.credential_bootstrapper.bootstrap_credential(
                principal,
                self.settings.credential_prompt.format(principal=principal),
            )
        finally:
            tool_decision = self.credential_bootstrapper.tool_decision
            if tool_decision is not None:
                report.decisions.append(tool_decision)

    def _summarize(self, report: RunReport) -> None:
        self._log(f"{self.symbols.get('info', 'ℹ️')} Provisioning summary:")
        for decision in report.decisions:
            self._log(f"   {decision.target}: {decision}")
        for warning in report.warnings:
            self._log(f"   warning [{warning.step}]: {warning.message}", "warning")
        if report.credential is not None:
            origin = "generated" if report.credential.generated else "supplied"
            self._log(
                f"   credential: '{report.credential.principal}' ({origin}) in {report.credential.location}"
            )
        if report.docker_group_changed:
            self._log(
                f"{self.symbols.get('warning', '⚠️')} Log out and back in (or run 'newgrp docker') "
                f"so {self.context.invoking_user} can use docker without sudo.",
                "warning",
            )
