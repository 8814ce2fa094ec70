# installer/package_installer.py
# -*- coding: utf-8 -*-
"""
Idempotent install-or-skip-or-reinstall flow shared by every install target.

For each target:
1. Probe. Absent targets go straight to the install path.
2. Present targets are reported with their version and, per the target's
   reinstall policy, the operator is asked whether to reinstall. Declining
   returns Skipped("already present") without touching the system.
3. Install path: best-effort removal of conflicting legacy packages
   (warnings only), removal of the target's own packages on reinstall,
   repository/key setup when the target needs one, index refresh, install.
   Every step after the legacy removal is fatal on failure.
4. Group membership for the invoking user (warning on failure) and service
   enablement for daemon targets.
5. Re-probe. Still absent means the run aborts.

A reinstall is always remove-then-fresh-install, never an in-place upgrade.
"""

import logging
import subprocess
from typing import Callable, Dict, List, Optional

from common.command_utils import log_message
from common.debian.apt_manager import AptManager
from common.system_utils import add_user_to_group, get_distro_id_and_codename
from installer.config_models import Context
from installer.errors import (
    PackageOperationError,
    PostInstallVerificationError,
)
from installer.prober import DependencyProber
from installer.prompter import Prompter
from installer.results import (
    SKIP_ALREADY_PRESENT,
    VERIFICATION_FAILED,
    ProvisioningDecision,
    StepResult,
    StepStatus,
)
from installer.service_enabler import ServiceEnabler
from installer.targets import InstallTarget, ReinstallPolicy

module_logger = logging.getLogger(__name__)


class PackageInstaller:
    def __init__(
        self,
        context: Context,
        prober: DependencyProber,
        prompter: Prompter,
        service_enabler: Optional[ServiceEnabler] = None,
        apt_manager_factory: Callable[..., AptManager] = AptManager,
        distro_lookup: Callable[[], Optional[Dict[str, str]]] = get_distro_id_and_codename,
        logger: Optional[logging.Logger] = None,
    ):
        self.context = context
        self.settings = context.settings
        self.symbols = context.settings.symbols
        self.prober = prober
        self.prompter = prompter
        self.service_enabler = service_enabler
        self.logger = logger or module_logger
        self._apt_manager_factory = apt_manager_factory
        self._distro_lookup = distro_lookup
        self._apt: Optional[AptManager] = None
        self.step_results: List[StepResult] = []
        self.groups_changed: List[str] = []

    @property
    def apt(self) -> AptManager:
        if self._apt is None:
            try:
                self._apt = self._apt_manager_factory(
                    app_settings=self.settings, logger=self.logger
                )
            except FileNotFoundError as e:
                raise PackageOperationError(str(e), stage="Install") from e
        return self._apt

    @property
    def warnings(self) -> List[StepResult]:
        return [r for r in self.step_results if r.status == StepStatus.WARNING]

    def _log(self, message: str, level: str = "info") -> None:
        log_message(message, level, self.logger, self.settings)

    def _warn(self, step: str, message: str) -> StepResult:
        self._log(f"{self.symbols.get('warning', '⚠️')} {message}", "warning")
        result = StepResult(step=step, status=StepStatus.WARNING, message=message)
        self.step_results.append(result)
        return result

    def _ok(self, step: str, message: str = "") -> StepResult:
        result = StepResult(step=step, status=StepStatus.OK, message=message)
        self.step_results.append(result)
        return result

    def _fatal(
        self, target: InstallTarget, step: str, message: str
    ) -> PackageOperationError:
        self.step_results.append(
            StepResult(
                step=f"{target.name}:{step}",
                status=StepStatus.FATAL,
                message=message,
            )
        )
        return PackageOperationError(message, stage=target.name)

    def _fatal_step(
        self, target: InstallTarget, step: str, operation: Callable[[], bool]
    ) -> StepResult:
        try:
            succeeded = operation()
        except (subprocess.CalledProcessError, OSError) as e:
            raise self._fatal(
                target, step, f"{target.name}: {step} failed: {e}"
            ) from e
        if succeeded is False:
            raise self._fatal(target, step, f"{target.name}: {step} failed")
        return self._ok(f"{target.name}:{step}")

    def _wants_reinstall(
        self, target: InstallTarget, policy: ReinstallPolicy, version: str
    ) -> bool:
        if policy == ReinstallPolicy.NEVER:
            return False
        if policy == ReinstallPolicy.ALWAYS:
            return True
        return self.prompter.confirm(
            f"{target.description} is already installed ({version}). "
            "Remove it and install a fresh copy?"
        )

    def install(
        self,
        target: InstallTarget,
        reinstall_policy: Optional[ReinstallPolicy] = None,
    ) -> ProvisioningDecision:
        """
        Run the probe/install/verify flow for ``target``.

        Raises:
            ProbeExecutionError: the probe itself could not run.
            PackageOperationError: repository setup, index refresh, removal or
                install failed.
            PostInstallVerificationError: the target is still absent after
                installing.
            ServiceError: the target's service could not be enabled/started.
        """
        policy = reinstall_policy or target.reinstall_policy
        self._log(
            f"{self.symbols.get('step', '➡️')} Checking {target.description} ({target.name})..."
        )
        probe = self.prober.probe_target(target)
        reinstall = False

        if probe.present:
            version = probe.version or "version unknown"
            self._log(
                f"{self.symbols.get('info', 'ℹ️')} {target.name} is already installed: {version}."
            )
            if not self._wants_reinstall(target, policy, version):
                self._log(
                    f"{self.symbols.get('info', 'ℹ️')} Keeping the installed {target.name}; nothing to do."
                )
                return ProvisioningDecision.skipped(
                    target.name, SKIP_ALREADY_PRESENT
                )
            reinstall = True
            self._log(
                f"{self.symbols.get('info', 'ℹ️')} Reinstalling {target.name} from scratch."
            )
        else:
            self._log(
                f"{self.symbols.get('package', '📦')} {target.name} not found, installing {', '.join(target.packages)}."
            )

        self._remove_legacy_packages(target)
        if reinstall:
            self._fatal_step(
                target,
                "removal of installed packages",
                lambda: self.apt.remove(target.packages, raise_error=True),
            )
        self._prepare_sources(target)
        self._fatal_step(
            target,
            "package index refresh",
            lambda: self.apt.update(raise_error=True),
        )
        self._fatal_step(
            target,
            "package installation",
            lambda: self.apt.install(target.packages, raise_error=True),
        )

        if target.admin_group:
            self._grant_group(target.admin_group)
        if target.service_name and self.service_enabler is not None:
            self.service_enabler.ensure_running(target.service_name)

        verify = self.prober.probe_target(target)
        if not verify.present:
            raise PostInstallVerificationError(
                f"{target.name}: {VERIFICATION_FAILED}", stage=target.name
            )

        self._log(
            f"{self.symbols.get('success', '✅')} {target.name} installed ({verify.version or 'version unknown'})."
        )
        if reinstall:
            return ProvisioningDecision.reinstalled(target.name)
        return ProvisioningDecision.installed(target.name)

    def _remove_legacy_packages(self, target: InstallTarget) -> None:
        if not target.legacy_packages:
            return
        step = f"{target.name}:legacy-removal"
        try:
            installed = self.apt.installed_subset(target.legacy_packages)
        except OSError as e:
            self._warn(step, f"Could not check for legacy packages: {e}")
            return
        if not installed:
            self._ok(step, "no legacy packages installed")
            return
        if self.apt.remove(installed):
            self._ok(step, f"removed {', '.join(installed)}")
        else:
            self._warn(
                step,
                f"Could not remove legacy packages {', '.join(installed)}; continuing.",
            )

    def _prepare_sources(self, target: InstallTarget) -> None:
        if not target.prerequisite_packages and target.repository is None:
            return

        self._fatal_step(
            target,
            "package index refresh",
            lambda: self.apt.update(raise_error=True),
        )
        if target.prerequisite_packages:
            self._fatal_step(
                target,
                "prerequisite installation",
                lambda: self.apt.install(
                    target.prerequisite_packages, raise_error=True
                ),
            )

        repository = target.repository
        if repository is None:
            return
        distro = self._distro_lookup()
        if not distro:
            raise self._fatal(
                target,
                "distribution lookup",
                f"{target.name}: could not determine distribution id/codename "
                "from /etc/os-release for the apt repository.",
            )
        self._fatal_step(
            target,
            "repository key download",
            lambda: self.apt.add_gpg_key_from_url(
                repository.key_url_for(distro["id"]),
                repository.keyring_path,
                raise_error=True,
            ),
        )
        self._fatal_step(
            target,
            "repository setup",
            lambda: self.apt.add_repository(
                repository.name,
                repository.deb822_fields(distro["id"], distro["codename"]),
                raise_error=True,
            ),
        )

    def _grant_group(self, group: str) -> None:
        user = self.context.invoking_user
        step = f"group:{group}"
        if add_user_to_group(user, group, self.settings, self.logger):
            self.groups_changed.append(group)
            self._ok(step, f"{user} added to {group}")
            self._log(
                f"{self.symbols.get('success', '✅')} User {user} added to '{group}' group."
            )
        else:
            self._warn(
                step,
                f"Could not add user {user} to '{group}' group; "
                f"'{group}' commands will need sudo.",
            )
