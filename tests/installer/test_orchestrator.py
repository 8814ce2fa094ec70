# tests/installer/test_orchestrator.py
import logging
from unittest.mock import create_autospec

import pytest

from installer.config_models import BootstrapFlags, ServerTargetsSettings
from installer.credential_bootstrapper import CredentialBootstrapper
from installer.errors import ElevatedPrivilegeError, StackStartError
from installer.orchestrator import NOT_REACHED, Orchestrator
from installer.package_installer import PackageInstaller
from installer.prompter import ScriptedPrompter
from installer.results import RunState, StepResult, StepStatus
from installer.run_ledger import RunLedger
from installer.service_enabler import ServiceEnabler
from installer.stack_starter import StackStarter

DISTRO = {"id": "debian", "codename": "bookworm"}
PROVISIONED_TOOLS = {"docker", "redis-cli", "psql", "htpasswd"}


@pytest.fixture
def run_logger():
    logger = logging.getLogger("tests.orchestrator")
    logger.propagate = False
    logger.setLevel(logging.DEBUG)
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


@pytest.fixture
def mock_service_enabler():
    enabler = create_autospec(ServiceEnabler, instance=True)
    enabler.ensure_running.side_effect = lambda name: StepResult(
        step=f"ensure_running:{name}", status=StepStatus.OK
    )
    return enabler


@pytest.fixture
def mock_stack_starter():
    return create_autospec(StackStarter, instance=True)


@pytest.fixture(autouse=True)
def mock_add_user_to_group(mocker):
    return mocker.patch(
        "installer.package_installer.add_user_to_group", return_value=True
    )


@pytest.fixture
def make_orchestrator(
    make_context,
    fake_prober,
    fake_apt,
    fake_htpasswd,
    mock_service_enabler,
    mock_stack_starter,
    run_logger,
):
    def _make(
        prompter=None,
        flags=None,
        settings=None,
        privilege_check=lambda context, logger: None,
    ):
        context = make_context(flags=flags, settings=settings)
        prompter = prompter or ScriptedPrompter(secrets=["pw"])
        fake_prober.app_settings = context.settings
        package_installer = PackageInstaller(
            context,
            fake_prober,
            prompter,
            service_enabler=mock_service_enabler,
            apt_manager_factory=lambda **kwargs: fake_apt,
            distro_lookup=lambda: DISTRO,
            logger=run_logger,
        )
        return Orchestrator(
            context,
            prompter,
            logger=run_logger,
            prober=fake_prober,
            privilege_check=privilege_check,
            service_enabler=mock_service_enabler,
            package_installer=package_installer,
            credential_bootstrapper=CredentialBootstrapper(
                context, prompter, package_installer, logger=run_logger
            ),
            stack_starter=mock_stack_starter,
        )

    return _make


def decisions(report):
    return {d.target: str(d) for d in report.decisions}


def test_fresh_host_installs_everything(make_orchestrator, fake_system):
    report = make_orchestrator().run()

    assert report.state == RunState.DONE
    assert report.exit_code == 0
    assert decisions(report) == {
        "docker": "Installed",
        "redis-cli": "Installed",
        "psql": "Installed",
        "htpasswd": "Installed",
    }
    assert report.docker_group_changed is True
    assert report.credential.principal == "admin"
    assert report.credential.generated is False


def test_second_run_is_idempotent(
    make_orchestrator, fake_system, mock_service_enabler
):
    fake_system.tools.update(PROVISIONED_TOOLS)

    report = make_orchestrator().run()

    assert report.exit_code == 0
    assert set(decisions(report).values()) == {"Skipped(already present)"}
    assert fake_system.mutations == []
    # The pre-existing docker service is still brought up.
    mock_service_enabler.ensure_running.assert_called_once_with("docker")
    assert report.docker_group_changed is False


def test_privilege_failure_runs_nothing(make_orchestrator, fake_system, fake_prober):
    def deny(context, logger):
        raise ElevatedPrivilegeError("no sudo", stage="PrivilegeCheck")

    report = make_orchestrator(privilege_check=deny).run()

    assert report.exit_code == 1
    assert report.state == RunState.ABORTED
    assert report.failed_stage == "PrivilegeCheck"
    assert fake_prober.calls == []
    assert fake_system.mutations == []
    assert set(decisions(report).values()) == {f"Skipped({NOT_REACHED})"}


def test_skip_flags(make_orchestrator, fake_system):
    flags = BootstrapFlags(skip_docker=True, skip_redis_cli=True)
    fake_system.tools.add("htpasswd")

    report = make_orchestrator(flags=flags).run()

    assert report.exit_code == 0
    assert decisions(report)["docker"] == "Skipped(requested)"
    assert decisions(report)["redis-cli"] == "Skipped(requested)"
    assert decisions(report)["psql"] == "Installed"
    installs = [m[1] for m in fake_system.mutations if m[0] == "install"]
    assert installs == [("postgresql-client-common", "postgresql-client")]


def test_index_refresh_failure_aborts_and_keeps_earlier_decisions(
    make_orchestrator, fake_system, run_logger, tmp_path
):
    ledger = RunLedger(tmp_path / "setup_fail.log")
    run_logger.addHandler(ledger)
    # docker refreshes twice; the third refresh belongs to redis-cli.
    fake_system.fail_from["update"] = 3

    report = make_orchestrator().run()
    ledger.finalize(report.exit_code, run_logger)

    assert report.exit_code == 1
    assert report.failed_stage == "Install"
    assert decisions(report)["docker"] == "Installed"
    assert decisions(report)["redis-cli"].startswith("Failed(")
    assert decisions(report)["psql"] == f"Skipped({NOT_REACHED})"
    assert "htpasswd" not in decisions(report)
    assert ledger.entries[-1].severity == "CRITICAL"
    assert any(
        e.severity == "CRITICAL" and "Install failed" in e.message
        for e in ledger.entries
    )


def test_verification_failure_reason(make_orchestrator, fake_system):
    fake_system.broken_packages.add("postgresql-client")

    report = make_orchestrator().run()

    assert report.exit_code == 1
    assert decisions(report)["psql"] == "Failed(post-install verification failed)"


def test_missing_tooling_aborts_before_install(make_orchestrator, fake_system):
    fake_system.tools.discard("usermod")

    report = make_orchestrator().run()

    assert report.failed_stage == "DependencyCheck"
    assert "usermod" in report.error
    assert fake_system.mutations == []


def test_credential_failure_is_fatal(make_orchestrator, fake_system):
    fake_system.tools.update({"docker", "redis-cli", "psql"})
    fake_system.fail_from["install"] = 1

    report = make_orchestrator().run()

    assert report.failed_stage == "CredentialBootstrap"
    assert decisions(report)["htpasswd"].startswith("Failed(")
    assert report.credential is None


def test_credential_stage_disabled(make_orchestrator, fake_system, fake_htpasswd, app_settings):
    fake_system.tools.update(PROVISIONED_TOOLS)
    settings = app_settings.model_copy(update={"skip_credentials": True})

    report = make_orchestrator(settings=settings).run()

    assert report.exit_code == 0
    assert report.credential is None
    assert fake_htpasswd.commands == []


def test_stack_start_runs_when_enabled(
    make_orchestrator, fake_system, mock_stack_starter, app_settings
):
    fake_system.tools.update(PROVISIONED_TOOLS)
    settings = app_settings.model_copy(update={"start_stack": True})

    report = make_orchestrator(settings=settings).run()

    assert report.exit_code == 0
    mock_stack_starter.start.assert_called_once_with()


def test_stack_start_failure_is_fatal(
    make_orchestrator, fake_system, mock_stack_starter, app_settings
):
    fake_system.tools.update(PROVISIONED_TOOLS)
    mock_stack_starter.start.side_effect = StackStartError(
        "Compose manifest not found", stage="StackStart"
    )
    settings = app_settings.model_copy(update={"start_stack": True})

    report = make_orchestrator(settings=settings).run()

    assert report.exit_code == 1
    assert report.failed_stage == "StackStart"


def test_stack_start_disabled_by_default(
    make_orchestrator, fake_system, mock_stack_starter
):
    fake_system.tools.update(PROVISIONED_TOOLS)

    make_orchestrator().run()

    mock_stack_starter.start.assert_not_called()


def test_optional_server_targets(
    make_orchestrator, fake_system, mock_service_enabler, app_settings
):
    fake_system.tools.update(PROVISIONED_TOOLS)
    settings = app_settings.model_copy(
        update={"servers": ServerTargetsSettings(cache=True, database=True)}
    )

    report = make_orchestrator(settings=settings).run()

    assert decisions(report)["redis-server"] == "Installed"
    assert decisions(report)["postgresql"] == "Installed"
    started = [c.args[0] for c in mock_service_enabler.ensure_running.call_args_list]
    assert "redis-server" in started
    assert "postgresql" in started


def test_generated_secret_not_in_ledger(
    make_orchestrator, fake_system, run_logger, tmp_path, fake_htpasswd
):
    fake_system.tools.update(PROVISIONED_TOOLS)
    ledger = RunLedger(tmp_path / "setup_secret.log")
    run_logger.addHandler(ledger)
    prompter = ScriptedPrompter(secrets=[""])

    report = make_orchestrator(prompter=prompter).run()
    ledger.finalize(report.exit_code, run_logger)

    generated = fake_htpasswd.secrets[0]
    assert report.credential.generated is True
    assert prompter.announced == [generated]
    assert generated not in ledger.path.read_text(encoding="utf-8")


def test_unprivileged_sudo_user_passes_tooling_check(
    monkeypatch, tmp_path, make_context, app_settings, run_logger
):
    for name in ("apt-get", "dpkg-query", "systemctl"):
        tool = tmp_path / "bin" / name
        tool.parent.mkdir(parents=True, exist_ok=True)
        tool.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
        tool.chmod(0o755)
    usermod = tmp_path / "sbin" / "usermod"
    usermod.parent.mkdir(parents=True, exist_ok=True)
    usermod.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    usermod.chmod(0o755)
    monkeypatch.setenv("PATH", str(tmp_path / "bin"))
    monkeypatch.setattr(
        "installer.prober.SYSTEM_SBIN_DIRS", [str(tmp_path / "sbin")]
    )
    settings = app_settings.model_copy(update={"skip_credentials": True})
    context = make_context(
        flags=BootstrapFlags(skip_docker=True, skip_redis_cli=True, skip_psql=True),
        is_root=False,
        settings=settings,
    )
    package_installer = create_autospec(PackageInstaller, instance=True)
    package_installer.warnings = []
    package_installer.groups_changed = []

    report = Orchestrator(
        context,
        ScriptedPrompter(),
        logger=run_logger,
        privilege_check=lambda context, logger: None,
        package_installer=package_installer,
        stack_starter=create_autospec(StackStarter, instance=True),
    ).run()

    assert report.exit_code == 0
    assert report.failed_stage is None
