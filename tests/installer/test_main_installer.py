# tests/installer/test_main_installer.py
import logging

import pytest

from installer.main_installer import EXIT_INTERRUPTED, build_parser, main
from installer.results import RunReport, RunState


@pytest.fixture(autouse=True)
def restore_root_logger(monkeypatch):
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    for var in ("DEVSTACK_LEDGER_DIR", "DEVSTACK_UNATTENDED"):
        monkeypatch.delenv(var, raising=False)
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(f"ledger_dir: '{tmp_path / 'logs'}'\n", encoding="utf-8")
    return str(path)


@pytest.fixture
def mock_orchestrator(mocker):
    mocker.patch(
        "installer.main_installer.get_invoking_user", return_value="dev"
    )
    orchestrator_cls = mocker.patch("installer.main_installer.Orchestrator")
    orchestrator_cls.return_value.run.return_value = RunReport(
        state=RunState.DONE
    )
    return orchestrator_cls


def ledger_lines(tmp_path):
    (ledger,) = (tmp_path / "logs").glob("setup_*.log")
    return ledger.read_text(encoding="utf-8").splitlines()


def test_parser_flags():
    args, unknown = build_parser().parse_known_args(
        ["--skip-docker", "--skip-psql", "--bogus"]
    )

    assert args.skip_docker is True
    assert args.skip_redis_cli is False
    assert args.skip_psql is True
    assert unknown == ["--bogus"]


def test_help_exits_zero(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--help"])

    assert excinfo.value.code == 0
    assert "--skip-redis-cli" in capsys.readouterr().out


def test_success(mock_orchestrator, config_file, tmp_path):
    assert main(["--config", config_file, "--skip-redis-cli"]) == 0

    context = mock_orchestrator.call_args[0][0]
    assert context.flags.skip_redis_cli is True
    assert context.flags.skip_docker is False
    assert context.invoking_user == "dev"
    assert ledger_lines(tmp_path)[-1].endswith(
        "[INFO] Run finished successfully (exit status 0)."
    )


def test_unattended_reaches_prompter(mock_orchestrator, config_file):
    main(["--config", config_file, "--unattended"])

    prompter = mock_orchestrator.call_args[0][1]
    assert prompter.unattended is True


def test_fatal_run_exits_one(mock_orchestrator, config_file, tmp_path):
    mock_orchestrator.return_value.run.return_value = RunReport(
        state=RunState.ABORTED, failed_stage="Install"
    )

    assert main(["--config", config_file]) == 1
    assert "[CRITICAL] Run aborted (exit status 1)." in ledger_lines(tmp_path)[-1]


def test_interrupt_exits_130(mock_orchestrator, config_file, tmp_path):
    mock_orchestrator.return_value.run.side_effect = KeyboardInterrupt

    assert main(["--config", config_file]) == EXIT_INTERRUPTED
    assert ledger_lines(tmp_path)[-1].endswith(
        f"Run aborted (exit status {EXIT_INTERRUPTED})."
    )


def test_unknown_arguments_are_ignored(mock_orchestrator, config_file):
    assert main(["--config", config_file, "--frobnicate"]) == 0


def test_ambiguous_prefix_is_ignored(mock_orchestrator, config_file):
    assert main(["--config", config_file, "--skip"]) == 0


def test_prefix_of_known_flag_does_not_set_it(mock_orchestrator, config_file):
    assert main(["--config", config_file, "--skip-d"]) == 0

    context = mock_orchestrator.call_args[0][0]
    assert context.flags.skip_docker is False


def test_parser_keeps_prefixes_unknown():
    args, unknown = build_parser().parse_known_args(["--skip-d", "--unatt"])

    assert args.skip_docker is False
    assert args.unattended is False
    assert unknown == ["--skip-d", "--unatt"]


def test_invalid_config_exits_one(tmp_path, capsys):
    path = tmp_path / "config.yaml"
    path.write_text("probe_timeout_seconds: soon\n", encoding="utf-8")

    assert main(["--config", str(path)]) == 1
    assert "CRITICAL" in capsys.readouterr().err
