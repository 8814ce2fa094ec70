# tests/conftest.py
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

from installer.config_models import AppSettings, BootstrapFlags, Context
from installer.prober import DependencyProber
from installer.results import ProbeResult

# Which command a package puts on PATH.
PACKAGE_TOOLS = {
    "docker-ce": "docker",
    "redis-tools": "redis-cli",
    "postgresql-client": "psql",
    "apache2-utils": "htpasswd",
    "redis-server": "redis-server",
    "postgresql-client-common": "pg_lsclusters",
    "postgresql": "pg_ctlcluster",
}

HOST_TOOLING = {"apt-get", "dpkg-query", "systemctl", "usermod"}


class FakeSystem:
    """In-memory host: tools on PATH, installed packages, apt calls."""

    def __init__(
        self,
        tools: Optional[Set[str]] = None,
        packages: Optional[Set[str]] = None,
    ):
        self.tools: Set[str] = set(HOST_TOOLING) | set(tools or ())
        self.packages: Set[str] = set(packages or ())
        self.mutations: List[tuple] = []
        self.call_counts: Dict[str, int] = {}
        # operation -> first call number that fails
        self.fail_from: Dict[str, int] = {}
        # packages whose install leaves the tool missing
        self.broken_packages: Set[str] = set()

    def _call(self, operation: str, *args) -> bool:
        self.call_counts[operation] = self.call_counts.get(operation, 0) + 1
        self.mutations.append((operation,) + args)
        threshold = self.fail_from.get(operation)
        return threshold is None or self.call_counts[operation] < threshold


class FakeApt:
    """Stands in for AptManager, honouring its raise_error contract."""

    def __init__(self, system: FakeSystem):
        self.system = system

    def _result(self, ok: bool, operation: str, raise_error: bool) -> bool:
        if not ok and raise_error:
            raise subprocess.CalledProcessError(100, ["apt-get", operation])
        return ok

    def is_installed(self, pkg_name: str) -> bool:
        return pkg_name in self.system.packages

    def installed_subset(self, packages: List[str]) -> List[str]:
        return [p for p in packages if self.is_installed(p)]

    def update(self, raise_error: bool = False) -> bool:
        return self._result(self.system._call("update"), "update", raise_error)

    def install(self, packages, update_first=False, raise_error=False) -> bool:
        ok = self.system._call("install", tuple(packages))
        if ok:
            for pkg in packages:
                self.system.packages.add(pkg)
                tool = PACKAGE_TOOLS.get(pkg)
                if tool and pkg not in self.system.broken_packages:
                    self.system.tools.add(tool)
        return self._result(ok, "install", raise_error)

    def remove(self, packages, purge=False, raise_error=False) -> bool:
        ok = self.system._call("remove", tuple(packages))
        if ok:
            for pkg in packages:
                self.system.packages.discard(pkg)
                self.system.tools.discard(PACKAGE_TOOLS.get(pkg))
        return self._result(ok, "remove", raise_error)

    def add_repository(self, repo_name, repo_details, raise_error=False) -> bool:
        ok = self.system._call("add_repository", repo_name)
        return self._result(ok, "add_repository", raise_error)

    def add_gpg_key_from_url(self, key_url, keyring_path, raise_error=False) -> bool:
        ok = self.system._call("add_gpg_key_from_url", key_url)
        return self._result(ok, "add_gpg_key_from_url", raise_error)


class FakeProber(DependencyProber):
    """Answers from FakeSystem.tools instead of PATH."""

    def __init__(self, system: FakeSystem, app_settings=None, logger=None):
        super().__init__(app_settings, logger)
        self.system = system
        self.calls: List[str] = []

    def probe(self, tool_name, version_command=None) -> ProbeResult:
        self.calls.append(tool_name)
        if tool_name not in self.system.tools:
            return ProbeResult(tool=tool_name, present=False)
        return ProbeResult(
            tool=tool_name,
            present=True,
            version="1.2.3" if version_command else None,
        )


class FakeHtpasswd:
    """
    run_command side effect that behaves like `htpasswd -B -i [-c] path user`:
    one line per user, replaced in place.
    """

    def __init__(self):
        self.secrets: List[str] = []
        self.commands: List[List[str]] = []

    def __call__(self, command, app_settings=None, **kwargs):
        self.commands.append(list(command))
        self.secrets.append(kwargs.get("cmd_input"))
        path, principal = Path(command[-2]), command[-1]
        lines = []
        if "-c" not in command and path.exists():
            lines = [
                line
                for line in path.read_text(encoding="utf-8").splitlines()
                if not line.startswith(f"{principal}:")
            ]
        lines.append(f"{principal}:$2y$05$hash{len(self.secrets)}")
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return subprocess.CompletedProcess(command, 0, "", "")


@pytest.fixture
def app_settings(tmp_path, monkeypatch):
    for var in ("DEVSTACK_UNATTENDED", "DEVSTACK_LEDGER_DIR", "DEVSTACK_START_STACK"):
        monkeypatch.delenv(var, raising=False)
    return AppSettings(
        ledger_dir=str(tmp_path),
        credential_store_path=str(tmp_path / "nginx" / ".htpasswd"),
        compose_manifest_path=str(tmp_path / "docker-compose.yml"),
    )


@pytest.fixture
def make_context(app_settings):
    def _make(
        flags: Optional[BootstrapFlags] = None,
        is_root: bool = True,
        settings: Optional[AppSettings] = None,
    ) -> Context:
        return Context(
            invoking_user="dev",
            is_root=is_root,
            flags=flags or BootstrapFlags(),
            settings=settings or app_settings,
        )

    return _make


@pytest.fixture
def context(make_context):
    return make_context()


@pytest.fixture
def fake_system():
    return FakeSystem()


@pytest.fixture
def fake_apt(fake_system):
    return FakeApt(fake_system)


@pytest.fixture
def fake_prober(fake_system, app_settings):
    return FakeProber(fake_system, app_settings)


@pytest.fixture
def fake_htpasswd(mocker):
    recorder = FakeHtpasswd()
    mocker.patch(
        "installer.credential_bootstrapper.run_command", side_effect=recorder
    )
    return recorder
