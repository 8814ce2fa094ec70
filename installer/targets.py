# installer/targets.py
# -*- coding: utf-8 -*-
"""
Static install target definitions.

Every dependency the bootstrapper can provision is described by one
InstallTarget; the package installer runs the same probe/install/verify flow
for all of them. Probe and verify use the same command, so a target reported
present always verifies.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReinstallPolicy(str, Enum):
    PROMPT = "prompt"
    NEVER = "never"
    ALWAYS = "always"


class AptRepository(BaseModel):
    """A third-party apt source with its signing key."""

    model_config = ConfigDict(frozen=True)

    name: str
    key_url: str
    keyring_path: str
    uri: str
    components: str = "stable"

    def key_url_for(self, distro_id: str) -> str:
        return self.key_url.format(distro=distro_id)

    def deb822_fields(self, distro_id: str, codename: str) -> Dict[str, str]:
        return {
            "Types": "deb",
            "URIs": self.uri.format(distro=distro_id),
            "Suites": codename,
            "Components": self.components,
            "Signed-By": self.keyring_path,
        }


class InstallTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    probe_tool: str
    version_command: Optional[List[str]] = None
    packages: List[str]
    prerequisite_packages: List[str] = Field(default_factory=list)
    legacy_packages: List[str] = Field(default_factory=list)
    repository: Optional[AptRepository] = None
    admin_group: Optional[str] = None
    service_name: Optional[str] = None
    reinstall_policy: ReinstallPolicy = ReinstallPolicy.PROMPT
    skip_flag: Optional[str] = None


DOCKER_APT_REPOSITORY = AptRepository(
    name="docker",
    key_url="https://download.docker.com/linux/{distro}/gpg",
    keyring_path="/etc/apt/keyrings/docker.asc",
    uri="https://download.docker.com/linux/{distro}",
)

CONTAINER_RUNTIME = InstallTarget(
    name="docker",
    description="Docker Engine and Compose plugin",
    probe_tool="docker",
    version_command=["docker", "--version"],
    packages=[
        "docker-ce",
        "docker-ce-cli",
        "containerd.io",
        "docker-buildx-plugin",
        "docker-compose-plugin",
    ],
    prerequisite_packages=["ca-certificates", "curl", "gnupg"],
    legacy_packages=["docker", "docker-engine", "docker.io", "containerd", "runc"],
    repository=DOCKER_APT_REPOSITORY,
    admin_group="docker",
    service_name="docker",
    skip_flag="skip_docker",
)

CACHE_CLIENT = InstallTarget(
    name="redis-cli",
    description="Redis command-line client",
    probe_tool="redis-cli",
    version_command=["redis-cli", "--version"],
    packages=["redis-tools"],
    skip_flag="skip_redis_cli",
)

DATABASE_CLIENT = InstallTarget(
    name="psql",
    description="PostgreSQL command-line client",
    probe_tool="psql",
    version_command=["psql", "--version"],
    packages=["postgresql-client-common", "postgresql-client"],
    skip_flag="skip_psql",
)

CACHE_SERVER = InstallTarget(
    name="redis-server",
    description="Redis server (host install)",
    probe_tool="redis-server",
    version_command=["redis-server", "--version"],
    packages=["redis-server"],
    service_name="redis-server",
)

DATABASE_SERVER = InstallTarget(
    name="postgresql",
    description="PostgreSQL server (host install)",
    # pg_lsclusters comes with the client; cluster control only with the server.
    probe_tool="pg_ctlcluster",
    packages=["postgresql", "postgresql-contrib"],
    service_name="postgresql",
)

# Auxiliary tool owned by the credential stage, never offered for reinstall.
HTPASSWD_TOOL = InstallTarget(
    name="htpasswd",
    description="Apache htpasswd utility",
    probe_tool="htpasswd",
    version_command=["dpkg-query", "-W", "-f=${Version}", "apache2-utils"],
    packages=["apache2-utils"],
    reinstall_policy=ReinstallPolicy.NEVER,
)

# Tools the bootstrapper itself drives; checked before any target.
BOOTSTRAP_TOOLING: List[str] = ["apt-get", "dpkg-query", "systemctl", "usermod"]

DEFAULT_INSTALL_ORDER: List[InstallTarget] = [
    CONTAINER_RUNTIME,
    CACHE_CLIENT,
    DATABASE_CLIENT,
]


def install_plan(
    include_cache_server: bool = False, include_database_server: bool = False
) -> List[InstallTarget]:
    """Targets in their fixed provisioning order."""
    plan = list(DEFAULT_INSTALL_ORDER)
    if include_cache_server:
        plan.append(CACHE_SERVER)
    if include_database_server:
        plan.append(DATABASE_SERVER)
    return plan
