# installer/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for the bootstrapper configuration.

AppSettings holds the tunable knobs (paths, prompts, optional stages) and is
loaded from model defaults, environment variables, a YAML file and the
command line. BootstrapFlags holds the stage-skip flags parsed from argv.
Context bundles both with the facts about the invoking process and is passed
explicitly to every stage.
"""

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by config file/env/cli) ---
LOG_PREFIX_DEFAULT: str = "[DEVSTACK]"
CREDENTIAL_STORE_PATH_DEFAULT: str = "./nginx/.htpasswd"
CREDENTIAL_PRINCIPAL_DEFAULT: str = "admin"
CREDENTIAL_PROMPT_DEFAULT: str = (
    "Password for the Prometheus proxy user '{principal}' "
    "(leave empty to generate one): "
)
COMPOSE_MANIFEST_PATH_DEFAULT: str = "./docker-compose.yml"
LEDGER_DIR_DEFAULT: str = "."
PROBE_TIMEOUT_SECONDS_DEFAULT: float = 30.0

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
    "key": "🔑",
}


class ServerTargetsSettings(BaseModel):
    """Optional host-level database/cache servers (normally run as containers)."""

    cache: bool = Field(
        default=False, description="Install and start redis-server on the host."
    )
    database: bool = Field(
        default=False, description="Install and start PostgreSQL on the host."
    )


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="DEVSTACK_", env_nested_delimiter="__", extra="ignore"
    )

    log_prefix: str = Field(
        default=LOG_PREFIX_DEFAULT,
        description="Prefix for console log messages.",
    )
    ledger_dir: str = Field(
        default=LEDGER_DIR_DEFAULT,
        description="Directory where setup_<timestamp>.log files are written.",
    )
    credential_store_path: str = Field(
        default=CREDENTIAL_STORE_PATH_DEFAULT,
        description="htpasswd file read by the Prometheus reverse proxy.",
    )
    credential_principal: str = Field(
        default=CREDENTIAL_PRINCIPAL_DEFAULT,
        description="Basic-auth user written to the credential store.",
    )
    credential_prompt: str = Field(
        default=CREDENTIAL_PROMPT_DEFAULT,
        description="Prompt text for the proxy password. Supports {principal}.",
    )
    skip_credentials: bool = Field(
        default=False,
        description="Disable the credential bootstrap stage.",
    )
    compose_manifest_path: str = Field(
        default=COMPOSE_MANIFEST_PATH_DEFAULT,
        description="Operator-supplied service topology consumed by 'docker compose'.",
    )
    start_stack: bool = Field(
        default=False,
        description="Run 'docker compose up -d' after provisioning.",
    )
    unattended: bool = Field(
        default=False,
        description="Decline every reinstall prompt without asking.",
    )
    probe_timeout_seconds: float = Field(
        default=PROBE_TIMEOUT_SECONDS_DEFAULT,
        description="Timeout for version probe commands.",
    )
    servers: ServerTargetsSettings = Field(
        default_factory=ServerTargetsSettings
    )

    symbols: Dict[str, str] = Field(
        default_factory=lambda: dict(SYMBOLS_DEFAULT)
    )


class BootstrapFlags(BaseModel):
    """Stage-skip flags, resolved once from the process arguments."""

    model_config = ConfigDict(frozen=True)

    skip_docker: bool = False
    skip_redis_cli: bool = False
    skip_psql: bool = False


class Context(BaseModel):
    """Immutable per-run context passed to every stage."""

    model_config = ConfigDict(frozen=True)

    invoking_user: str
    is_root: bool
    flags: BootstrapFlags = Field(default_factory=BootstrapFlags)
    settings: AppSettings = Field(default_factory=AppSettings)
