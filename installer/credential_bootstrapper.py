# installer/credential_bootstrapper.py
# -*- coding: utf-8 -*-
"""
Basic-auth credential for the Prometheus reverse proxy.

The secret is read from the operator (echo off) or generated, then written to
the htpasswd file nginx mounts. Hashing is delegated to the htpasswd tool,
which receives the secret on stdin only. The plaintext never reaches a logger
or the run ledger; a generated password is shown once on the console.
"""

import logging
import os
import secrets
import string
import subprocess
from pathlib import Path
from typing import List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    SecretStr,
    ValidationError,
    field_validator,
)

from common.command_utils import log_message, run_command
from installer.config_models import AppSettings, Context
from installer.errors import CredentialStoreWriteError, ProvisioningError
from installer.package_installer import PackageInstaller
from installer.prompter import Prompter
from installer.results import CredentialReceipt, ProvisioningDecision
from installer.targets import HTPASSWD_TOOL

module_logger = logging.getLogger(__name__)

# No quotes, backslash, '$', backtick, whitespace, '/', globbing or control
# operators: the value is pasted into shells and compose files downstream.
PASSWORD_PUNCTUATION = "!#%+,-.:=@^_~"
PASSWORD_ALPHABET = (
    string.ascii_uppercase
    + string.ascii_lowercase
    + string.digits
    + PASSWORD_PUNCTUATION
)
GENERATED_PASSWORD_LENGTH = 16
CREDENTIAL_STORE_MODE = 0o640


def generate_password(
    length: int = GENERATED_PASSWORD_LENGTH, alphabet: str = PASSWORD_ALPHABET
) -> str:
    if length < 1:
        raise ValueError("Password length must be at least 1")
    return "".join(secrets.choice(alphabet) for _ in range(length))


class Credential(BaseModel):
    model_config = ConfigDict(frozen=True)

    principal: str
    secret: SecretStr
    location: str

    @field_validator("principal")
    @classmethod
    def _principal_is_valid(cls, value: str) -> str:
        if not value or ":" in value:
            raise ValueError("principal must be non-empty and contain no ':'")
        return value

    @field_validator("secret")
    @classmethod
    def _secret_not_empty(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("secret must not be empty")
        return value


class HtpasswdStore:
    """
    The htpasswd file read by the reverse proxy.

    ``write`` replaces any existing line for the principal (htpasswd updates
    in place) or creates the file, then restricts it to owner/group read.
    """

    def __init__(
        self,
        path: str,
        app_settings: Optional[AppSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.path = Path(path)
        self.app_settings = app_settings
        self.logger = logger or module_logger

    def principals(self) -> List[str]:
        if not self.path.is_file():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            return [
                line.split(":", 1)[0]
                for line in f.read().splitlines()
                if ":" in line
            ]

    def write(self, credential: Credential) -> None:
        try:
            action = (
                "Replacing"
                if credential.principal in self.principals()
                else "Adding"
            )
            log_message(
                f"{action} credential for "
                f"'{credential.principal}' in {self.path}.",
                "info",
                self.logger,
                self.app_settings,
            )
            self.path.parent.mkdir(parents=True, exist_ok=True)
            command = ["htpasswd", "-B", "-i"]
            if not self.path.exists():
                command.append("-c")
            command += [str(self.path), credential.principal]
            run_command(
                command,
                self.app_settings,
                check=True,
                capture_output=True,
                cmd_input=credential.secret.get_secret_value(),
                current_logger=self.logger,
                log_input=False,
            )
            os.chmod(self.path, CREDENTIAL_STORE_MODE)
        except (subprocess.CalledProcessError, OSError) as e:
            raise CredentialStoreWriteError(
                f"Could not write credential for '{credential.principal}' "
                f"to {self.path}: {e}",
                stage="CredentialBootstrap",
            ) from e


class CredentialBootstrapper:
    def __init__(
        self,
        context: Context,
        prompter: Prompter,
        package_installer: PackageInstaller,
        store: Optional[HtpasswdStore] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.context = context
        self.settings = context.settings
        self.prompter = prompter
        self.package_installer = package_installer
        self.logger = logger or module_logger
        self.store = store or HtpasswdStore(
            self.settings.credential_store_path, self.settings, self.logger
        )
        self.tool_decision: Optional[ProvisioningDecision] = None

    def _ensure_tool(self) -> None:
        try:
            self.tool_decision = self.package_installer.install(HTPASSWD_TOOL)
        except ProvisioningError as e:
            self.tool_decision = ProvisioningDecision.failed(
                HTPASSWD_TOOL.name, str(e)
            )
            raise CredentialStoreWriteError(
                f"htpasswd is unavailable, the proxy credential cannot be written: {e}",
                stage="CredentialBootstrap",
            ) from e

    def bootstrap_credential(
        self, principal: str, prompt_text: str
    ) -> CredentialReceipt:
        """
        Obtain or generate the secret for ``principal`` and store it.

        Raises:
            CredentialStoreWriteError: the tool is missing or the write failed.
        """
        symbols = self.settings.symbols
        self._ensure_tool()

        supplied = self.prompter.read_secret(prompt_text)
        generated = not supplied
        if generated:
            log_message(
                f"{symbols.get('key', '🔑')} Empty password supplied for '{principal}', generating one.",
                "info",
                self.logger,
                self.settings,
            )
            supplied = generate_password()

        try:
            credential = Credential(
                principal=principal,
                secret=SecretStr(supplied),
                location=str(self.store.path),
            )
        except ValidationError as e:
            raise CredentialStoreWriteError(
                f"Invalid credential for '{principal}': {e.errors()[0]['msg']}",
                stage="CredentialBootstrap",
            ) from e
        del supplied
        self.store.write(credential)

        log_message(
            f"{symbols.get('success', '✅')} Credential for '{principal}' written to {self.store.path} "
            f"(mode {oct(CREDENTIAL_STORE_MODE)}).",
            "info",
            self.logger,
            self.settings,
        )
        if generated:
            # Announced only after the hash is on disk.
            self.prompter.announce_secret(
                principal, credential.secret.get_secret_value()
            )
        return CredentialReceipt(
            principal=principal,
            location=credential.location,
            generated=generated,
        )
