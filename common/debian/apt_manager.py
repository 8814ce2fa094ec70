# common/debian/apt_manager.py
# -*- coding: utf-8 -*-
import logging
import os
import subprocess
from tempfile import NamedTemporaryFile
from typing import Dict, List, Optional, Union

from common.command_utils import (
    command_exists,
    run_command,
    run_elevated_command,
)
from installer.config_models import AppSettings

SOURCES_DIR = "/etc/apt/sources.list.d"


class AptManager:
    """
    A thin manager for Debian apt packages using the command-line tools.

    Mutating methods return True/False, or re-raise the underlying
    subprocess error when called with ``raise_error=True``.
    """

    def __init__(
        self,
        app_settings: Optional[AppSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initializes the AptManager.

        Args:
            app_settings: The application settings.
            logger: An optional logging object.

        Raises:
            FileNotFoundError: 'apt-get' is not available on this host.
        """
        self.app_settings = app_settings
        self.logger = logger or logging.getLogger(__name__)
        if not command_exists("apt-get"):
            self.logger.critical(
                "'apt-get' command not found. This manager cannot function."
            )
            raise FileNotFoundError(
                "'apt-get' not found. Is this a Debian-based system?"
            )

    def is_installed(self, pkg_name: str) -> bool:
        """Non-mutating dpkg status check for a single package."""
        # dpkg-query exits 1 for packages it has never heard of.
        result = run_command(
            ["dpkg-query", "-W", "-f=${db:Status-Status}", pkg_name],
            self.app_settings,
            capture_output=True,
            check=False,
            current_logger=self.logger,
        )
        return result.returncode == 0 and result.stdout.strip() == "installed"

    def installed_subset(self, packages: List[str]) -> List[str]:
        return [pkg for pkg in packages if self.is_installed(pkg)]

    def update(self, raise_error: bool = False) -> bool:
        """
        Updates the list of available packages using 'apt-get update'.

        Args:
            raise_error: Whether to raise an exception on failure.

        Returns:
            True if successful, False otherwise.
        """
        self.logger.info("Updating apt package lists via 'apt-get update'...")
        try:
            run_elevated_command(
                ["apt-get", "update", "-yq"],
                self.app_settings,
                current_logger=self.logger,
            )
            self.logger.info("Apt package lists updated successfully.")
            return True
        except (subprocess.CalledProcessError, OSError) as e:
            self.logger.error(f"Failed to update apt cache: {e}")
            if raise_error:
                raise
            return False

    def install(
        self,
        packages: Union[List[str], str],
        update_first: bool = False,
        raise_error: bool = False,
    ) -> bool:
        """
        Installs one or more packages using 'apt-get install'.

        Args:
            packages: A single package name or a list of package names.
            update_first: Whether to update the package lists before installing.
            raise_error: Whether to raise an exception on failure.

        Returns:
            True if successful, False otherwise.
        """
        if not isinstance(packages, list):
            packages = [packages]

        if update_first:
            if not self.update(raise_error=raise_error):
                return False

        self.logger.info(f"Committing installation for: {', '.join(packages)}")
        try:
            cmd = ["apt-get", "install", "-yq"] + packages
            run_elevated_command(
                cmd,
                self.app_settings,
                current_logger=self.logger,
            )
            self.logger.info("Packages installed successfully.")
            return True
        except (subprocess.CalledProcessError, OSError) as e:
            self.logger.error(f"Failed to install packages: {e}")
            if raise_error:
                raise
            return False

    def remove(
        self,
        packages: Union[List[str], str],
        purge: bool = False,
        raise_error: bool = False,
    ) -> bool:
        """
        Removes packages using 'apt-get remove' (or 'purge').

        Args:
            packages: A single package name or a list of package names.
            purge: Remove configuration files as well.
            raise_error: Whether to raise an exception on failure.

        Returns:
            True if successful, False otherwise.
        """
        if not isinstance(packages, list):
            packages = [packages]

        action = "purge" if purge else "remove"
        self.logger.info(f"Running apt-get {action} for: {', '.join(packages)}")
        try:
            run_elevated_command(
                ["apt-get", action, "-yq"] + packages,
                self.app_settings,
                current_logger=self.logger,
            )
            self.logger.info(f"Packages {action}d successfully.")
            return True
        except (subprocess.CalledProcessError, OSError) as e:
            self.logger.error(f"Failed to {action} packages: {e}")
            if raise_error:
                raise
            return False

    def add_repository(
        self,
        repo_name: str,
        repo_details: Dict[str, str],
        raise_error: bool = False,
    ) -> bool:
        """
        Adds an apt repository by writing a deb822-style .sources file.

        The package index is not refreshed here; callers refresh once after
        all sources are in place.

        Args:
            repo_name: The name for the repository file.
            repo_details: The deb822 fields of the repository.
            raise_error: Whether to raise an exception on failure.

        Returns:
            True if successful, False otherwise.
        """
        self.logger.info(
            f"Adding repository '{repo_name}' using deb822 format..."
        )
        repo_file_path = os.path.join(SOURCES_DIR, f"{repo_name}.sources")
        deb822_content = "".join(
            f"{key}: {value}\n" for key, value in repo_details.items()
        )

        try:
            with NamedTemporaryFile(
                "w", suffix=".sources", delete=False, encoding="utf-8"
            ) as tmp:
                tmp.write(deb822_content)
                tmp_path = tmp.name

            run_elevated_command(
                ["install", "-m", "0644", tmp_path, repo_file_path],
                self.app_settings,
                current_logger=self.logger,
            )
            os.unlink(tmp_path)
            self.logger.info(
                f"Successfully created repository file: {repo_file_path}"
            )
            return True
        except (subprocess.CalledProcessError, OSError) as e:
            self.logger.error(
                f"Failed to create repository file '{repo_file_path}': {e}"
            )
            if raise_error:
                raise
            return False

    def add_gpg_key_from_url(
        self, key_url: str, keyring_path: str, raise_error: bool = False
    ) -> bool:
        """
        Downloads a GPG key from a URL and saves it to a specified keyring.

        Requires curl and ca-certificates to be installed already.

        Args:
            key_url: The URL of the GPG key.
            keyring_path: The path to save the keyring file.
            raise_error: Whether to raise an exception on failure.

        Returns:
            True if successful, False otherwise.
        """
        self.logger.info(f"Adding GPG key from {key_url} to {keyring_path}")
        keyring_dir = os.path.dirname(keyring_path)

        try:
            run_elevated_command(
                ["install", "-m", "0755", "-d", keyring_dir],
                self.app_settings,
                current_logger=self.logger,
            )
            run_elevated_command(
                ["curl", "-fsSL", key_url, "-o", keyring_path],
                self.app_settings,
                current_logger=self.logger,
            )
            run_elevated_command(
                ["chmod", "a+r", keyring_path],
                self.app_settings,
                current_logger=self.logger,
            )
            self.logger.info("GPG key added and permissions set.")
            return True
        except (subprocess.CalledProcessError, OSError) as e:
            self.logger.error(f"Failed to add GPG key: {e}")
            if raise_error:
                raise
            return False
