# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System-level utility functions for the bootstrapper.

This module includes helpers to identify the invoking user and the
distribution, to drive systemd units and to manage group membership.
"""

import getpass
import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, Optional

from common.command_utils import log_message, run_elevated_command
from installer.config_models import SYMBOLS_DEFAULT, AppSettings

module_logger = logging.getLogger(__name__)

OS_RELEASE_PATH = Path("/etc/os-release")


def get_invoking_user() -> str:
    """
    The human user behind this process.

    Under sudo this is SUDO_USER rather than root, so group membership is
    granted to the operator and not to root.
    """
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user and sudo_user != "root":
        return sudo_user
    return getpass.getuser()


def read_os_release(path: Path = OS_RELEASE_PATH) -> Dict[str, str]:
    """Parse /etc/os-release into a dict. Missing file yields {}."""
    values: Dict[str, str] = {}
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        return values
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key] = value.strip().strip('"').strip("'")
    return values


def get_distro_id_and_codename(
    path: Path = OS_RELEASE_PATH,
) -> Optional[Dict[str, str]]:
    """
    Distribution id ('ubuntu', 'debian') and codename ('noble', 'bookworm').

    Returns None when either cannot be determined.
    """
    release = read_os_release(path)
    distro_id = release.get("ID")
    codename = release.get("UBUNTU_CODENAME") or release.get(
        "VERSION_CODENAME"
    )
    if not distro_id or not codename:
        return None
    return {"id": distro_id, "codename": codename}


def systemctl(
    action: str,
    unit: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Run ``systemctl <action> <unit>`` elevated.

    Returns True on success and False on failure; the failure is logged by
    run_command.
    """
    logger_to_use = current_logger if current_logger else module_logger
    try:
        run_elevated_command(
            ["systemctl", action, unit],
            app_settings,
            current_logger=logger_to_use,
        )
        return True
    except (subprocess.CalledProcessError, OSError):
        return False


def add_user_to_group(
    user: str,
    group: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """Append ``user`` to supplementary ``group`` via usermod."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols if app_settings else SYMBOLS_DEFAULT
    log_message(
        f"{symbols.get('gear', '⚙️')} Adding user {user} to '{group}' group...",
        "info",
        logger_to_use,
        app_settings,
    )
    try:
        run_elevated_command(
            ["usermod", "-aG", group, user],
            app_settings,
            current_logger=logger_to_use,
        )
        return True
    except (subprocess.CalledProcessError, OSError):
        return False
