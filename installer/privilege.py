# installer/privilege.py
# -*- coding: utf-8 -*-
"""
Pre-flight check that the process may mutate system package state.
"""

import logging
import subprocess
from typing import Optional

from common.command_utils import log_message, run_command
from installer.config_models import Context
from installer.errors import ElevatedPrivilegeError

module_logger = logging.getLogger(__name__)

SUDO_CHECK_TIMEOUT_SECONDS = 10


def has_elevated_privileges(
    context: Context, current_logger: Optional[logging.Logger] = None
) -> bool:
    """
    True when running as root, or when sudo works without a password prompt.
    """
    if context.is_root:
        return True
    try:
        run_command(
            ["sudo", "-n", "true"],
            context.settings,
            check=True,
            capture_output=True,
            current_logger=current_logger or module_logger,
            timeout=SUDO_CHECK_TIMEOUT_SECONDS,
        )
        return True
    except (
        subprocess.CalledProcessError,
        subprocess.TimeoutExpired,
        OSError,
    ):
        return False


def require_elevated(
    context: Context, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Raise ElevatedPrivilegeError unless the process can run elevated commands.
    """
    logger_to_use = current_logger or module_logger
    symbols = context.settings.symbols
    if has_elevated_privileges(context, logger_to_use):
        how = "root" if context.is_root else "sudo"
        log_message(
            f"{symbols.get('success', '✅')} Elevated privileges available via {how}.",
            "info",
            logger_to_use,
            context.settings,
        )
        return
    raise ElevatedPrivilegeError(
        "Elevated privileges are required. Re-run as root or with sudo "
        "(passwordless or with cached credentials).",
        stage="PrivilegeCheck",
    )
