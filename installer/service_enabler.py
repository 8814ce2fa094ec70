# installer/service_enabler.py
# -*- coding: utf-8 -*-
"""
Brings a systemd service to the enabled-and-running state.
"""

import logging
from typing import List, Optional

from common.command_utils import log_message, run_command
from common.system_utils import systemctl
from installer.config_models import AppSettings
from installer.errors import ServiceError
from installer.results import StepResult, StepStatus

module_logger = logging.getLogger(__name__)


class ServiceEnabler:
    def __init__(
        self,
        app_settings: Optional[AppSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or module_logger
        self.symbols = app_settings.symbols if app_settings else {}

    def _query(self, verb: str, service_name: str) -> bool:
        try:
            result = run_command(
                ["systemctl", verb, "--quiet", service_name],
                self.app_settings,
                check=False,
                capture_output=True,
                current_logger=self.logger,
            )
        except OSError:
            return False
        return result.returncode == 0

    def is_enabled(self, service_name: str) -> bool:
        return self._query("is-enabled", service_name)

    def is_active(self, service_name: str) -> bool:
        return self._query("is-active", service_name)

    def ensure_running(self, service_name: str) -> StepResult:
        """
        Enable ``service_name`` at boot and start it now.

        Both operations are attempted even when the first fails. Operations
        whose state already holds are not repeated.

        Raises:
            ServiceError: listing the operation(s) that failed.
        """
        failed: List[str] = []

        if self.is_enabled(service_name):
            log_message(
                f"{self.symbols.get('info', 'ℹ️')} Service '{service_name}' already enabled at boot.",
                "info",
                self.logger,
                self.app_settings,
            )
        elif not systemctl("enable", service_name, self.app_settings, self.logger):
            failed.append("enable")

        if self.is_active(service_name):
            log_message(
                f"{self.symbols.get('info', 'ℹ️')} Service '{service_name}' already running.",
                "info",
                self.logger,
                self.app_settings,
            )
        elif not systemctl("start", service_name, self.app_settings, self.logger):
            failed.append("start")

        if failed:
            raise ServiceError(service_name, failed, stage="ServiceEnable")

        log_message(
            f"{self.symbols.get('success', '✅')} Service '{service_name}' is enabled and running.",
            "info",
            self.logger,
            self.app_settings,
        )
        return StepResult(
            step=f"ensure_running:{service_name}",
            status=StepStatus.OK,
            message=f"{service_name} enabled and running",
        )
