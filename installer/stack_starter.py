# installer/stack_starter.py
# -*- coding: utf-8 -*-
"""
Brings up the compose stack once the host is provisioned.
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional

from common.command_utils import log_message, run_elevated_command
from installer.config_models import AppSettings
from installer.errors import StackStartError
from installer.results import StepResult, StepStatus

module_logger = logging.getLogger(__name__)


class StackStarter:
    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or module_logger
        self.symbols = app_settings.symbols

    def start(self, manifest_path: Optional[str] = None) -> StepResult:
        """
        Run ``docker compose -f <manifest> up -d``.

        Raises:
            StackStartError: the manifest is missing or compose failed.
        """
        manifest = Path(manifest_path or self.app_settings.compose_manifest_path)
        if not manifest.is_file():
            raise StackStartError(
                f"Compose manifest not found: {manifest}. Place the stack's "
                "docker-compose.yml there or set compose_manifest_path.",
                stage="StackStart",
            )

        log_message(
            f"{self.symbols.get('rocket', '🚀')} Starting the stack from {manifest}...",
            "info",
            self.logger,
            self.app_settings,
        )
        try:
            run_elevated_command(
                ["docker", "compose", "-f", str(manifest), "up", "-d"],
                self.app_settings,
                capture_output=True,
                current_logger=self.logger,
                cwd=str(manifest.resolve().parent),
            )
        except (subprocess.CalledProcessError, OSError) as e:
            raise StackStartError(
                f"'docker compose up' failed for {manifest}: {e}",
                stage="StackStart",
            ) from e

        log_message(
            f"{self.symbols.get('success', '✅')} Stack started.",
            "info",
            self.logger,
            self.app_settings,
        )
        return StepResult(
            step="stack_start", status=StepStatus.OK, message=str(manifest)
        )
