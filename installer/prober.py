# installer/prober.py
# -*- coding: utf-8 -*-
"""
Non-mutating presence and version checks for external tools.
"""

import logging
import os
import re
import subprocess
from typing import Dict, Iterable, List, Optional

from common.command_utils import command_exists, log_message, run_command
from installer.config_models import AppSettings
from installer.errors import ProbeExecutionError
from installer.results import ProbeResult
from installer.targets import InstallTarget

module_logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"\d+(?:\.\d+)+")

# Admin tools (usermod) live here and are run through sudo, but an
# unprivileged $PATH usually omits these directories.
SYSTEM_SBIN_DIRS = ["/usr/local/sbin", "/usr/sbin", "/sbin"]


def tool_search_path() -> str:
    """$PATH extended with the sbin directories it lacks."""
    entries = os.environ.get("PATH", os.defpath).split(os.pathsep)
    entries += [d for d in SYSTEM_SBIN_DIRS if d not in entries]
    return os.pathsep.join(entries)


def parse_version(output: str) -> Optional[str]:
    """First dotted version number in ``output``, e.g. '27.1.1'."""
    match = VERSION_PATTERN.search(output or "")
    return match.group(0) if match else None


class DependencyProber:
    """
    Answers "is this tool installed, and which version?".

    A tool missing from PATH is reported absent. A tool that is on PATH but
    whose version command cannot run raises ProbeExecutionError, so callers
    never mistake a broken probe for "not installed".
    """

    def __init__(
        self,
        app_settings: Optional[AppSettings] = None,
        logger: Optional[logging.Logger] = None,
        timeout: Optional[float] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or module_logger
        if timeout is None and app_settings is not None:
            timeout = app_settings.probe_timeout_seconds
        self.timeout = timeout

    def probe(
        self, tool_name: str, version_command: Optional[List[str]] = None
    ) -> ProbeResult:
        if not command_exists(tool_name, tool_search_path()):
            return ProbeResult(tool=tool_name, present=False)
        if not version_command:
            return ProbeResult(tool=tool_name, present=True)

        try:
            result = run_command(
                version_command,
                self.app_settings,
                check=True,
                capture_output=True,
                current_logger=self.logger,
                timeout=self.timeout,
            )
        except (
            subprocess.CalledProcessError,
            subprocess.TimeoutExpired,
            OSError,
        ) as e:
            raise ProbeExecutionError(
                f"Probe for '{tool_name}' could not run "
                f"`{' '.join(version_command)}`: {e}",
                stage="probe",
            ) from e

        output = f"{result.stdout or ''}\n{result.stderr or ''}"
        return ProbeResult(
            tool=tool_name, present=True, version=parse_version(output)
        )

    def probe_target(self, target: InstallTarget) -> ProbeResult:
        return self.probe(target.probe_tool, target.version_command)

    def probe_all(self, tool_names: Iterable[str]) -> Dict[str, ProbeResult]:
        """Bulk presence check, each result logged."""
        results: Dict[str, ProbeResult] = {}
        symbols = self.app_settings.symbols if self.app_settings else {}
        for tool_name in tool_names:
            probe_result = self.probe(tool_name)
            results[tool_name] = probe_result
            if probe_result.present:
                log_message(
                    f"{symbols.get('success', '✅')} Found required tool '{tool_name}'.",
                    "info",
                    self.logger,
                    self.app_settings,
                )
            else:
                log_message(
                    f"{symbols.get('error', '❌')} Required tool '{tool_name}' is not on PATH.",
                    "error",
                    self.logger,
                    self.app_settings,
                )
        return results
