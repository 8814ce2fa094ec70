# installer/prompter.py
# -*- coding: utf-8 -*-
"""
Operator interaction.

Stages never call input() directly; they receive a Prompter. CliPrompter talks
to the console, ScriptedPrompter replays canned answers for tests and
non-interactive callers.
"""

import getpass
import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from common.command_utils import log_message
from installer.config_models import SYMBOLS_DEFAULT, AppSettings

module_logger = logging.getLogger(__name__)


class Prompter(ABC):
    @abstractmethod
    def confirm(self, text: str) -> bool:
        """Yes/no question. Anything but an explicit yes is a no."""

    @abstractmethod
    def read_secret(self, text: str) -> str:
        """Read a secret without echoing it. May return ''."""

    @abstractmethod
    def announce_secret(self, principal: str, secret: str) -> None:
        """Show a generated secret to the operator, once, on the console only."""


class CliPrompter(Prompter):
    """
    Console prompter.

    In unattended mode every confirmation is declined without asking and the
    secret prompt returns '' so a password is generated.
    """

    def __init__(
        self,
        app_settings: Optional[AppSettings] = None,
        current_logger: Optional[logging.Logger] = None,
        unattended: bool = False,
    ):
        self.app_settings = app_settings
        self.logger = current_logger or module_logger
        self.unattended = unattended
        self.symbols = (
            app_settings.symbols if app_settings else SYMBOLS_DEFAULT
        )

    def confirm(self, text: str) -> bool:
        if self.unattended:
            log_message(
                f"{self.symbols.get('info', 'ℹ️')} Unattended mode, answering 'N' to: '{text}'",
                "info",
                self.logger,
                self.app_settings,
            )
            return False
        try:
            user_input = (
                input(f"   {self.symbols.get('info', 'ℹ️')} {text} (y/N): ")
                .strip()
                .lower()
            )
        except EOFError:
            log_message(
                f"{self.symbols.get('warning', '!')} No user input (EOF), defaulting to 'N' for prompt: '{text}'",
                "warning",
                self.logger,
                self.app_settings,
            )
            return False
        return user_input in ("y", "yes")

    def read_secret(self, text: str) -> str:
        if self.unattended:
            return ""
        try:
            return getpass.getpass(text)
        except EOFError:
            log_message(
                f"{self.symbols.get('warning', '!')} No input (EOF) for secret prompt, a password will be generated.",
                "warning",
                self.logger,
                self.app_settings,
            )
            return ""

    def announce_secret(self, principal: str, secret: str) -> None:
        # Console only: this line must never reach a logger or the run ledger.
        print(
            f"\n   {self.symbols.get('key', '🔑')} Generated password for '{principal}': {secret}\n"
            "      Record it now, it will not be shown again.\n",
            flush=True,
        )


class ScriptedPrompter(Prompter):
    """Replays pre-recorded answers. Missing answers decline / return ''."""

    def __init__(
        self,
        confirmations: Optional[Iterable[bool]] = None,
        secrets: Optional[Iterable[str]] = None,
    ):
        self._confirmations: List[bool] = list(confirmations or [])
        self._secrets: List[str] = list(secrets or [])
        self.questions: List[str] = []
        self.secret_prompts: List[str] = []
        self.announced: List[str] = []

    def confirm(self, text: str) -> bool:
        self.questions.append(text)
        return self._confirmations.pop(0) if self._confirmations else False

    def read_secret(self, text: str) -> str:
        self.secret_prompts.append(text)
        return self._secrets.pop(0) if self._secrets else ""

    def announce_secret(self, principal: str, secret: str) -> None:
        self.announced.append(secret)
