#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Core utility functions for the project.

This module provides the logging setup shared by the bootstrapper entry point
and its tests.
"""

import logging
import sys
from typing import Dict, Iterable, List, Optional

from installer.config_models import SYMBOLS_DEFAULT

module_logger = logging.getLogger(__name__)

SIMPLE_LOG_FORMAT_WITH_PREFIX_PLACEHOLDER = (
    "{log_prefix}%(asctime)s - %(levelname)s - %(symbol)s %(message)s"
)
SIMPLE_LOG_FORMAT_NO_PREFIX = "%(asctime)s - %(levelname)s - %(symbol)s %(message)s"


class SymbolFormatter(logging.Formatter):
    """
    A custom formatter that adds symbols to log messages based on the log level.
    """

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        style: str = "%",
        validate: bool = True,
        symbols: Optional[Dict[str, str]] = None,
    ):
        super().__init__(fmt, datefmt, style, validate)
        self.symbols = symbols or SYMBOLS_DEFAULT

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno == logging.DEBUG:
            record.symbol = self.symbols.get("debug", "🐛")
        elif record.levelno == logging.INFO:
            record.symbol = self.symbols.get("info", "ℹ️")
        elif record.levelno == logging.WARNING:
            record.symbol = self.symbols.get("warning", "⚠️")
        elif record.levelno == logging.ERROR:
            record.symbol = self.symbols.get("error", "❌")
        elif record.levelno == logging.CRITICAL:
            record.symbol = self.symbols.get("critical", "🔥")
        else:
            record.symbol = ""

        return super().format(record)


def setup_logging(
    log_level: int = logging.INFO,
    log_to_console: bool = True,
    log_prefix: Optional[str] = None,
    extra_handlers: Optional[Iterable[logging.Handler]] = None,
    symbols: Optional[Dict[str, str]] = None,
) -> None:
    """
    Configures the root logger.

    The console handler is filtered at ``log_level``. Handlers passed in
    ``extra_handlers`` (the run ledger) keep their own level and formatter, so
    they can record debug detail the console hides. The root logger itself is
    opened to the lowest level any handler asks for.

    Parameters:
    log_level: int
        Console logging level. Defaults to logging.INFO.
    log_to_console: bool
        Whether to log to the console (stdout). Defaults to True.
    log_prefix: Optional[str]
        Optional prefix prepended to console lines.
    extra_handlers: Optional[Iterable[logging.Handler]]
        Additional handlers to attach to the root logger.
    symbols: Optional[Dict[str, str]]
        Level symbols for the console formatter.

    Returns:
    None
    """
    handlers: List[logging.Handler] = []

    actual_prefix = (
        (log_prefix.strip() + " ")
        if log_prefix and log_prefix.strip()
        else ""
    )
    if actual_prefix:
        final_format_str = SIMPLE_LOG_FORMAT_WITH_PREFIX_PLACEHOLDER.format(
            log_prefix=actual_prefix
        )
    else:
        final_format_str = SIMPLE_LOG_FORMAT_NO_PREFIX

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(
            SymbolFormatter(
                fmt=final_format_str,
                datefmt="%Y-%m-%d %H:%M:%S",
                symbols=symbols,
            )
        )
        handlers.append(console_handler)

    extra = list(extra_handlers or [])
    handlers.extend(extra)

    if not handlers:  # pragma: no cover
        handlers.append(logging.StreamHandler(sys.stdout))

    root_logger = logging.getLogger()
    root_level = min([log_level] + [h.level or logging.DEBUG for h in extra])
    root_logger.setLevel(root_level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    for handler in handlers:
        root_logger.addHandler(handler)

    module_logger.debug(
        f"Logging configured. Console level: {logging.getLevelName(log_level)}."
    )
