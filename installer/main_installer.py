# installer/main_installer.py
# -*- coding: utf-8 -*-
"""
Main entry point for the dev stack bootstrapper.
Handles argument parsing, configuration loading and logging setup, then runs
the provisioning stages and turns the outcome into an exit status.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from pydantic import ValidationError

from common.command_utils import log_message
from common.core_utils import setup_logging
from common.system_utils import get_invoking_user
from installer.config_loader import load_app_settings
from installer.config_models import BootstrapFlags, Context
from installer.orchestrator import Orchestrator
from installer.prompter import CliPrompter
from installer.run_ledger import RunLedger

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Dev stack bootstrapper: installs Docker, redis-cli and psql, "
        "and writes the Prometheus proxy credential.",
        epilog="Example: sudo python3 -m installer --skip-psql",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        add_help=False,
        # Unknown options are ignored, so prefixes must not match known ones.
        allow_abbrev=False,
    )
    parser.add_argument(
        "-h",
        "--help",
        action="help",
        default=argparse.SUPPRESS,
        help="Show this help message and exit.",
    )
    skip_group = parser.add_argument_group("Stage Flags")
    skip_group.add_argument(
        "--skip-docker",
        action="store_true",
        help="Do not install or reinstall Docker.",
    )
    skip_group.add_argument(
        "--skip-redis-cli",
        action="store_true",
        help="Do not install or reinstall the Redis client.",
    )
    skip_group.add_argument(
        "--skip-psql",
        action="store_true",
        help="Do not install or reinstall the PostgreSQL client.",
    )
    config_group = parser.add_argument_group(
        "Configuration Overrides (CLI > YAML > ENV > Defaults)"
    )
    config_group.add_argument(
        "--config",
        default="config.yaml",
        help="Path to YAML configuration file.",
    )
    config_group.add_argument(
        "--unattended",
        action="store_true",
        help="Answer 'no' to every reinstall prompt and generate the proxy password.",
    )
    config_group.add_argument(
        "--log-prefix",
        default=None,
        help="Prefix for console log lines.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug output on the console.",
    )
    return parser


def main(cli_args_list: Optional[List[str]] = None) -> int:
    parser = build_parser()
    parsed_cli_args, unknown_args = parser.parse_known_args(cli_args_list)

    flags = BootstrapFlags(
        skip_docker=parsed_cli_args.skip_docker,
        skip_redis_cli=parsed_cli_args.skip_redis_cli,
        skip_psql=parsed_cli_args.skip_psql,
    )

    try:
        app_settings = load_app_settings(parsed_cli_args, parsed_cli_args.config)
    except ValidationError as e:
        print(
            f"CRITICAL: Failed to load or validate application configuration: {e}",
            file=sys.stderr,
        )
        return 1

    try:
        ledger = RunLedger.open_for_run(app_settings.ledger_dir)
    except OSError as e:
        print(
            f"CRITICAL: Cannot create the run ledger in '{app_settings.ledger_dir}': {e}",
            file=sys.stderr,
        )
        return 1

    setup_logging(
        log_level=logging.DEBUG if parsed_cli_args.verbose else logging.INFO,
        log_to_console=True,
        log_prefix=app_settings.log_prefix,
        extra_handlers=[ledger],
        symbols=app_settings.symbols,
    )
    log_message(
        f"{app_settings.symbols.get('info', 'ℹ️')} Run ledger: {ledger.path}",
        "info",
        logger,
        app_settings,
    )
    if unknown_args:
        log_message(
            f"Ignoring unrecognized arguments: {' '.join(unknown_args)}",
            "debug",
            logger,
            app_settings,
        )

    context = Context(
        invoking_user=get_invoking_user(),
        is_root=os.geteuid() == 0,
        flags=flags,
        settings=app_settings,
    )
    prompter = CliPrompter(
        app_settings, logger, unattended=app_settings.unattended
    )

    try:
        report = Orchestrator(context, prompter, logger).run()
        exit_code = report.exit_code
    except KeyboardInterrupt:
        log_message(
            f"{app_settings.symbols.get('critical', '🔥')} Interrupted by operator. "
            "Package state is whatever apt left behind; re-run to converge.",
            "critical",
            logger,
            app_settings,
        )
        exit_code = EXIT_INTERRUPTED

    if exit_code == 0:
        log_message(
            f"{app_settings.symbols.get('sparkles', '✨')} Dev stack provisioning completed.",
            "info",
            logger,
            app_settings,
        )
    ledger.finalize(exit_code, logger)
    logging.getLogger().removeHandler(ledger)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
