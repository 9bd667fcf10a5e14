"""Entry point for the sshkm CLI."""

import argparse
import logging
import time

from sshkm.agent.types import AgentDescriptor
from sshkm.bootstrap import build_manager, configure_logging
from sshkm.cli.arg_parser import build_parser
from sshkm.cli.commands import (
    cmd_env,
    cmd_list,
    cmd_load,
    cmd_remove,
    cmd_remove_all,
    cmd_scan,
    cmd_status,
)
from sshkm.cli.output import print_error
from sshkm.config.loader import load_config
from sshkm.core.errors import AgentUnavailableError, ConfigError
from sshkm.manager import KeyManager

logger = logging.getLogger(__name__)


def run_command(args: argparse.Namespace, manager: KeyManager) -> int:
    """Dispatch a parsed command. Returns the exit code."""
    inherited = AgentDescriptor.from_environ()
    quiet = args.quiet

    if args.command == "status":
        return cmd_status(manager, inherited, quiet=quiet)
    if args.command == "list":
        return cmd_list(manager, inherited, quiet=quiet)
    if args.command == "scan":
        return cmd_scan(manager, quiet=quiet)
    if args.command == "load":
        return cmd_load(manager, inherited, args.list_file, args.force, quiet=quiet)
    if args.command == "env":
        return cmd_env(manager, inherited, args.shell, quiet=quiet)
    if args.command == "remove":
        return cmd_remove(manager, inherited, args.basename, quiet=quiet)
    if args.command == "remove-all":
        return cmd_remove_all(manager, inherited, args.yes, quiet=quiet)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> None:
    """Entry point for the sshkm CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        raise SystemExit(1)

    started = time.monotonic()
    try:
        config = load_config(args.config)
        configure_logging(config, verbose=args.verbose, quiet=args.quiet, log_dir=args.log_dir)
        logger.debug("Running command: %s", args.command)
        exit_code = run_command(args, build_manager(config))
    except (ConfigError, AgentUnavailableError) as e:
        logger.info("Exiting with error: %s", e.message)
        print_error(e.message)
        exit_code = 1
    except KeyboardInterrupt:
        print_error("Interrupted")
        exit_code = 130
    finally:
        logger.debug("Execution time: %.3fs", time.monotonic() - started)

    raise SystemExit(exit_code)
