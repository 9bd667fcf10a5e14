"""Argument parsing for the sshkm CLI."""

import argparse
from pathlib import Path

from sshkm import __version__


def build_parser() -> argparse.ArgumentParser:
    """Build the sshkm argument parser."""
    parser = argparse.ArgumentParser(
        prog="sshkm",
        description="Keep one ssh-agent per login and its keys in sync with ~/.ssh",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log debug detail to the log file",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only print errors",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file (default: ~/.sshkm/config.json if present)",
    )
    parser.add_argument(
        "--log-dir",
        dest="log_dir",
        type=Path,
        default=None,
        help="Directory for sshkm.log (overrides config and SKM_LOG_DIR)",
    )

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser(
        "status",
        help="Report the running agent without starting one",
    )
    subparsers.add_parser(
        "list",
        help="List identities loaded in the agent",
    )
    subparsers.add_parser(
        "scan",
        help="Scan the key directory and refresh the manifest",
    )

    load_parser = subparsers.add_parser(
        "load",
        help="Start the agent if needed and load keys that are missing",
    )
    load_parser.add_argument(
        "--file", "-f",
        dest="list_file",
        type=Path,
        default=None,
        help="Load basenames listed in this file instead of scanning",
    )
    load_parser.add_argument(
        "--force",
        action="store_true",
        help="Remove all identities first and reload everything",
    )

    env_parser = subparsers.add_parser(
        "env",
        help="Ensure the agent, load keys, and print export lines for eval",
    )
    env_parser.add_argument(
        "--shell",
        choices=["sh", "fish"],
        default="sh",
        help="Syntax of the printed assignments (default: sh)",
    )

    remove_parser = subparsers.add_parser(
        "remove",
        help="Remove one identity from the agent",
    )
    remove_parser.add_argument("basename", help="Key file name inside the key directory")

    remove_all_parser = subparsers.add_parser(
        "remove-all",
        help="Remove every identity from the agent",
    )
    remove_all_parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Do not ask for confirmation",
    )

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)
