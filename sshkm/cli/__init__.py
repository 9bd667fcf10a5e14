"""Command-line interface for sshkm."""

from sshkm.cli.main import main

__all__ = ["main"]
