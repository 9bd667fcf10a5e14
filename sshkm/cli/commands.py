"""Thin command adapters over KeyManager.

Every command returns an exit code. Fatal conditions (ConfigError, a
terminal AgentUnavailableError) are raised and turned into exit 1 by main().
"""

from pathlib import Path

from rich.prompt import Confirm

from sshkm.agent.protocol import ShellFlavor, format_assignments
from sshkm.agent.resolver import ResolveMode
from sshkm.agent.types import AddStatus, AgentDescriptor, IdentityStatus, RemoveAllStatus
from sshkm.cli.output import (
    console,
    print_error,
    print_info,
    print_plain,
    print_success,
    print_warning,
)
from sshkm.core.errors import AgentUnavailableError
from sshkm.keys.loader import LoadStatus
from sshkm.manager import KeyManager, SyncReport


def _print_report(report: SyncReport, quiet: bool) -> None:
    if report.summary is not None:
        for outcome in report.summary.outcomes:
            if outcome.status is LoadStatus.NEEDS_PASSPHRASE:
                print_warning(f"{outcome.basename}: not added (passphrase required?)")
            elif outcome.status is LoadStatus.FILE_MISSING:
                print_warning(f"{outcome.basename}: key file not found")
            elif outcome.status is LoadStatus.AGENT_UNREACHABLE:
                print_warning(f"{outcome.basename}: agent did not respond")
    if not quiet:
        print_info(f"Summary: {report.describe()}")


def cmd_status(manager: KeyManager, inherited: AgentDescriptor | None, quiet: bool = False) -> int:
    """Report the live agent, if any. Exit 1 when none is running."""
    resolution = manager.ensure_session(ResolveMode.CHECK_ONLY, inherited=inherited)
    if not resolution.established or resolution.handle is None:
        if not quiet:
            print_error("No ssh-agent running")
        return 1

    handle = resolution.handle
    if not quiet:
        console.print(f"[bold]Socket:[/bold] {handle.socket_path}", highlight=False)
        console.print(f"[bold]PID:[/bold]    {handle.pid}", highlight=False)
        console.print(f"[bold]Source:[/bold] {handle.source.value}", highlight=False)
    return 0


def cmd_list(manager: KeyManager, inherited: AgentDescriptor | None, quiet: bool = False) -> int:
    """Print the identities the agent holds."""
    handle = manager.ensure_session(inherited=inherited).require()
    query = manager.list_identities(handle)
    if query.status is IdentityStatus.UNREACHABLE:
        raise AgentUnavailableError(
            f"ssh-agent at {handle.socket_path} did not answer", reason="agent unreachable"
        )
    if query.status is IdentityStatus.EMPTY:
        if not quiet:
            print_info("The agent has no identities. Run 'sshkm load' to add your keys.")
        return 0
    for line in query.lines:
        print_plain(line)
    return 0


def cmd_scan(manager: KeyManager, quiet: bool = False) -> int:
    """Scan the key directory and print the manifest."""
    manifest = manager.scan_manifest()
    if manifest.is_empty:
        if not quiet:
            print_info(f"No key pairs found in {manager.scanner.key_dir}")
        return 0
    for name in manifest.entries:
        print_plain(name)
    if not quiet:
        print_info(f"{len(manifest)} key pair(s) written to {manifest.cache_path}")
    return 0


def cmd_load(
    manager: KeyManager,
    inherited: AgentDescriptor | None,
    list_file: Path | None = None,
    force: bool = False,
    quiet: bool = False,
) -> int:
    """Ensure the agent and bring its identities in line with the manifest."""
    handle = manager.ensure_session(inherited=inherited).require()
    report = manager.sync(handle, list_file=list_file, force=force)
    _print_report(report, quiet)
    return 0


def cmd_env(
    manager: KeyManager,
    inherited: AgentDescriptor | None,
    shell: ShellFlavor = "sh",
    quiet: bool = False,
) -> int:
    """Profile adapter: ensure, sync, then print assignments for eval.

    Only the assignments go to stdout.
    """
    handle = manager.ensure_session(inherited=inherited).require()
    report = manager.sync(handle)
    if report.loaded:
        _print_report(report, quiet)
    print_plain(format_assignments(handle.descriptor, shell).rstrip("\n"))
    return 0


def cmd_remove(
    manager: KeyManager,
    inherited: AgentDescriptor | None,
    basename: str,
    quiet: bool = False,
) -> int:
    """Remove a single identity."""
    handle = manager.ensure_session(inherited=inherited).require()
    status = manager.remove(handle, basename)
    if status is AddStatus.UNREACHABLE:
        raise AgentUnavailableError(
            f"ssh-agent at {handle.socket_path} did not answer", reason="agent unreachable"
        )
    if status is AddStatus.PARTIAL:
        print_warning(f"Could not remove {basename} (not loaded, or public key missing)")
        return 0
    if not quiet:
        print_success(f"Removed {basename}")
    return 0


def cmd_remove_all(
    manager: KeyManager,
    inherited: AgentDescriptor | None,
    yes: bool = False,
    quiet: bool = False,
) -> int:
    """Remove every identity, after confirmation unless --yes."""
    handle = manager.ensure_session(inherited=inherited).require()
    if not yes and not Confirm.ask("Remove all keys from the agent?", default=False):
        if not quiet:
            print_info("Cancelled")
        return 0

    status = manager.remove_all(handle)
    if status is RemoveAllStatus.UNREACHABLE:
        raise AgentUnavailableError(
            f"ssh-agent at {handle.socket_path} did not answer", reason="agent unreachable"
        )
    if status is RemoveAllStatus.NOT_REMOVED:
        print_warning("No keys were removed")
    elif not quiet:
        print_success("All keys removed from the agent")
    return 0
