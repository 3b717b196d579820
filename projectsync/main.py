#!/usr/bin/env python3
"""CLI entry point for the project workspace sync."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from .core.chats import export_conversation
from .core.client import ClaudeClient
from .core.filesystem import LocalDirectory, LocalStore, LocalWriteError
from .core.operations import SyncInProgressError, SyncOrchestrator
from .core.remote import APIError
from .models.config import SETTING_KEYS, SyncSettings, WorkspaceConfig, default_config_path
from .models.results import SyncProgress, SyncResult, WorkspaceDiff

console = Console()


def setup_logging(verbose: bool) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
    )


def get_workspace(args: argparse.Namespace) -> Path:
    return Path(args.workspace).expanduser().resolve()


def get_config_path(args: argparse.Namespace) -> Path:
    if args.config:
        return Path(args.config).expanduser().resolve()
    return default_config_path(get_workspace(args))


def make_client() -> ClaudeClient | None:
    try:
        return ClaudeClient()
    except ValueError as e:
        console.print(f"[red]Configuration error: {e}")
        return None


def resolve_org(args: argparse.Namespace, client: ClaudeClient) -> str | None:
    """Organization from --org, the environment, or the first visible one."""
    if args.org:
        return args.org
    if client.auth.org_id:
        return client.auth.org_id
    try:
        orgs = client.list_organizations()
    except APIError as e:
        console.print(f"[red]Failed to list organizations: {e}")
        return None
    if not orgs:
        console.print("[red]No organizations available for this session")
        return None
    if len(orgs) > 1:
        console.print(f"[yellow]Multiple organizations found, using {orgs[0].name} (pass --org to choose)")
    return orgs[0].id


def make_orchestrator(args: argparse.Namespace) -> tuple[SyncOrchestrator, str] | None:
    client = make_client()
    if client is None:
        return None
    org_id = resolve_org(args, client)
    if org_id is None:
        return None
    return SyncOrchestrator(client, get_config_path(args)), org_id


def run_with_progress(orchestrator: SyncOrchestrator, operation: Callable[[], SyncResult]) -> SyncResult:
    """Run an orchestrator operation while rendering its progress events."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(description="Starting...", total=None)

        def on_progress(event: SyncProgress) -> None:
            progress.update(
                task,
                description=event.message or event.phase,
                total=event.total_projects or None,
                completed=event.completed_projects,
            )

        unsubscribe = orchestrator.subscribe(on_progress)
        try:
            return operation()
        except KeyboardInterrupt:
            orchestrator.cancel()
            raise
        finally:
            unsubscribe()


def print_result(result: SyncResult, title: str) -> int:
    """Print a summary table for a sync result and return the exit code."""
    if result.dry_run:
        console.print("[yellow](DRY RUN - no changes were made)")

    table = Table(title=title)
    table.add_column("Created", style="green")
    table.add_column("Updated", style="cyan")
    table.add_column("Uploaded", style="blue")
    table.add_column("Skipped", style="dim")
    table.add_column("Conflicts", style="yellow")
    table.add_column("Chats", style="magenta")
    table.add_column("Errors", style="red")
    stats = result.stats
    table.add_row(*(str(v) for v in (
        stats.created,
        stats.updated,
        stats.uploaded,
        stats.skipped,
        stats.conflicts,
        stats.chats,
        stats.errors,
    )))
    console.print(table)

    for message in result.messages:
        console.print(f"[dim]{message}[/dim]")
    for error in result.errors:
        console.print(f"[red]FAILED: {error}")

    return 0 if result.success else 1


def print_workspace_diff(diff: WorkspaceDiff) -> None:
    summary = diff.summary
    console.print(
        f"\n[bold]Remote projects:[/bold] {summary['remoteProjects']}  "
        f"[bold]Local folders:[/bold] {summary['localFolders']}  "
        f"[bold]Matched:[/bold] {summary['matched']}"
    )

    changed = [p for p in diff.matched if p.has_differences]
    if changed:
        table = Table(title="\nChanged Projects")
        table.add_column("Project", style="cyan")
        table.add_column("Folder")
        table.add_column("Remote only", style="green")
        table.add_column("Local only", style="blue")
        table.add_column("Modified", style="yellow")
        table.add_column("Renamed", style="magenta")
        for project in changed:
            table.add_row(
                project.name,
                project.folder,
                "\n".join(project.remote_only_files),
                "\n".join(project.local_only_files),
                "\n".join(project.modified_files),
                "\n".join(f"{r.old_name} -> {r.new_name} ({r.origin})" for r in project.renamed_files),
            )
        console.print(table)

    if diff.remote_only:
        table = Table(title="\nRemote-only Projects")
        table.add_column("Project", style="cyan")
        table.add_column("Folder")
        table.add_column("Files")
        for project in diff.remote_only:
            files = "?" if project.file_count is None else str(project.file_count)
            table.add_row(project.name, project.sanitized_name, files)
        console.print(table)

    for folder in diff.local_only:
        console.print(f"[blue]Local only:[/blue] {folder}")
    for error in diff.errors:
        console.print(f"[red]FAILED: {error}")

    if not diff.has_differences and not diff.errors:
        console.print("[green]Workspace is in sync")


def cmd_verify_auth(args: argparse.Namespace) -> int:
    """Verify API authentication."""
    console.print("Verifying session credentials...", style="blue")

    client = make_client()
    if client is None:
        return 1
    try:
        if client.verify_connection():
            console.print("[green]Authentication successful!")
            return 0
        console.print("[red]Authenticated, but no organizations are visible")
    except APIError as e:
        console.print(f"[red]Authentication failed: {e}")

    return 1


def cmd_orgs(args: argparse.Namespace) -> int:
    """List organizations."""
    client = make_client()
    if client is None:
        return 1
    try:
        orgs = client.list_organizations()
    except APIError as e:
        console.print(f"[red]Failed to list organizations: {e}")
        return 1

    table = Table(title="Organizations")
    table.add_column("Name", style="cyan")
    table.add_column("ID", style="dim")
    for org in orgs:
        table.add_row(org.name, org.id)
    console.print(table)
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show workspace config and mapped projects."""
    config_path = get_config_path(args)
    config = WorkspaceConfig.load(config_path)

    console.print(f"\n[bold]Workspace:[/bold] {config.workspace_path or get_workspace(args)}")
    console.print(f"[bold]Config:[/bold] {config_path}")
    console.print(f"[bold]Last Sync:[/bold] {config.last_sync[:19] if config.last_sync else 'Never'}")
    console.print(f"[bold]Mapped Projects:[/bold] {len(config.project_map)}")

    if config.project_map:
        table = Table(title="\nProject Folders")
        table.add_column("Folder", style="green")
        table.add_column("Project ID", style="dim")
        for project_id, folder in sorted(config.project_map.items(), key=lambda item: item[1]):
            table.add_row(folder, project_id)
        console.print(table)
    return 0


def cmd_diff(args: argparse.Namespace) -> int:
    """Show differences between remote projects and the workspace."""
    setup = make_orchestrator(args)
    if setup is None:
        return 1
    orchestrator, org_id = setup

    console.print("Comparing workspace...", style="blue")
    diff = orchestrator.get_workspace_diff(get_workspace(args), org_id)
    print_workspace_diff(diff)
    return 0 if not diff.errors else 1


def cmd_pull(args: argparse.Namespace) -> int:
    """Download all projects into the workspace."""
    setup = make_orchestrator(args)
    if setup is None:
        return 1
    orchestrator, org_id = setup

    console.print("Pulling projects...", style="blue")
    result = run_with_progress(
        orchestrator,
        lambda: orchestrator.download_sync(get_workspace(args), org_id, dry_run=args.dry_run),
    )
    return print_result(result, "Pull Summary")


def cmd_chats(args: argparse.Namespace) -> int:
    """Download conversations only."""
    setup = make_orchestrator(args)
    if setup is None:
        return 1
    orchestrator, org_id = setup

    console.print("Syncing conversations...", style="blue")
    result = run_with_progress(
        orchestrator,
        lambda: orchestrator.chats_only_sync(get_workspace(args), org_id, dry_run=args.dry_run),
    )
    return print_result(result, "Chat Sync Summary")


def cmd_sync(args: argparse.Namespace) -> int:
    """Bidirectional sync."""
    setup = make_orchestrator(args)
    if setup is None:
        return 1
    orchestrator, org_id = setup

    console.print("Synchronizing workspace...", style="blue")
    if args.strategy:
        console.print(f"[yellow](conflict strategy: {args.strategy})")
    result = run_with_progress(
        orchestrator,
        lambda: orchestrator.bidirectional_sync(
            get_workspace(args),
            org_id,
            conflict_strategy=args.strategy,
            dry_run=args.dry_run,
        ),
    )
    return print_result(result, "Sync Summary")


def cmd_file(args: argparse.Namespace) -> int:
    """Push or pull a single file of a project."""
    setup = make_orchestrator(args)
    if setup is None:
        return 1
    orchestrator, org_id = setup

    direction = args.file_command
    result = orchestrator.sync_file(get_workspace(args), org_id, args.project_id, args.file_name, direction)
    return print_result(result, f"File {direction.capitalize()}")


def _parse_setting_value(attr: str, raw: str) -> object:
    default = getattr(SyncSettings(), attr)
    if isinstance(default, bool):
        lowered = raw.lower()
        if lowered in ("true", "yes", "on", "1"):
            return True
        if lowered in ("false", "no", "off", "0"):
            return False
        raise ValueError(f"Expected a boolean, got '{raw}'")
    if isinstance(default, int):
        return int(raw)
    return raw


def cmd_config(args: argparse.Namespace) -> int:
    """Show, change or reset the workspace config."""
    config_path = get_config_path(args)

    if args.config_command == "reset":
        WorkspaceConfig.reset(config_path)
        console.print(f"[green]Removed {config_path}")
        return 0

    config = WorkspaceConfig.load(config_path)

    if args.config_command == "set":
        attr = SETTING_KEYS.get(args.key) or (args.key if args.key in SETTING_KEYS.values() else None)
        if attr is None:
            console.print(f"[red]Unknown setting: {args.key}")
            console.print(f"Valid settings: {', '.join(SETTING_KEYS)}")
            return 1
        try:
            config.update_settings(**{attr: _parse_setting_value(attr, args.value)})
        except ValueError as e:
            console.print(f"[red]Invalid value: {e}")
            return 1
        config.save(config_path)
        console.print(f"[green]Set {args.key} = {args.value}")
        return 0

    table = Table(title="Settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in config.settings.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    """Export a single conversation to Markdown."""
    client = make_client()
    if client is None:
        return 1
    org_id = resolve_org(args, client)
    if org_id is None:
        return 1

    output = LocalDirectory(Path(args.output).expanduser().resolve())
    try:
        path = export_conversation(client, LocalStore(), org_id, args.conversation_id, output)
    except (APIError, LocalWriteError) as e:
        console.print(f"[red]Export failed: {e}")
        return 1

    console.print(f"[green]Exported to {path}")
    return 0


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="projectsync",
        description="Sync projects, knowledge files and chats with a local workspace",
    )
    parser.add_argument("--workspace", "-w", default=".", help="Workspace directory (default: current directory)")
    parser.add_argument("--org", help="Organization ID (default: CLAUDE_ORG_ID or first organization)")
    parser.add_argument("--config", help="Config file (default: <workspace>/.projectsync/workspace.json)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("verify-auth", help="Verify API authentication")
    subparsers.add_parser("orgs", help="List organizations")
    subparsers.add_parser("status", help="Show workspace status")
    subparsers.add_parser("diff", help="Show differences between remote and local")

    # pull command
    pull_parser = subparsers.add_parser("pull", help="Download all projects")
    pull_parser.add_argument("--dry-run", action="store_true", help="Show what would happen")

    # chats command
    chats_parser = subparsers.add_parser("chats", help="Download conversations only")
    chats_parser.add_argument("--dry-run", action="store_true", help="Show what would happen")

    # sync command
    sync_parser = subparsers.add_parser("sync", help="Bidirectional sync")
    sync_parser.add_argument(
        "--strategy",
        choices=("local", "remote", "newer", "prompt"),
        help="Conflict strategy (default: from config)",
    )
    sync_parser.add_argument("--dry-run", action="store_true", help="Show what would happen")

    # file commands
    file_parser = subparsers.add_parser("file", help="Resolve a single file")
    file_subparsers = file_parser.add_subparsers(dest="file_command")
    for direction, help_text in (("push", "Upload local file"), ("pull", "Download remote file")):
        file_cmd = file_subparsers.add_parser(direction, help=help_text)
        file_cmd.add_argument("project_id", help="Project ID")
        file_cmd.add_argument("file_name", help="File name (e.g., notes.md or AGENTS.md)")

    # config commands
    config_parser = subparsers.add_parser("config", help="Workspace settings")
    config_subparsers = config_parser.add_subparsers(dest="config_command")
    config_subparsers.add_parser("show", help="Show settings")
    config_set = config_subparsers.add_parser("set", help="Change a setting")
    config_set.add_argument("key", help="Setting key (e.g., conflictStrategy)")
    config_set.add_argument("value", help="New value")
    config_subparsers.add_parser("reset", help="Delete the workspace config")

    # export command
    export_parser = subparsers.add_parser("export", help="Export one conversation")
    export_parser.add_argument("conversation_id", help="Conversation ID")
    export_parser.add_argument("--output", "-o", default=".", help="Output directory")

    args = parser.parse_args()
    setup_logging(args.verbose)

    commands = {
        "verify-auth": cmd_verify_auth,
        "orgs": cmd_orgs,
        "status": cmd_status,
        "diff": cmd_diff,
        "pull": cmd_pull,
        "chats": cmd_chats,
        "sync": cmd_sync,
        "export": cmd_export,
    }

    try:
        if args.command in commands:
            return commands[args.command](args)
        elif args.command == "file":
            if args.file_command:
                return cmd_file(args)
            file_parser.print_help()
            return 1
        elif args.command == "config":
            if args.config_command:
                return cmd_config(args)
            args.config_command = "show"
            return cmd_config(args)
        else:
            parser.print_help()
            return 1
    except SyncInProgressError as e:
        console.print(f"[red]{e}")
        return 1
    except KeyboardInterrupt:
        console.print("[yellow]Cancelled")
        return 130


if __name__ == "__main__":
    sys.exit(main())
