"""Workspace synchronization between remote projects and local folders.

A run is a single sequential pass: projects are processed one after another
in remote listing order, and within a project the instructions document is
synced before knowledge files, which are synced before conversations.
"""

import json
import logging
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator

from ..models.config import ProjectMetadata, WorkspaceConfig, sanitize_project_name
from ..models.results import (
    ProjectDiff,
    RemoteOnlyProject,
    SyncProgress,
    SyncResult,
    WorkspaceDiff,
)
from .chats import conversation_filename, format_conversation, read_exported_updated_at
from .conflict import ConflictResolver, Resolution
from .diff import (
    CONVERSATIONS_DIRNAME,
    INSTRUCTIONS_FILENAME,
    KNOWLEDGE_DIRNAME,
    METADATA_DIRNAME,
    METADATA_FILENAME,
    DiffEngine,
    ProjectSnapshot,
    normalize_instructions,
    read_knowledge_files,
)
from .filesystem import (
    LocalDirectory,
    LocalReadError,
    LocalStore,
    LocalWriteError,
    WorkspacePermissionError,
    normalize_file_name,
    strip_default_extension,
)
from .frontmatter import ensure_frontmatter, render_frontmatter, split_frontmatter
from .hashing import compute_hash
from .remote import APIError, ConversationSummary, NotFoundError, RemoteFile, RemoteProject, RemoteStore

logger = logging.getLogger(__name__)

STANDALONE_DIRNAME = "_standalone_conversations"
SYSTEM_FOLDERS = {"$RECYCLE.BIN", "System Volume Information", "node_modules"}

ProgressListener = Callable[[SyncProgress], None]


class SyncInProgressError(RuntimeError):
    """A sync run is already active for this orchestrator."""


class ProjectSyncError(Exception):
    """One or more file operations of a project failed."""

    def __init__(self, failed_files: list[str]) -> None:
        super().__init__(
            f"{len(failed_files)} file operation(s) failed: {', '.join(failed_files)}"
        )
        self.failed_files = failed_files


class _RunAborted(Exception):
    """A run-level precondition failed."""

    def __init__(self, message: str, is_error: bool = True) -> None:
        super().__init__(message)
        self.is_error = is_error


@dataclass
class _Run:
    """State of one orchestrator invocation."""

    workspace: LocalDirectory
    org_id: str
    config: WorkspaceConfig
    dry_run: bool
    result: SyncResult
    engine: DiffEngine
    conversations: list[ConversationSummary] | None = None


@dataclass
class _ProjectPlan:
    """A remote project and, when it has a local folder, its diff."""

    project: RemoteProject
    folder: str | None = None
    snapshot: ProjectSnapshot | None = None
    diff: ProjectDiff | None = None


@dataclass
class _FileOps:
    """Outcome of the file-level operations of one project."""

    changed: int = 0
    failures: list[str] = field(default_factory=list)


def _instructions_slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "project"


class SyncOrchestrator:
    """Drives download, chats-only, bidirectional and single-file syncs.

    The remote store is injected; the local workspace is passed to every
    operation as a path (or capability) and re-verified for each run.
    """

    def __init__(
        self,
        remote: RemoteStore,
        config_path: Path,
        local_store: LocalStore | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            remote: RemoteStore implementation (e.g. ClaudeClient)
            config_path: Path to the persisted workspace config
            local_store: LocalStore (created if not provided)
        """
        self.remote = remote
        self.config_path = Path(config_path)
        self.local = local_store or LocalStore()
        self._listeners: list[ProgressListener] = []
        self._run_lock = threading.Lock()
        self._cancel = threading.Event()

    # =========================================================================
    # Progress and cancellation
    # =========================================================================

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a progress listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def cancel(self) -> None:
        """Request cancellation; honored between project-level units of work."""
        self._cancel.set()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def _emit(
        self,
        phase: str,
        total: int = 0,
        completed: int = 0,
        current: str | None = None,
        message: str = "",
    ) -> None:
        progress = SyncProgress(
            phase=phase,
            total_projects=total,
            completed_projects=completed,
            current_project=current,
            message=message,
        )
        for listener in list(self._listeners):
            try:
                listener(progress)
            except Exception:
                logger.exception("Progress listener failed")

    @contextmanager
    def _session(self) -> Iterator[None]:
        if not self._run_lock.acquire(blocking=False):
            raise SyncInProgressError("A sync is already in progress")
        self._cancel.clear()
        try:
            yield
        finally:
            self._run_lock.release()

    # =========================================================================
    # Run lifecycle
    # =========================================================================

    def _begin(self, workspace: Path | LocalDirectory, org_id: str, dry_run: bool, result: SyncResult) -> _Run:
        self._emit("initializing", message="Preparing workspace...")
        if not org_id:
            raise _RunAborted("No organization selected")

        try:
            if isinstance(workspace, LocalDirectory):
                self.local.verify_permission(workspace)
                directory = workspace
            else:
                directory = self.local.open_workspace(workspace)
        except WorkspacePermissionError as e:
            raise _RunAborted(f"Permission denied: {e}") from e

        config = WorkspaceConfig.load(self.config_path)
        if not config.workspace_path:
            config.workspace_path = str(directory.path)

        return _Run(
            workspace=directory,
            org_id=org_id,
            config=config,
            dry_run=dry_run,
            result=result,
            engine=DiffEngine(self.remote, self.local, config.settings),
        )

    def _fetch_projects(self, run: _Run, require: bool = True) -> list[RemoteProject]:
        self._emit("fetching", message="Fetching projects...")
        try:
            projects = self.remote.list_projects(run.org_id)
        except APIError as e:
            logger.warning("Failed to fetch projects: %s", e)
            raise _RunAborted(f"Failed to fetch projects: {e}") from e
        if require and not projects:
            raise _RunAborted("No projects found", is_error=False)
        return projects

    def _execute(
        self,
        workspace: Path | LocalDirectory,
        org_id: str,
        dry_run: bool,
        body: Callable[[_Run], None],
    ) -> SyncResult:
        result = SyncResult(dry_run=dry_run)
        with self._session():
            try:
                run = self._begin(workspace, org_id, dry_run, result)
                body(run)
            except _RunAborted as e:
                if e.is_error:
                    result.add_error(str(e))
                    self._emit("error", message=f"Sync failed: {e}")
                else:
                    result.messages.append(str(e))
                    self._emit("complete", message=str(e))
                return result

            if not dry_run:
                run.config.mark_synced()
                run.config.save(self.config_path)
            self._emit("complete", message="Sync complete!")
        return result

    def _for_each_project(
        self,
        run: _Run,
        items: list,
        name_of: Callable,
        work: Callable,
    ) -> None:
        """Run ``work`` per item, counting outcomes and collecting errors."""
        total = len(items)
        self._emit("syncing", total, 0, message=f"Syncing {total} projects...")
        for index, item in enumerate(items, start=1):
            if self._cancel.is_set():
                run.result.messages.append(f"Sync cancelled after {index - 1}/{total} projects")
                logger.info("Sync cancelled after %d/%d projects", index - 1, total)
                break

            name = name_of(item)
            try:
                outcome = work(item)
                setattr(run.result.stats, outcome, getattr(run.result.stats, outcome) + 1)
            except Exception as e:
                logger.warning("Error syncing project %s: %s", name, e)
                run.result.add_error(f"{name}: {e}")

            self._emit(
                "syncing",
                total,
                index,
                current=name,
                message=f"Synced {index}/{total} projects",
            )

    # =========================================================================
    # Public operations
    # =========================================================================

    def download_sync(
        self,
        workspace: Path | LocalDirectory,
        org_id: str,
        dry_run: bool = False,
    ) -> SyncResult:
        """Pull every remote project (instructions, files, chats) into the workspace."""

        def body(run: _Run) -> None:
            projects = self._fetch_projects(run)
            self._for_each_project(
                run,
                projects,
                lambda p: p.name,
                lambda p: self._download_project(run, p),
            )
            if run.config.settings.sync_chats:
                self._sync_standalone_chats(run)

        return self._execute(workspace, org_id, dry_run, body)

    def chats_only_sync(
        self,
        workspace: Path | LocalDirectory,
        org_id: str,
        dry_run: bool = False,
    ) -> SyncResult:
        """Download conversations only, for every project and the standalone bucket."""

        def body(run: _Run) -> None:
            projects = self._fetch_projects(run, require=False)
            self._for_each_project(
                run,
                projects,
                lambda p: p.name,
                lambda p: self._project_chats_only(run, p),
            )
            self._sync_standalone_chats(run)

        return self._execute(workspace, org_id, dry_run, body)

    def bidirectional_sync(
        self,
        workspace: Path | LocalDirectory,
        org_id: str,
        conflict_strategy: str | None = None,
        dry_run: bool = False,
    ) -> SyncResult:
        """Reconcile both sides using a workspace diff and a conflict strategy.

        Args:
            workspace: Workspace root
            org_id: Organization ID
            conflict_strategy: Overrides the configured strategy when given
            dry_run: Plan and count without writing to either side
        """

        def body(run: _Run) -> None:
            settings = run.config.settings
            resolver = ConflictResolver(
                conflict_strategy or settings.conflict_strategy,
                settings.newer_fallback,
            )
            projects = self._fetch_projects(run)
            workspace_diff, plans = self._workspace_diff(run, projects)
            for error in workspace_diff.errors:
                run.result.add_error(error)
            for folder in workspace_diff.local_only:
                logger.info("Local folder %s has no remote project; skipping", folder)

            self._for_each_project(
                run,
                plans,
                lambda plan: plan.project.name,
                lambda plan: self._reconcile_project(run, plan, resolver),
            )
            if settings.sync_chats:
                self._sync_standalone_chats(run)

        return self._execute(workspace, org_id, dry_run, body)

    def get_workspace_diff(
        self,
        workspace: Path | LocalDirectory,
        org_id: str,
    ) -> WorkspaceDiff:
        """Compare every remote project with the local workspace (read-only)."""
        with self._session():
            try:
                run = self._begin(workspace, org_id, True, SyncResult(dry_run=True))
                projects = self._fetch_projects(run, require=False)
            except _RunAborted as e:
                self._emit("error", message=str(e))
                return WorkspaceDiff(errors=[str(e)])

            workspace_diff, _ = self._workspace_diff(run, projects)
            self._emit(
                "complete",
                len(projects),
                len(projects),
                message="Diff complete",
            )
            return workspace_diff

    def sync_file(
        self,
        workspace: Path | LocalDirectory,
        org_id: str,
        project_id: str,
        file_name: str,
        direction: str,
    ) -> SyncResult:
        """Resolve a single diff entry in an explicit direction.

        A file that disappeared from the source side since the diff was
        computed counts as already resolved.

        Args:
            direction: "push" (local -> remote) or "pull" (remote -> local)
        """
        if direction not in ("push", "pull"):
            raise ValueError(f"Unknown direction: {direction}")

        def body(run: _Run) -> None:
            folder = run.config.folder_for(project_id)
            if not folder:
                raise _RunAborted(f"Project {project_id} is not mapped to a local folder")
            project_dir = self.local.get_directory(run.workspace, folder)
            try:
                if direction == "push":
                    done = self._push_single(run, project_id, project_dir, file_name)
                else:
                    done = self._pull_single(run, project_id, project_dir, file_name)
            except (APIError, OSError) as e:
                logger.warning("Failed to %s %s: %s", direction, file_name, e)
                run.result.add_error(f"{file_name}: {e}")
                return

            if not done:
                run.result.stats.skipped += 1
            elif direction == "push":
                run.result.stats.uploaded += 1
            else:
                run.result.stats.updated += 1

        return self._execute(workspace, org_id, False, body)

    # =========================================================================
    # Folder resolution and metadata
    # =========================================================================

    def _list_project_folders(self, workspace: LocalDirectory) -> list[str]:
        return [
            name for name in self.local.list_directories(workspace)
            if not name.startswith((".", "__"))
            and name != STANDALONE_DIRNAME
            and name not in SYSTEM_FOLDERS
        ]

    def _find_moved_folder(self, run: _Run, project_id: str) -> str | None:
        """Find a folder whose metadata names this project (folder renamed locally)."""
        mapped = set(run.config.project_map.values())
        for folder in self._list_project_folders(run.workspace):
            if folder in mapped:
                continue
            metadata = self._read_metadata(self.local.get_directory(run.workspace, folder))
            if metadata and metadata.id == project_id:
                return folder
        return None

    def _remap_if_moved(self, run: _Run, project_id: str, mapped: str) -> str:
        if self.local.get_directory(run.workspace, mapped).exists():
            return mapped
        moved = self._find_moved_folder(run, project_id)
        if moved is None:
            return mapped

        logger.info("Project folder %s was renamed to %s", mapped, moved)
        run.config.project_map[project_id] = moved
        if not run.dry_run:
            # Commit now so later steps cannot map the old name again
            run.config.save(self.config_path)
        return moved

    def _resolve_folder(self, run: _Run, project: RemoteProject) -> tuple[str, bool]:
        """Folder for a project, assigning one if unmapped. Returns (folder, is_new)."""
        mapped = run.config.folder_for(project.id)
        if mapped:
            return self._remap_if_moved(run, project.id, mapped), False
        return run.config.assign_folder(project.id, project.name), True

    def _match_folder(self, run: _Run, project: RemoteProject, local_folders: set[str]) -> str | None:
        """Existing local folder for a project, or None if it has none."""
        mapped = run.config.folder_for(project.id)
        if mapped:
            folder = self._remap_if_moved(run, project.id, mapped)
            return folder if folder in local_folders else None
        candidate = sanitize_project_name(project.name)
        if candidate in local_folders and run.config.project_for_folder(candidate) is None:
            return candidate
        return None

    def _project_dir(self, run: _Run, folder: str) -> LocalDirectory:
        if run.dry_run:
            return self.local.get_directory(run.workspace, folder)
        return self.local.get_or_create_directory(run.workspace, folder)

    def _read_metadata(self, project_dir: LocalDirectory) -> ProjectMetadata | None:
        metadata_dir = self.local.get_directory(project_dir, METADATA_DIRNAME)
        try:
            text = self.local.read_text_file(metadata_dir, METADATA_FILENAME)
            if not text:
                return None
            return ProjectMetadata.from_dict(json.loads(text))
        except (LocalReadError, ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable metadata in %s: %s", project_dir.path, e)
            return None

    def _local_hashes(self, run: _Run, project_dir: LocalDirectory) -> dict[str, str]:
        settings = run.config.settings
        knowledge_dir = self.local.get_directory(project_dir, KNOWLEDGE_DIRNAME)
        hashes = {
            name: compute_hash(content)
            for name, (_, content) in read_knowledge_files(
                self.local, knowledge_dir, settings.auto_add_extension
            ).items()
        }
        instructions = normalize_instructions(
            self.local.read_text_file(project_dir, INSTRUCTIONS_FILENAME), settings
        )
        if instructions is not None:
            hashes[INSTRUCTIONS_FILENAME] = compute_hash(instructions)
        return hashes

    def _save_metadata(self, run: _Run, project: RemoteProject, project_dir: LocalDirectory) -> None:
        metadata = ProjectMetadata(
            id=project.id,
            name=project.name,
            org_id=run.org_id,
            synced_at=datetime.now(timezone.utc).isoformat(),
            file_hashes=self._local_hashes(run, project_dir),
        )
        metadata_dir = self.local.get_or_create_directory(project_dir, METADATA_DIRNAME)
        self.local.write_text_file(
            metadata_dir,
            METADATA_FILENAME,
            json.dumps(metadata.to_dict(), indent=2, ensure_ascii=False) + "\n",
        )

    # =========================================================================
    # Local writes
    # =========================================================================

    def _write_if_changed(self, run: _Run, directory: LocalDirectory, name: str, content: str) -> bool:
        """Write a file unless identical content is already there. True if (would be) written."""
        existing = self.local.read_text_file(directory, name)
        if existing is not None and compute_hash(existing) == compute_hash(content):
            return False
        if not run.dry_run:
            self.local.write_text_file(directory, name, content)
        return True

    def _render_instructions(self, run: _Run, project: RemoteProject, body: str, existing: str | None) -> str:
        text = body + "\n"
        if not run.config.settings.ensure_frontmatter:
            return text
        data, _ = split_frontmatter(existing or "")
        if data:
            text = render_frontmatter(data) + text
        return ensure_frontmatter(
            text,
            {
                "name": _instructions_slug(project.name),
                "description": project.description or project.name,
            },
        )

    def _write_instructions(self, run: _Run, project: RemoteProject, project_dir: LocalDirectory, body: str) -> bool:
        existing = self.local.read_text_file(project_dir, INSTRUCTIONS_FILENAME)
        content = self._render_instructions(run, project, body, existing)
        if existing is not None and normalize_instructions(existing, run.config.settings) == body:
            if not run.config.settings.ensure_frontmatter or existing == content:
                return False
        if not run.dry_run:
            self.local.write_text_file(project_dir, INSTRUCTIONS_FILENAME, content)
        return True

    # =========================================================================
    # Download
    # =========================================================================

    def _download_project(self, run: _Run, project: RemoteProject) -> str:
        """Pull one project. Returns "created", "updated" or "skipped"."""
        folder, is_new = self._resolve_folder(run, project)
        project_dir = self._project_dir(run, folder)
        changed = 0
        failures: list[str] = []

        try:
            instructions = self.remote.get_instructions(run.org_id, project.id)
        except APIError as e:
            logger.warning("Could not sync instructions for %s: %s", project.name, e)
            failures.append(f"{INSTRUCTIONS_FILENAME} ({e})")
            instructions = None
        body = normalize_instructions(instructions, run.config.settings)
        if body is not None and self._write_instructions(run, project, project_dir, body):
            changed += 1

        files = self.remote.list_files(run.org_id, project.id)
        knowledge_dir = self.local.get_directory(project_dir, KNOWLEDGE_DIRNAME)
        for remote_file in files:
            name = normalize_file_name(remote_file.name, run.config.settings.auto_add_extension)
            if name == INSTRUCTIONS_FILENAME:
                continue
            try:
                if self._write_if_changed(run, knowledge_dir, name, remote_file.content):
                    changed += 1
            except (LocalWriteError, LocalReadError) as e:
                logger.warning("Error syncing file %s: %s", name, e)
                failures.append(name)

        if failures:
            raise ProjectSyncError(failures)

        if not run.dry_run:
            self._save_metadata(run, project, project_dir)

        if run.config.settings.sync_chats:
            conversations_dir = self.local.get_directory(project_dir, CONVERSATIONS_DIRNAME)
            self._sync_chats(run, project.id, conversations_dir, project.name)

        if is_new:
            return "created"
        return "updated" if changed else "skipped"

    # =========================================================================
    # Bidirectional
    # =========================================================================

    def _workspace_diff(self, run: _Run, projects: list[RemoteProject]) -> tuple[WorkspaceDiff, list[_ProjectPlan]]:
        """Diff every project; returns the diff and per-project plans in listing order."""
        local_folders = self._list_project_folders(run.workspace)
        workspace_diff = WorkspaceDiff(
            remote_project_count=len(projects),
            local_folder_count=len(local_folders),
        )
        plans: list[_ProjectPlan] = []
        claimed: set[str] = set()
        available = set(local_folders)
        total = len(projects)

        for index, project in enumerate(projects, start=1):
            folder = self._match_folder(run, project, available - claimed)
            if folder is None:
                try:
                    file_count: int | None = len(self.remote.list_files(run.org_id, project.id))
                except APIError as e:
                    logger.warning("Could not count files of %s: %s", project.name, e)
                    file_count = None
                workspace_diff.remote_only.append(RemoteOnlyProject(
                    id=project.id,
                    name=project.name,
                    sanitized_name=run.config.folder_for(project.id) or sanitize_project_name(project.name),
                    file_count=file_count,
                ))
                plans.append(_ProjectPlan(project=project))
            else:
                claimed.add(folder)
                project_dir = self.local.get_directory(run.workspace, folder)
                try:
                    snapshot = run.engine.snapshot_project(
                        run.org_id, project, project_dir, self._read_metadata(project_dir)
                    )
                    project_diff = run.engine.diff_snapshot(snapshot)
                except (APIError, OSError) as e:
                    logger.warning("Could not compare %s: %s", project.name, e)
                    workspace_diff.errors.append(f"{project.name}: {e}")
                else:
                    workspace_diff.matched.append(project_diff)
                    plans.append(_ProjectPlan(project, folder, snapshot, project_diff))

            self._emit(
                "fetching",
                total,
                index,
                current=project.name,
                message=f"Compared {index}/{total} projects",
            )

        workspace_diff.local_only = sorted(f for f in local_folders if f not in claimed)
        return workspace_diff, plans

    def _reconcile_project(self, run: _Run, plan: _ProjectPlan, resolver: ConflictResolver) -> str:
        if plan.snapshot is None or plan.diff is None:
            return self._download_project(run, plan.project)

        snapshot, diff = plan.snapshot, plan.diff
        run.config.project_map[plan.project.id] = snapshot.folder

        ops = _FileOps()
        if diff.has_differences:
            self._apply_diff(run, snapshot, diff, resolver, ops)

        if ops.failures:
            raise ProjectSyncError(ops.failures)

        if not run.dry_run and (ops.changed or snapshot.metadata is None):
            self._save_metadata(run, plan.project, snapshot.project_dir)

        if run.config.settings.sync_chats:
            conversations_dir = self.local.get_directory(snapshot.project_dir, CONVERSATIONS_DIRNAME)
            self._sync_chats(run, plan.project.id, conversations_dir, plan.project.name)

        return "updated" if ops.changed else "skipped"

    def _attempt(self, ops: _FileOps, name: str, action: Callable[[], None]) -> bool:
        try:
            action()
        except (APIError, OSError) as e:
            logger.warning("File operation on %s failed: %s", name, e)
            ops.failures.append(f"{name} ({e})")
            return False
        ops.changed += 1
        return True

    def _apply_diff(
        self,
        run: _Run,
        snapshot: ProjectSnapshot,
        diff: ProjectDiff,
        resolver: ConflictResolver,
        ops: _FileOps,
    ) -> None:
        stats = run.result.stats

        for name in diff.local_only_files:
            if self._attempt(ops, name, lambda n=name: self._push_file(run, snapshot, n)):
                stats.uploaded += 1

        for name in diff.remote_only_files:
            self._attempt(ops, name, lambda n=name: self._pull_file(run, snapshot, n))

        for rename in diff.renamed_files:
            if rename.origin == "remote":
                self._attempt(
                    ops,
                    rename.old_name,
                    lambda r=rename: self._pull_rename(run, snapshot, r.old_name, r.new_name),
                )
            elif rename.origin == "unknown" and resolver.strategy == "prompt":
                logger.info(
                    "Rename %s -> %s has no known direction; left for manual resolution",
                    rename.old_name,
                    rename.new_name,
                )
                stats.conflicts += 1
            elif self._attempt(
                ops,
                rename.new_name,
                lambda r=rename: self._push_rename(run, snapshot, r.old_name, r.new_name),
            ):
                stats.uploaded += 1

        for name in diff.modified_files:
            resolution = resolver.resolve(name, diff.modified_files_info.get(name))
            if resolution is Resolution.SKIP:
                stats.conflicts += 1
            elif resolution is Resolution.UPLOAD:
                if self._attempt(ops, name, lambda n=name: self._push_file(run, snapshot, n)):
                    stats.uploaded += 1
            else:
                self._attempt(ops, name, lambda n=name: self._pull_file(run, snapshot, n))

    def _delete_remote(self, run: _Run, project_id: str, remote_file: RemoteFile) -> None:
        try:
            self.remote.delete_file(run.org_id, project_id, remote_file.id)
        except NotFoundError:
            logger.debug("Remote file %s already deleted", remote_file.name)

    def _push_file(self, run: _Run, snapshot: ProjectSnapshot, name: str) -> None:
        content = snapshot.local_content(name)
        if content is None or run.dry_run:
            return
        project_id = snapshot.project.id
        if name == INSTRUCTIONS_FILENAME:
            self.remote.set_instructions(run.org_id, project_id, content)
            return
        previous = snapshot.remote_files.get(name)
        self.remote.upload_file(run.org_id, project_id, name, content)
        if previous is not None:
            self._delete_remote(run, project_id, previous)

    def _pull_file(self, run: _Run, snapshot: ProjectSnapshot, name: str) -> None:
        if run.dry_run:
            return
        if name == INSTRUCTIONS_FILENAME:
            body = snapshot.remote_instructions
            if body is not None:
                self._write_instructions(run, snapshot.project, snapshot.project_dir, body)
            return
        remote_file = snapshot.remote_files[name]
        local_name = snapshot.local_names.get(name, name)
        self.local.write_text_file(snapshot.knowledge_dir, local_name, remote_file.content)

    def _push_rename(self, run: _Run, snapshot: ProjectSnapshot, old_name: str, new_name: str) -> None:
        """Local side renamed: upload under the new name, delete the old remote file."""
        if run.dry_run:
            return
        project_id = snapshot.project.id
        self.remote.upload_file(run.org_id, project_id, new_name, snapshot.local_contents[new_name])
        self._delete_remote(run, project_id, snapshot.remote_files[old_name])

    def _pull_rename(self, run: _Run, snapshot: ProjectSnapshot, remote_name: str, local_name: str) -> None:
        """Remote side renamed: write under the remote name, delete the stale local file."""
        if run.dry_run:
            return
        remote_file = snapshot.remote_files[remote_name]
        self.local.write_text_file(snapshot.knowledge_dir, remote_name, remote_file.content)
        self.local.delete_file(snapshot.knowledge_dir, snapshot.local_names.get(local_name, local_name))

    # =========================================================================
    # Conversations
    # =========================================================================

    def _conversations(self, run: _Run) -> list[ConversationSummary]:
        if run.conversations is None:
            run.conversations = self.remote.list_conversations(run.org_id)
        return run.conversations

    def _project_chats_only(self, run: _Run, project: RemoteProject) -> str:
        folder, _ = self._resolve_folder(run, project)
        project_dir = self.local.get_directory(run.workspace, folder)
        conversations_dir = self.local.get_directory(project_dir, CONVERSATIONS_DIRNAME)
        written = self._sync_chats(run, project.id, conversations_dir, project.name)
        return "updated" if written else "skipped"

    def _sync_standalone_chats(self, run: _Run) -> None:
        directory = self.local.get_directory(run.workspace, STANDALONE_DIRNAME)
        try:
            self._sync_chats(run, None, directory, "standalone conversations")
        except APIError as e:
            logger.warning("Failed to sync standalone conversations: %s", e)
            run.result.add_error(f"standalone conversations: {e}")

    def _sync_chats(
        self,
        run: _Run,
        project_id: str | None,
        directory: LocalDirectory,
        label: str,
    ) -> int:
        """Export the conversations of one project (or the standalone bucket).

        Returns the number of conversations written. Listing failures raise;
        per-conversation failures are recorded and do not stop the others.
        """
        written = 0
        for summary in self._conversations(run):
            if summary.project_id != project_id:
                continue
            try:
                if self._sync_conversation(run, summary, directory):
                    written += 1
                    run.result.stats.chats += 1
            except (APIError, OSError) as e:
                logger.warning("Failed to sync conversation %s: %s", summary.name, e)
                run.result.add_error(f"{label}: conversation '{summary.name}': {e}")
        return written

    def _sync_conversation(self, run: _Run, summary: ConversationSummary, directory: LocalDirectory) -> bool:
        filename = conversation_filename(summary)
        existing = self.local.read_text_file(directory, filename)
        if (
            summary.updated_at is not None
            and read_exported_updated_at(existing) == summary.updated_at.isoformat()
        ):
            return False

        conversation = self.remote.get_conversation(run.org_id, summary.id)
        written = self._write_if_changed(run, directory, filename, format_conversation(conversation))

        # Drop exports left behind under a previous title
        if written and not run.dry_run:
            suffix = f"_{summary.id[:8]}.md"
            for stale in self.local.list_files(directory):
                if stale != filename and stale.endswith(suffix):
                    self.local.delete_file(directory, stale)
        return written

    # =========================================================================
    # Single-file synchronization
    # =========================================================================

    @staticmethod
    def _candidate_names(file_name: str) -> list[str]:
        """Exact name first, then the name without the normalized extension."""
        names = [file_name]
        stripped = strip_default_extension(file_name)
        if stripped:
            names.append(stripped)
        return names

    def _find_remote_files(self, run: _Run, project_id: str, file_name: str) -> list[RemoteFile]:
        files = self.remote.list_files(run.org_id, project_id)
        for candidate in self._candidate_names(file_name):
            matches = [f for f in files if f.name == candidate]
            if matches:
                return matches
        target = normalize_file_name(file_name, run.config.settings.auto_add_extension)
        return [
            f for f in files
            if normalize_file_name(f.name, run.config.settings.auto_add_extension) == target
        ]

    def _push_single(self, run: _Run, project_id: str, project_dir: LocalDirectory, file_name: str) -> bool:
        settings = run.config.settings
        if file_name == INSTRUCTIONS_FILENAME:
            body = normalize_instructions(
                self.local.read_text_file(project_dir, INSTRUCTIONS_FILENAME), settings
            )
            if body is None:
                run.result.messages.append(f"{file_name} no longer exists locally; already resolved")
                return False
            self.remote.set_instructions(run.org_id, project_id, body)
            return True

        knowledge_dir = self.local.get_directory(project_dir, KNOWLEDGE_DIRNAME)
        content = None
        for candidate in self._candidate_names(file_name):
            content = self.local.read_text_file(knowledge_dir, candidate)
            if content is not None:
                break
        if content is None:
            run.result.messages.append(f"{file_name} no longer exists locally; already resolved")
            return False

        existing = self._find_remote_files(run, project_id, file_name)
        if any(compute_hash(f.content) == compute_hash(content) for f in existing):
            run.result.messages.append(f"{file_name} is already in sync")
            return False

        upload_name = normalize_file_name(file_name, settings.auto_add_extension)
        self.remote.upload_file(run.org_id, project_id, upload_name, content)
        for remote_file in existing:
            self._delete_remote(run, project_id, remote_file)
        return True

    def _pull_single(self, run: _Run, project_id: str, project_dir: LocalDirectory, file_name: str) -> bool:
        settings = run.config.settings
        if file_name == INSTRUCTIONS_FILENAME:
            body = normalize_instructions(self.remote.get_instructions(run.org_id, project_id), settings)
            if body is None:
                run.result.messages.append(f"{file_name} no longer exists remotely; already resolved")
                return False
            metadata = self._read_metadata(project_dir)
            project = RemoteProject(id=project_id, name=metadata.name if metadata else project_dir.name)
            return self._write_instructions(run, project, project_dir, body)

        matches = self._find_remote_files(run, project_id, file_name)
        if not matches:
            run.result.messages.append(f"{file_name} no longer exists remotely; already resolved")
            return False

        knowledge_dir = self.local.get_directory(project_dir, KNOWLEDGE_DIRNAME)
        local_name = file_name
        for candidate in self._candidate_names(file_name):
            if self.local.file_exists(knowledge_dir, candidate):
                local_name = candidate
                break
        else:
            local_name = normalize_file_name(matches[0].name, settings.auto_add_extension)
        return self._write_if_changed(run, knowledge_dir, local_name, matches[0].content)
