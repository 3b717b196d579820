"""Change detection between a remote project and its local folder.

Files are compared by content hash. Both sides are keyed by their normalized
local file name, and the project's instructions document takes part in the
comparison under the ``INSTRUCTIONS_FILENAME`` sentinel name.
"""

import logging
from dataclasses import dataclass, field

from ..models.config import ProjectMetadata, SyncSettings
from ..models.results import ModifiedFileInfo, ProjectDiff, RenamedFile
from .filesystem import LocalDirectory, LocalReadError, LocalStore, normalize_file_name
from .frontmatter import strip_frontmatter
from .hashing import compute_hash
from .remote import RemoteFile, RemoteProject, RemoteStore

logger = logging.getLogger(__name__)

INSTRUCTIONS_FILENAME = "AGENTS.md"
KNOWLEDGE_DIRNAME = "knowledge"
CONVERSATIONS_DIRNAME = "conversations"
METADATA_DIRNAME = ".projectsync"
METADATA_FILENAME = "project.json"


def normalize_instructions(content: str | None, settings: SyncSettings) -> str | None:
    """Comparable form of an instructions document, None when blank.

    With ``ensure_frontmatter`` the frontmatter block is local-only and is not
    part of the synchronized content.
    """
    if content is None:
        return None
    if settings.ensure_frontmatter:
        content = strip_frontmatter(content)
    content = content.strip()
    return content or None


def read_knowledge_files(
    local: LocalStore,
    knowledge_dir: LocalDirectory,
    add_extension: bool,
) -> dict[str, tuple[str, str]]:
    """Text files of a knowledge folder as normalized name -> (actual name, content).

    Files that are not UTF-8 text, and files named like the instructions
    document, are not knowledge files and are left alone.
    """
    files: dict[str, tuple[str, str]] = {}
    for actual in local.list_files(knowledge_dir):
        name = normalize_file_name(actual, add_extension)
        if name == INSTRUCTIONS_FILENAME:
            logger.warning("Ignoring %s in %s: name is reserved", actual, knowledge_dir.path)
            continue
        try:
            content = local.read_text_file(knowledge_dir, actual)
        except LocalReadError as e:
            logger.warning("Skipping non-text file: %s", e)
            continue
        if content is None or name in files:
            continue
        files[name] = (actual, content)
    return files


@dataclass
class ProjectSnapshot:
    """Both sides of one project as read at diff time."""

    project: RemoteProject
    folder: str
    project_dir: LocalDirectory
    knowledge_dir: LocalDirectory
    # normalized name -> remote file
    remote_files: dict[str, RemoteFile] = field(default_factory=dict)
    remote_instructions: str | None = None
    # normalized name -> actual local file name
    local_names: dict[str, str] = field(default_factory=dict)
    # normalized name -> local content (comparable form for instructions)
    local_contents: dict[str, str] = field(default_factory=dict)
    metadata: ProjectMetadata | None = None

    def remote_content(self, name: str) -> str | None:
        if name == INSTRUCTIONS_FILENAME:
            return self.remote_instructions
        remote_file = self.remote_files.get(name)
        return remote_file.content if remote_file else None

    def local_content(self, name: str) -> str | None:
        return self.local_contents.get(name)

    @property
    def remote_names(self) -> set[str]:
        names = set(self.remote_files)
        if self.remote_instructions is not None:
            names.add(INSTRUCTIONS_FILENAME)
        return names


def detect_renames(
    remote_only: list[str],
    local_only: list[str],
    remote_contents: dict[str, str],
    local_contents: dict[str, str],
    known_hashes: dict[str, str] | None = None,
) -> tuple[list[RenamedFile], list[str], list[str]]:
    """Match remote-only and local-only files with identical content.

    A one-pass join on content hash; any content change after a rename means
    the pair is not recognized and stays as one removal plus one addition.

    Args:
        remote_only: Names present only remotely
        local_only: Names present only locally
        remote_contents: Remote content by name
        local_contents: Local content by name
        known_hashes: Names and hashes recorded at the last sync, used to tell
            which side performed the rename

    Returns:
        (renames, remaining remote-only names, remaining local-only names)
    """
    known = known_hashes or {}
    by_hash: dict[str, str] = {}
    for name in remote_only:
        by_hash.setdefault(compute_hash(remote_contents[name]), name)

    renames: list[RenamedFile] = []
    matched_remote: set[str] = set()
    matched_local: set[str] = set()
    for name in local_only:
        old_name = by_hash.pop(compute_hash(local_contents[name]), None)
        if old_name is None:
            continue

        if old_name in known and name not in known:
            origin = "local"
        elif name in known and old_name not in known:
            origin = "remote"
        else:
            origin = "unknown"

        renames.append(RenamedFile(old_name=old_name, new_name=name, origin=origin))
        matched_remote.add(old_name)
        matched_local.add(name)

    return (
        renames,
        [n for n in remote_only if n not in matched_remote],
        [n for n in local_only if n not in matched_local],
    )


class DiffEngine:
    """Computes per-project differences between remote and local state."""

    def __init__(
        self,
        remote: RemoteStore,
        local: LocalStore,
        settings: SyncSettings,
    ) -> None:
        self.remote = remote
        self.local = local
        self.settings = settings

    def snapshot_project(
        self,
        org_id: str,
        project: RemoteProject,
        project_dir: LocalDirectory,
        metadata: ProjectMetadata | None = None,
    ) -> ProjectSnapshot:
        """Read both sides of a project.

        Raises:
            APIError: If the remote file list or instructions cannot be fetched
            LocalReadError: If the local instructions document is not text
        """
        knowledge_dir = self.local.get_directory(project_dir, KNOWLEDGE_DIRNAME)
        snapshot = ProjectSnapshot(
            project=project,
            folder=project_dir.name,
            project_dir=project_dir,
            knowledge_dir=knowledge_dir,
            metadata=metadata,
        )

        add_ext = self.settings.auto_add_extension
        for remote_file in self.remote.list_files(org_id, project.id):
            name = normalize_file_name(remote_file.name, add_ext)
            if name == INSTRUCTIONS_FILENAME:
                continue
            if name in snapshot.remote_files:
                logger.warning(
                    "Duplicate remote file %s in %s; keeping the first", name, project.name
                )
                continue
            snapshot.remote_files[name] = remote_file

        snapshot.remote_instructions = normalize_instructions(
            self.remote.get_instructions(org_id, project.id), self.settings
        )

        for name, (actual, content) in read_knowledge_files(self.local, knowledge_dir, add_ext).items():
            snapshot.local_names[name] = actual
            snapshot.local_contents[name] = content

        instructions = normalize_instructions(
            self.local.read_text_file(project_dir, INSTRUCTIONS_FILENAME), self.settings
        )
        if instructions is not None:
            snapshot.local_names[INSTRUCTIONS_FILENAME] = INSTRUCTIONS_FILENAME
            snapshot.local_contents[INSTRUCTIONS_FILENAME] = instructions

        return snapshot

    def diff_snapshot(self, snapshot: ProjectSnapshot) -> ProjectDiff:
        """Categorize files of a snapshot into remote-only, local-only, modified and renamed."""
        remote_names = snapshot.remote_names
        local_names = set(snapshot.local_contents)

        remote_only = sorted(remote_names - local_names)
        local_only = sorted(local_names - remote_names)

        # The instructions document is never part of a rename
        rename_remote = [n for n in remote_only if n != INSTRUCTIONS_FILENAME]
        rename_local = [n for n in local_only if n != INSTRUCTIONS_FILENAME]
        renames, rest_remote, rest_local = detect_renames(
            rename_remote,
            rename_local,
            {n: snapshot.remote_content(n) or "" for n in rename_remote},
            snapshot.local_contents,
            snapshot.metadata.file_hashes if snapshot.metadata else None,
        )
        if INSTRUCTIONS_FILENAME in remote_only:
            rest_remote.append(INSTRUCTIONS_FILENAME)
        if INSTRUCTIONS_FILENAME in local_only:
            rest_local.append(INSTRUCTIONS_FILENAME)

        diff = ProjectDiff(
            name=snapshot.project.name,
            id=snapshot.project.id,
            folder=snapshot.folder,
            remote_only_files=sorted(rest_remote),
            local_only_files=sorted(rest_local),
            renamed_files=renames,
        )

        for name in sorted(remote_names & local_names):
            remote_hash = compute_hash(snapshot.remote_content(name) or "")
            local_hash = compute_hash(snapshot.local_contents[name])
            if remote_hash == local_hash:
                continue
            diff.modified_files.append(name)
            diff.modified_files_info[name] = ModifiedFileInfo(
                local_time=self._local_time(snapshot, name),
                remote_time=self._remote_time(snapshot, name),
            )

        return diff

    def compare_project(
        self,
        org_id: str,
        project: RemoteProject,
        project_dir: LocalDirectory,
        metadata: ProjectMetadata | None = None,
    ) -> ProjectDiff:
        """Compute the diff of one matched project."""
        return self.diff_snapshot(self.snapshot_project(org_id, project, project_dir, metadata))

    def _local_time(self, snapshot: ProjectSnapshot, name: str):
        if name == INSTRUCTIONS_FILENAME:
            return self.local.get_modified_time(snapshot.project_dir, INSTRUCTIONS_FILENAME)
        return self.local.get_modified_time(snapshot.knowledge_dir, snapshot.local_names[name])

    @staticmethod
    def _remote_time(snapshot: ProjectSnapshot, name: str):
        if name == INSTRUCTIONS_FILENAME:
            return snapshot.project.updated_at
        remote_file = snapshot.remote_files.get(name)
        return remote_file.created_at if remote_file else None
