"""
Git service: high-level queries over the executor and the parsers.

A query such as "log for file X at sha Y" builds its argument vector through
``GitCommands``, runs it through the shared ``GitCommandExecutor`` and hands
the captured text to the matching parser. The service also owns the
repositories opened for workspace folders.
"""

import logging
import os
import posixpath
import re
import tempfile
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from ..config import GitContextConfig
from ..git.commands import GitCommands
from ..git.executor import GitCommandError, GitCommandExecutor
from ..models.blame import GitBlame
from ..models.branch import GitBranch, GitRemote
from ..models.commit import GitCommitType, GitFileStatus, GitLog, GitStash
from ..models.diff import GitDiff, GitDiffShortStat
from ..models.status import GitStatus, GitStatusFile
from ..models.uri import GitUri
from ..parsers import (
    BlameParser,
    BranchParser,
    DiffParser,
    LogParser,
    RemoteParser,
    StashParser,
    StatusParser,
)
from ..utils.path_utils import normalize_path, split_path
from ..utils.sha_utils import is_deleted, is_sha, is_staged_uncommitted, short_form
from .events import EventEmitter
from .repository import Repository

logger = logging.getLogger(__name__)

INVALID_FILE_NAME_CHARS = re.compile(r'[\\/:*?"<>|]')


class GitChangeReason(Enum):
    REPOSITORIES = "repositories"


@dataclass
class GitChangeEvent:
    reason: GitChangeReason


class GitService:
    """Entry point for every git query the engine makes."""

    def __init__(
        self,
        config: Optional[GitContextConfig] = None,
        executor: Optional[GitCommandExecutor] = None,
    ):
        """Initialize the git service.

        Args:
            config: Engine configuration; defaults apply when omitted
            executor: Command executor to share; one is created from
                ``config.git`` when omitted
        """
        self.config = config or GitContextConfig()
        self.executor = executor or GitCommandExecutor(self.config.git)
        self.commands = GitCommands(self.executor)

        self.on_did_change: EventEmitter[GitChangeEvent] = EventEmitter("git change")
        self.on_did_blame_fail: EventEmitter[str] = EventEmitter("blame failure")

        self._repositories: Dict[str, Repository] = {}

    # Repositories

    async def add_workspace_folder(self, folder: str) -> Optional[Repository]:
        """Open the repository containing ``folder``, if there is one."""
        key = normalize_path(folder)
        existing = self._repositories.get(key)
        if existing is not None:
            return existing

        root = await self.get_repo_path(folder)
        if not root:
            logger.info(f"{folder} is not inside a git repository")
            return None

        repository = Repository(
            self,
            root,
            key,
            debounce_seconds=self.config.tracker.repository_debounce_seconds,
        )
        self._repositories[key] = repository
        if self.config.tracker.watch_repositories:
            repository.start_watching()

        logger.info(f"Opened repository {repository.path} for {folder}")
        self.on_did_change.fire(GitChangeEvent(GitChangeReason.REPOSITORIES))
        return repository

    def remove_workspace_folder(self, folder: str) -> None:
        repository = self._repositories.pop(normalize_path(folder), None)
        if repository is None:
            return
        repository.dispose()
        self.on_did_change.fire(GitChangeEvent(GitChangeReason.REPOSITORIES))

    def get_repositories(self) -> List[Repository]:
        return list(self._repositories.values())

    async def get_repository(self, path: str) -> Optional[Repository]:
        """Return the opened repository containing ``path``.

        The innermost match wins so nested repositories resolve correctly.
        """
        matches = [repo for repo in self._repositories.values() if repo.contains(path)]
        if not matches:
            return None
        return max(matches, key=lambda repo: len(repo.path))

    async def get_repo_path(self, path: str) -> Optional[str]:
        """Work tree root for a file or directory, or None outside git."""
        if not path:
            return None
        cwd = path if os.path.isdir(path) else os.path.dirname(path)
        root = await self.commands.revparse_toplevel(cwd)
        return normalize_path(root) if root else None

    def cache_key(self, path: str) -> str:
        return normalize_path(path)

    def dispose(self) -> None:
        for repository in self._repositories.values():
            repository.dispose()
        self._repositories.clear()
        self.on_did_change.clear()
        self.on_did_blame_fail.clear()

    # Files

    async def resolve_uri(self, path: str, sha: Optional[str] = None) -> GitUri:
        repository = await self.get_repository(path)
        repo_path = repository.path if repository else await self.get_repo_path(path)
        return GitUri.create(path, repo_path, sha)

    async def is_tracked(self, uri: GitUri) -> bool:
        """True when git knows the file in the index or at ``uri.sha``."""
        if not uri.repo_path:
            return False
        if uri.sha and is_deleted(uri.sha):
            return False
        data = await self.commands.ls_files(uri.repo_path, uri.relative_path, None)
        if not data and uri.sha and not uri.is_uncommitted:
            data = await self.commands.ls_files(
                uri.repo_path, uri.relative_path, uri.sha
            )
        return bool(data)

    async def is_file_uncommitted(self, uri: GitUri) -> bool:
        if not uri.repo_path:
            return False
        status = await self.get_status_for_file(uri.repo_path, uri.fs_path)
        return status is not None

    async def get_current_user(self, repo_path: Optional[str]) -> Optional[str]:
        return await self.commands.config_get("user.name", repo_path) or None

    async def get_blame_for_file(self, uri: GitUri) -> Optional[GitBlame]:
        """Blame the file; failures notify ``on_did_blame_fail`` subscribers."""
        key = self.cache_key(uri.fs_path)
        try:
            data = await self.commands.blame(
                uri.repo_path,
                uri.fs_path,
                uri.sha,
                ignore_whitespace=self.config.blame.ignore_whitespace,
            )
            current_user = await self.get_current_user(uri.repo_path)
            blame = BlameParser.parse(data, uri.repo_path, uri.fs_path, current_user)
        except GitCommandError as e:
            logger.error(f"Blame failed for {uri.fs_path}: {e}")
            self.on_did_blame_fail.fire(key)
            return None

        if blame is None:
            self.on_did_blame_fail.fire(key)
        return blame

    async def get_versioned_file(
        self, repo_path: Optional[str], file_name: str, sha: str
    ) -> Optional[str]:
        """Write ``file_name`` as of ``sha`` to a temporary file.

        Returns:
            Path of the temporary file, or None when the file does not exist
            at that revision
        """
        data = await self.commands.show(repo_path, file_name, sha, encoding="binary")
        if data is None:
            return None

        revision = "" if is_staged_uncommitted(sha) else sha
        suffix = INVALID_FILE_NAME_CHARS.sub(
            "_", short_form(revision) if is_sha(revision) else revision
        )[:50]
        base = posixpath.basename(normalize_path(file_name))
        stem, ext = os.path.splitext(base)

        with tempfile.NamedTemporaryFile(
            prefix=f"{stem}-{suffix}__", suffix=ext, delete=False
        ) as f:
            f.write(data.encode("latin-1"))
            destination = f.name

        logger.debug(f"Wrote {file_name}@{sha} to {destination}")
        return destination

    # History

    async def get_log_for_repo(
        self,
        repo_path: str,
        sha: Optional[str] = None,
        max_count: Optional[int] = None,
        reverse: bool = False,
    ) -> Optional[GitLog]:
        max_count = max_count if max_count is not None else self.config.log.max_count
        data = await self.commands.log(repo_path, sha, max_count, reverse)
        return LogParser.parse(
            data, GitCommitType.BRANCH, repo_path, None, sha, max_count, reverse
        )

    async def get_log_for_file(
        self,
        repo_path: Optional[str],
        file_name: str,
        sha: Optional[str] = None,
        max_count: Optional[int] = None,
        start_line: Optional[int] = None,
        end_line: Optional[int] = None,
        reverse: bool = False,
        skip_merges: bool = False,
    ) -> Optional[GitLog]:
        max_count = max_count if max_count is not None else self.config.log.max_count
        data = await self.commands.log_file(
            repo_path,
            file_name,
            sha,
            max_count=max_count,
            reverse=reverse,
            start_line=start_line,
            end_line=end_line,
            skip_merges=skip_merges,
        )
        return LogParser.parse(
            data, GitCommitType.FILE, repo_path, file_name, sha, max_count, reverse
        )

    async def get_log_for_search(
        self, repo_path: str, search: List[str], max_count: Optional[int] = None
    ) -> Optional[GitLog]:
        data = await self.commands.log_search(repo_path, search, max_count)
        return LogParser.parse(
            data, GitCommitType.BRANCH, repo_path, None, None, max_count, False
        )

    async def get_stash_list(self, repo_path: str) -> Optional[GitStash]:
        data = await self.commands.stash_list(repo_path)
        return StashParser.parse(data, repo_path)

    # Status, branches and remotes

    async def get_status_for_repo(self, repo_path: str) -> Optional[GitStatus]:
        porcelain_version = self.config.log.porcelain_version
        if porcelain_version >= 2 and not self.config.git.validate_version(2, 11):
            porcelain_version = 1
        data = await self.commands.status(repo_path, porcelain_version)
        return StatusParser.parse(data, repo_path, porcelain_version)

    async def get_status_for_file(
        self, repo_path: str, file_name: str
    ) -> Optional[GitStatusFile]:
        porcelain_version = self.config.log.porcelain_version
        if porcelain_version >= 2 and not self.config.git.validate_version(2, 11):
            porcelain_version = 1
        data = await self.commands.status_file(repo_path, file_name, porcelain_version)
        status = StatusParser.parse(data, repo_path, porcelain_version)
        if status is None or not status.files:
            return None
        return status.files[0]

    async def get_branches(self, repo_path: str) -> List[GitBranch]:
        data = await self.commands.branch(repo_path, all_branches=True)
        return BranchParser.parse(data, repo_path) or []

    async def get_branch(self, repo_path: str) -> Optional[GitBranch]:
        """The checked out branch and its upstream; None on a detached HEAD."""
        data = await self.commands.revparse_current_branch(repo_path)
        if not data:
            return None
        lines = [line for line in data.split("\n") if line]
        if not lines:
            return None
        return GitBranch(
            repo_path=normalize_path(repo_path),
            name=lines[0],
            current=True,
            tracking=lines[1] if len(lines) > 1 else None,
        )

    async def get_remotes(self, repo_path: str) -> List[GitRemote]:
        data = await self.commands.remote(repo_path)
        return RemoteParser.parse(data, repo_path) or []

    # Diffs

    async def get_diff_status(
        self,
        repo_path: str,
        sha1: Optional[str] = None,
        sha2: Optional[str] = None,
        diff_filter: Optional[str] = None,
    ) -> Optional[List[GitFileStatus]]:
        data = await self.commands.diff_name_status(repo_path, sha1, sha2, diff_filter)
        return DiffParser.parse_name_status(data, repo_path)

    async def get_change_stats(
        self, repo_path: str, sha: Optional[str] = None
    ) -> Optional[GitDiffShortStat]:
        data = await self.commands.diff_shortstat(repo_path, sha)
        return DiffParser.parse_shortstat(data)

    async def get_diff_for_file(
        self, uri: GitUri, sha1: Optional[str] = None, sha2: Optional[str] = None
    ) -> Optional[GitDiff]:
        if not uri.repo_path:
            return None
        file, root = split_path(uri.fs_path, uri.repo_path)
        data = await self.commands.diff(
            root, file, sha1, sha2, encoding=self.config.default_encoding
        )
        return DiffParser.parse(data)
