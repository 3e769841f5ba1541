"""
Repository lifecycle and ``.git`` change monitoring.

A ``Repository`` exists for every workspace folder that lives inside a git
work tree. It caches remotes, answers a few repository-wide queries through
the git service, and watches the ``.git`` directory with watchdog so that
HEAD, ref, stash and config changes made outside the engine are reported as
``RepositoryChangeEvent``s.
"""

import asyncio
import logging
import posixpath
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Optional, Set

from watchdog.events import FileSystemEventHandler

from ..models.branch import GitBranch, GitRemote
from ..models.commit import GitStash
from ..models.status import GitStatus
from ..utils.path_utils import normalize_path
from .events import Debouncer, EventEmitter

if TYPE_CHECKING:
    from .git_service import GitService

logger = logging.getLogger(__name__)


class RepositoryChange(Enum):
    CONFIG = "config"
    REMOTES = "remotes"
    REPOSITORY = "repository"
    STASHES = "stashes"


@dataclass
class RepositoryChangeEvent:
    repository: "Repository"
    changes: Set[RepositoryChange] = field(default_factory=set)

    def changed(self, change: RepositoryChange, only: bool = False) -> bool:
        if only:
            return self.changes == {change}
        return change in self.changes


def classify_git_path(path: str) -> Set[RepositoryChange]:
    """Map a changed file under ``.git`` to the kinds of change it signals."""
    normalized = normalize_path(path)
    if normalized.endswith(".lock") or "/.git/objects/" in normalized:
        return set()
    if normalized.endswith(".git/config"):
        return {RepositoryChange.CONFIG, RepositoryChange.REMOTES}
    if normalized.endswith("refs/stash") or normalized.endswith("logs/refs/stash"):
        return {RepositoryChange.STASHES}
    if "/refs/remotes" in normalized:
        return {RepositoryChange.REMOTES}
    return {RepositoryChange.REPOSITORY}


class RepositoryWatchHandler(FileSystemEventHandler):
    """watchdog handler forwarding ``.git`` changes to its repository."""

    def __init__(self, repository: "Repository"):
        super().__init__()
        self.repository = repository

    def on_any_event(self, event):
        if event.is_directory:
            return
        paths = [event.src_path]
        dest_path = getattr(event, "dest_path", None)
        if dest_path:
            paths.append(dest_path)
        for path in paths:
            changes = classify_git_path(str(path))
            if changes:
                self.repository.queue_changes_threadsafe(changes)


class Repository:
    """A git work tree opened for a workspace folder."""

    def __init__(
        self,
        service: "GitService",
        root: str,
        folder: Optional[str] = None,
        debounce_seconds: float = 0.25,
    ):
        self.service = service
        self.path = normalize_path(root)
        self.folder = normalize_path(folder) if folder else self.path
        self.name = posixpath.basename(self.path.rstrip("/"))
        self.debounce_seconds = debounce_seconds

        self.on_did_change: EventEmitter[RepositoryChangeEvent] = EventEmitter(
            f"repository {self.name}"
        )

        self._remotes: Optional[List[GitRemote]] = None
        self._pending_changes: Set[RepositoryChange] = set()
        self._debouncer: Debouncer[None] = Debouncer(
            debounce_seconds, lambda _: self._fire_pending()
        )
        self._observer: Optional[Any] = None
        self._disposed = False

    def __repr__(self) -> str:
        return f"Repository({self.path!r})"

    async def get_remotes(self) -> List[GitRemote]:
        if self._remotes is None:
            self._remotes = await self.service.get_remotes(self.path)
        return self._remotes

    async def has_remotes(self) -> bool:
        remotes = await self.get_remotes()
        return len(remotes) > 0

    async def get_branch(self) -> Optional[GitBranch]:
        return await self.service.get_branch(self.path)

    async def get_status(self) -> Optional[GitStatus]:
        return await self.service.get_status_for_repo(self.path)

    async def get_stash_list(self) -> Optional[GitStash]:
        return await self.service.get_stash_list(self.path)

    def contains(self, path: str) -> bool:
        normalized = normalize_path(path).lower()
        root = self.path.rstrip("/").lower()
        return normalized == root or normalized.startswith(f"{root}/")

    def start_watching(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> bool:
        """Watch ``.git`` for external changes.

        Returns:
            False when there is no ``.git`` directory to watch (e.g. a
            worktree whose ``.git`` is a file)
        """
        git_dir = Path(self.path) / ".git"
        if not git_dir.is_dir():
            logger.info(f"No .git directory to watch for {self.path}")
            return False

        self._debouncer.bind(loop or asyncio.get_running_loop())

        from watchdog.observers import Observer

        self._observer = Observer()
        self._observer.schedule(RepositoryWatchHandler(self), str(git_dir), recursive=True)
        self._observer.start()
        logger.info(f"Watching {git_dir} for repository changes")
        return True

    def stop_watching(self) -> None:
        if self._observer is not None and self._observer.is_alive():
            self._observer.stop()
            self._observer.join(timeout=5.0)
            logger.info(f"Stopped watching {self.path}")
        self._observer = None
        self._debouncer.cancel()

    def queue_changes_threadsafe(self, changes: Set[RepositoryChange]) -> None:
        """Called from watchdog threads."""
        loop = self._debouncer.loop
        if loop is None or self._disposed:
            return
        loop.call_soon_threadsafe(self.queue_changes, changes)

    def queue_changes(self, changes: Set[RepositoryChange]) -> None:
        """Accumulate changes and fire them once the quiet period ends."""
        if self._disposed:
            return
        self._pending_changes |= changes
        self._debouncer.trigger(None)

    def fire_change(self, *changes: RepositoryChange) -> None:
        """Fire a change event immediately."""
        if self._disposed:
            return
        change_set = set(changes)
        if RepositoryChange.CONFIG in change_set or RepositoryChange.REMOTES in change_set:
            self._remotes = None
        logger.debug(f"Repository {self.name} changed: {sorted(c.value for c in change_set)}")
        self.on_did_change.fire(RepositoryChangeEvent(self, change_set))

    def _fire_pending(self) -> None:
        changes = self._pending_changes
        self._pending_changes = set()
        if changes:
            self.fire_change(*changes)

    def dispose(self) -> None:
        self.stop_watching()
        self._disposed = True
        self.on_did_change.clear()
        logger.info(f"Closed repository {self.path}")
