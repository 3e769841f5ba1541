"""
Active editor tracking.

The tracker follows whichever editor is active and derives whether its file
is tracked by git and whether it can currently be blamed. Every notification
(editor switch, document edit, repository change, blame failure) becomes a
``TrackerEvent`` posted to one queue; a single loop evaluates them in order,
so state is only ever mutated from one place.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from ..config import TrackerConfig
from ..git.executor import GitCommandError
from ..models.uri import GitUri
from ..utils.path_utils import normalize_path
from .events import (
    BlameFailed,
    Debouncer,
    DocumentChanged,
    DocumentSnapshot,
    EditorAccessor,
    EditorChanged,
    EditorHandle,
    EventEmitter,
    RepositoriesChanged,
    RepositoryChanged,
    TrackerEvent,
)
from .git_service import GitService
from .repository import Repository, RepositoryChange, RepositoryChangeEvent

logger = logging.getLogger(__name__)


class BlameabilityChangeReason(Enum):
    BLAME_FAILED = "blame-failed"
    DOCUMENT_CHANGED = "document-changed"
    EDITOR_CHANGED = "editor-changed"
    REPO_CHANGED = "repo-changed"


@dataclass(frozen=True)
class BlameabilityChangeEvent:
    blameable: bool
    editor: Optional[EditorHandle]
    reason: BlameabilityChangeReason


class ContextKey(Enum):
    ACTIVE_IS_TRACKED = "git-context:activeIsTracked"
    ACTIVE_IS_BLAMEABLE = "git-context:activeIsBlameable"
    ACTIVE_HAS_REMOTES = "git-context:activeHasRemotes"
    HAS_REMOTES = "git-context:hasRemotes"


@dataclass(frozen=True)
class ContextChange:
    key: ContextKey
    value: bool


@dataclass
class TrackerState:
    dirty: bool = False
    tracked: bool = False
    blameable: bool = False


class GitContextTracker:
    """Derives tracked/blameable state for the active editor.

    Invariant: ``state.blameable`` implies ``state.tracked`` and not
    ``state.dirty``.
    """

    def __init__(
        self,
        git_service: GitService,
        editors: EditorAccessor,
        config: Optional[TrackerConfig] = None,
    ):
        self.git_service = git_service
        self.editors = editors
        self.config = config or git_service.config.tracker

        self.state = TrackerState()
        self.editor: Optional[EditorHandle] = None
        self.document: Optional[DocumentSnapshot] = None
        self.uri: Optional[GitUri] = None
        self.repository: Optional[Repository] = None

        self.on_did_change_blameability: EventEmitter[BlameabilityChangeEvent] = (
            EventEmitter("blameability change")
        )
        self.on_did_change_context: EventEmitter[ContextChange] = EventEmitter(
            "context change"
        )

        self._enabled = self.config.enabled
        self._context: Dict[ContextKey, bool] = {}
        self._queue: "asyncio.Queue[TrackerEvent]" = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._subscriptions: List[Callable[[], None]] = []
        self._repository_subscription: Optional[Callable[[], None]] = None

        self._editor_debouncer: Debouncer[EditorChanged] = Debouncer(
            self.config.debounce_seconds, self.post
        )
        self._document_debouncer: Debouncer[DocumentChanged] = Debouncer(
            self.config.debounce_seconds, self.post
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    # Lifecycle

    def start(self) -> None:
        """Subscribe to the git service and start the evaluation loop."""
        if self._task is not None:
            return

        self._subscriptions = [
            self.git_service.on_did_change.subscribe(
                lambda _: self.post(RepositoriesChanged())
            ),
            self.git_service.on_did_blame_fail.subscribe(
                lambda key: self.post(BlameFailed(key))
            ),
        ]
        self._task = asyncio.get_running_loop().create_task(self.run())
        if self._enabled:
            self.post(EditorChanged(self.editors.active_editor(), force=True))

    async def stop(self) -> None:
        self._editor_debouncer.cancel()
        self._document_debouncer.cancel()
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def dispose(self) -> None:
        await self.stop()
        self._bind_repository(None)
        self.on_did_change_blameability.clear()
        self.on_did_change_context.clear()

    async def run(self) -> None:
        """Evaluate queued events one at a time until cancelled."""
        while True:
            event = await self._queue.get()
            try:
                await self.process(event)
            except Exception as e:
                logger.error(f"Failed to process {type(event).__name__}: {e}")
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every posted event has been evaluated."""
        await self._queue.join()

    def set_enabled(self, enabled: bool) -> None:
        if enabled == self._enabled:
            return
        self._enabled = enabled
        logger.info(f"Editor tracking {'enabled' if enabled else 'disabled'}")

        if enabled:
            self.post(EditorChanged(self.editors.active_editor(), force=True))
            return

        self._editor_debouncer.cancel()
        self._document_debouncer.cancel()
        self._clear()
        self._set_context(ContextKey.ACTIVE_IS_TRACKED, False)
        self.update_blameability(BlameabilityChangeReason.EDITOR_CHANGED, False, True)

    # Notifications

    def post(self, event: TrackerEvent) -> None:
        self._queue.put_nowait(event)

    def notify_editor_changed(self, editor: Optional[EditorHandle]) -> None:
        if not self._enabled:
            return
        self._editor_debouncer.trigger(EditorChanged(editor, force=True))

    def notify_document_changed(self, document: DocumentSnapshot) -> None:
        if not self._enabled:
            return
        self._document_debouncer.trigger(DocumentChanged(document))

    # Evaluation

    async def process(self, event: TrackerEvent) -> None:
        if not self._enabled:
            return

        if isinstance(event, EditorChanged):
            await self._on_editor_changed(event)
        elif isinstance(event, DocumentChanged):
            self._on_document_changed(event)
        elif isinstance(event, RepositoryChanged):
            await self._on_repository_changed(event)
        elif isinstance(event, RepositoriesChanged):
            await self.update_remotes()
        elif isinstance(event, BlameFailed):
            self._on_blame_failed(event)
        else:
            logger.warning(f"Ignoring unknown tracker event {event!r}")

    async def _on_editor_changed(self, event: EditorChanged) -> None:
        self.editor = event.editor
        document = self.editors.get_document(event.editor) if event.editor else None
        if document is None:
            self._clear()
            self._set_context(ContextKey.ACTIVE_IS_TRACKED, False)
            self.update_blameability(
                BlameabilityChangeReason.EDITOR_CHANGED, False, event.force
            )
            await self.update_remotes()
            return

        await self.update_context(
            document, BlameabilityChangeReason.EDITOR_CHANGED, force=event.force
        )

    def _on_document_changed(self, event: DocumentChanged) -> None:
        if self.document is None:
            return
        if normalize_path(event.document.path) != normalize_path(self.document.path):
            return

        self.document = event.document
        if event.document.is_dirty == self.state.dirty:
            return

        self.state.dirty = event.document.is_dirty
        self.update_blameability(BlameabilityChangeReason.DOCUMENT_CHANGED)

    async def _on_repository_changed(self, event: RepositoryChanged) -> None:
        if self.repository is None or event.repo_path != self.repository.path:
            return

        changes = set(event.changes)
        if changes and changes <= {RepositoryChange.CONFIG, RepositoryChange.REMOTES}:
            await self.update_remotes()
            return

        if self.document is not None:
            await self.update_context(
                self.document, BlameabilityChangeReason.REPO_CHANGED
            )
        else:
            await self.update_remotes()

    def _on_blame_failed(self, event: BlameFailed) -> None:
        if self.uri is None:
            return
        if self.git_service.cache_key(self.uri.fs_path) != event.key:
            return
        logger.debug(f"Blame failed for active file {self.uri.fs_path}")
        self.update_blameability(BlameabilityChangeReason.BLAME_FAILED, False)

    async def update_context(
        self,
        document: DocumentSnapshot,
        reason: BlameabilityChangeReason,
        force: bool = False,
    ) -> None:
        """Re-resolve the document and recompute every derived flag."""
        self.document = document
        self.state.dirty = document.is_dirty

        try:
            repository = await self.git_service.get_repository(document.path)
            self._bind_repository(repository)
            self.uri = await self.git_service.resolve_uri(document.path, document.sha)
            tracked = await self.git_service.is_tracked(self.uri)
        except (GitCommandError, OSError) as e:
            logger.error(f"Failed to resolve git state for {document.path}: {e}")
            self.uri = None
            self._bind_repository(None)
            tracked = False

        self.state.tracked = tracked
        self._set_context(ContextKey.ACTIVE_IS_TRACKED, tracked)
        self.update_blameability(reason, force=force)
        await self.update_remotes()

    def update_blameability(
        self,
        reason: BlameabilityChangeReason,
        blameable: Optional[bool] = None,
        force: bool = False,
    ) -> None:
        """Recompute blameability; fire only when it changed or when forced."""
        if blameable is None:
            blameable = self.state.tracked and not self.state.dirty
        else:
            blameable = blameable and self.state.tracked and not self.state.dirty

        if not force and blameable == self.state.blameable:
            return

        self.state.blameable = blameable
        self._set_context(ContextKey.ACTIVE_IS_BLAMEABLE, blameable)
        self.on_did_change_blameability.fire(
            BlameabilityChangeEvent(blameable, self.editor, reason)
        )

    async def update_remotes(self) -> None:
        active_has_remotes = False
        if self.repository is not None:
            try:
                active_has_remotes = await self.repository.has_remotes()
            except (GitCommandError, OSError) as e:
                logger.warning(f"Failed to read remotes of {self.repository.path}: {e}")
        self._set_context(ContextKey.ACTIVE_HAS_REMOTES, active_has_remotes)

        has_remotes = active_has_remotes
        if not has_remotes:
            for repository in self.git_service.get_repositories():
                try:
                    if await repository.has_remotes():
                        has_remotes = True
                        break
                except (GitCommandError, OSError) as e:
                    logger.warning(f"Failed to read remotes of {repository.path}: {e}")
        self._set_context(ContextKey.HAS_REMOTES, has_remotes)

    def context(self, key: ContextKey) -> bool:
        return self._context.get(key, False)

    # Internals

    def _set_context(self, key: ContextKey, value: bool) -> None:
        if self._context.get(key) == value:
            return
        self._context[key] = value
        self.on_did_change_context.fire(ContextChange(key, value))

    def _bind_repository(self, repository: Optional[Repository]) -> None:
        if repository is self.repository:
            return
        if self._repository_subscription is not None:
            self._repository_subscription()
            self._repository_subscription = None

        self.repository = repository
        if repository is not None:
            self._repository_subscription = repository.on_did_change.subscribe(
                self._on_repository_event
            )

    def _on_repository_event(self, event: RepositoryChangeEvent) -> None:
        self.post(RepositoryChanged(event.repository.path, frozenset(event.changes)))

    def _clear(self) -> None:
        self.document = None
        self.uri = None
        self._bind_repository(None)
        self.state.dirty = False
        self.state.tracked = False
