"""
Unit tests for GitContextTracker.

Events are fed straight into ``process`` for deterministic sequences; the
queue-driven tests start the evaluation loop and wait for it to drain.
"""

import asyncio
from typing import Dict, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from git_context.config import GitContextConfig, TrackerConfig
from git_context.git.executor import GitCommandError
from git_context.models.branch import GitRemote
from git_context.models.uri import GitUri
from git_context.services.context_tracker import (
    BlameabilityChangeReason,
    ContextKey,
    GitContextTracker,
)
from git_context.services.events import (
    BlameFailed,
    DocumentChanged,
    DocumentSnapshot,
    EditorChanged,
    EditorHandle,
    EventEmitter,
    RepositoriesChanged,
)
from git_context.services.git_service import GitService
from git_context.services.repository import Repository, RepositoryChange
from git_context.utils.path_utils import normalize_path
from git_context.utils.sha_utils import DELETED_SHA

EDITOR = EditorHandle("editor-1")
FILE = "/repo/src/a.py"


class FakeEditors:
    """Editor accessor backed by a dict."""

    def __init__(self):
        self.active: Optional[EditorHandle] = None
        self.documents: Dict[EditorHandle, DocumentSnapshot] = {}

    def active_editor(self) -> Optional[EditorHandle]:
        return self.active

    def get_document(self, editor: EditorHandle) -> Optional[DocumentSnapshot]:
        return self.documents.get(editor)


class TestGitContextTracker:
    def setup_method(self):
        self.service = Mock()
        self.service.config = GitContextConfig()
        self.service.on_did_change = EventEmitter("git change")
        self.service.on_did_blame_fail = EventEmitter("blame failure")
        self.service.cache_key = normalize_path
        self.service.get_remotes = AsyncMock(
            return_value=[GitRemote("/repo", "origin", "https://example.com/o/r.git")]
        )

        self.repository = Repository(self.service, "/repo")
        self.service.get_repository = AsyncMock(return_value=self.repository)
        self.service.get_repositories = Mock(return_value=[self.repository])
        self.service.resolve_uri = AsyncMock(
            side_effect=lambda path, sha=None: GitUri.create(path, "/repo", sha)
        )
        self.service.is_tracked = AsyncMock(return_value=True)

        self.editors = FakeEditors()
        self.editors.active = EDITOR
        self.editors.documents[EDITOR] = DocumentSnapshot(FILE)

        self.tracker = GitContextTracker(
            self.service, self.editors, TrackerConfig(debounce_seconds=0.01)
        )
        self.events = []
        self.tracker.on_did_change_blameability.subscribe(self.events.append)
        self.context = []
        self.tracker.on_did_change_context.subscribe(self.context.append)

    def _blameable(self):
        return [event.blameable for event in self.events]

    @pytest.mark.asyncio
    async def test_dirty_round_trip(self):
        await self.tracker.process(EditorChanged(EDITOR, force=True))
        await self.tracker.process(DocumentChanged(DocumentSnapshot(FILE, is_dirty=True)))
        await self.tracker.process(DocumentChanged(DocumentSnapshot(FILE, is_dirty=False)))

        assert self._blameable() == [True, False, True]
        assert [event.reason for event in self.events] == [
            BlameabilityChangeReason.EDITOR_CHANGED,
            BlameabilityChangeReason.DOCUMENT_CHANGED,
            BlameabilityChangeReason.DOCUMENT_CHANGED,
        ]
        assert self.tracker.state.tracked
        assert self.tracker.state.blameable
        assert all(event.editor == EDITOR for event in self.events)

    @pytest.mark.asyncio
    async def test_never_blameable_while_dirty(self):
        await self.tracker.process(EditorChanged(EDITOR, force=True))
        await self.tracker.process(DocumentChanged(DocumentSnapshot(FILE, is_dirty=True)))
        await self.tracker.process(RepositoriesChanged())
        assert not self.tracker.state.blameable

        self.editors.documents[EDITOR] = DocumentSnapshot(FILE, is_dirty=True)
        await self.tracker.process(EditorChanged(EDITOR, force=True))

        assert self.tracker.state.dirty
        assert not self.tracker.state.blameable
        assert self._blameable()[-1] is False

    @pytest.mark.asyncio
    async def test_unchanged_dirty_bit_emits_nothing(self):
        await self.tracker.process(EditorChanged(EDITOR, force=True))
        await self.tracker.process(DocumentChanged(DocumentSnapshot(FILE)))

        assert self._blameable() == [True]

    @pytest.mark.asyncio
    async def test_other_documents_are_ignored(self):
        await self.tracker.process(EditorChanged(EDITOR, force=True))
        await self.tracker.process(
            DocumentChanged(DocumentSnapshot("/repo/other.py", is_dirty=True))
        )

        assert self._blameable() == [True]
        assert not self.tracker.state.dirty

    @pytest.mark.asyncio
    async def test_untracked_file_forces_event(self):
        self.service.is_tracked = AsyncMock(return_value=False)

        await self.tracker.process(EditorChanged(EDITOR, force=True))

        assert self._blameable() == [False]
        assert not self.tracker.state.tracked

    @pytest.mark.asyncio
    async def test_lookup_failure_is_not_tracked(self):
        self.service.is_tracked = AsyncMock(side_effect=GitCommandError("fatal: boom"))

        await self.tracker.process(EditorChanged(EDITOR, force=True))

        assert not self.tracker.state.tracked
        assert not self.tracker.state.blameable
        assert self._blameable() == [False]

    @pytest.mark.asyncio
    async def test_blame_failure_forces_not_blameable(self):
        await self.tracker.process(EditorChanged(EDITOR, force=True))
        await self.tracker.process(BlameFailed("/repo/other.py"))
        assert self._blameable() == [True]

        await self.tracker.process(BlameFailed(FILE))

        assert self._blameable() == [True, False]
        assert self.events[-1].reason == BlameabilityChangeReason.BLAME_FAILED
        assert self.tracker.state.tracked
        assert not self.tracker.state.blameable

    @pytest.mark.asyncio
    async def test_repeated_blame_failure_emits_once(self):
        await self.tracker.process(EditorChanged(EDITOR, force=True))
        await self.tracker.process(BlameFailed(FILE))
        await self.tracker.process(BlameFailed(FILE))

        assert self._blameable() == [True, False]

    @pytest.mark.asyncio
    async def test_lookup_failure_forgets_previous_file(self):
        await self.tracker.process(EditorChanged(EDITOR, force=True))
        assert self.tracker.repository is self.repository
        assert self.tracker.uri.fs_path == FILE

        other = EditorHandle("editor-2")
        self.editors.documents[other] = DocumentSnapshot("/repo/src/b.py")
        self.service.is_tracked = AsyncMock(side_effect=OSError("git not found"))
        await self.tracker.process(EditorChanged(other, force=True))

        assert self.tracker.uri is None
        assert self.tracker.repository is None
        assert not self.tracker.state.tracked
        assert self.tracker.document.path == "/repo/src/b.py"

    @pytest.mark.asyncio
    async def test_no_active_editor(self):
        await self.tracker.process(EditorChanged(EDITOR, force=True))
        await self.tracker.process(EditorChanged(None, force=True))

        assert self._blameable() == [True, False]
        assert self.tracker.uri is None
        assert self.tracker.repository is None
        assert not self.tracker.context(ContextKey.ACTIVE_IS_TRACKED)

    @pytest.mark.asyncio
    async def test_context_flags_published(self):
        await self.tracker.process(EditorChanged(EDITOR, force=True))

        published = {change.key: change.value for change in self.context}
        assert published == {
            ContextKey.ACTIVE_IS_TRACKED: True,
            ContextKey.ACTIVE_IS_BLAMEABLE: True,
            ContextKey.ACTIVE_HAS_REMOTES: True,
            ContextKey.HAS_REMOTES: True,
        }

    @pytest.mark.asyncio
    async def test_remotes_without_active_repository(self):
        self.service.get_repository = AsyncMock(return_value=None)

        await self.tracker.process(EditorChanged(EDITOR, force=True))

        assert not self.tracker.context(ContextKey.ACTIVE_HAS_REMOTES)
        assert self.tracker.context(ContextKey.HAS_REMOTES)

    @pytest.mark.asyncio
    async def test_disable_clears_state_and_ignores_events(self):
        await self.tracker.process(EditorChanged(EDITOR, force=True))

        self.tracker.set_enabled(False)
        await self.tracker.process(EditorChanged(EDITOR, force=True))

        assert self._blameable() == [True, False]
        assert not self.tracker.state.tracked
        assert not self.tracker.enabled


class TestGitContextTrackerLoop:
    """The queue-driven evaluation loop."""

    def setup_method(self):
        self.service = Mock()
        self.service.config = GitContextConfig()
        self.service.on_did_change = EventEmitter("git change")
        self.service.on_did_blame_fail = EventEmitter("blame failure")
        self.service.cache_key = normalize_path
        self.service.get_remotes = AsyncMock(return_value=[])
        self.repository = Repository(self.service, "/repo")
        self.service.get_repository = AsyncMock(return_value=self.repository)
        self.service.get_repositories = Mock(return_value=[self.repository])
        self.service.resolve_uri = AsyncMock(
            side_effect=lambda path, sha=None: GitUri.create(path, "/repo", sha)
        )
        self.service.is_tracked = AsyncMock(return_value=True)

        self.editors = FakeEditors()
        self.editors.active = EDITOR
        self.editors.documents[EDITOR] = DocumentSnapshot(FILE)

        self.tracker = GitContextTracker(
            self.service, self.editors, TrackerConfig(debounce_seconds=0.01)
        )
        self.events = []
        self.tracker.on_did_change_blameability.subscribe(self.events.append)

    @pytest.mark.asyncio
    async def test_start_evaluates_active_editor(self):
        self.tracker.start()
        await self.tracker.join()

        assert [event.blameable for event in self.events] == [True]
        await self.tracker.dispose()

    @pytest.mark.asyncio
    async def test_document_burst_collapses(self):
        self.tracker.start()
        await self.tracker.join()

        for dirty in (True, False, True):
            self.tracker.notify_document_changed(DocumentSnapshot(FILE, is_dirty=dirty))
        await asyncio.sleep(0.05)
        await self.tracker.join()

        assert [event.blameable for event in self.events] == [True, False]
        await self.tracker.dispose()

    @pytest.mark.asyncio
    async def test_repository_change_requeries_tracked(self):
        self.tracker.start()
        await self.tracker.join()
        assert self.service.is_tracked.await_count == 1

        self.service.is_tracked = AsyncMock(return_value=False)
        self.repository.fire_change(RepositoryChange.REPOSITORY)
        await self.tracker.join()

        assert [event.blameable for event in self.events] == [True, False]
        assert not self.tracker.state.tracked
        await self.tracker.dispose()

    @pytest.mark.asyncio
    async def test_remote_change_only_recomputes_remotes(self):
        self.tracker.start()
        await self.tracker.join()

        self.service.get_remotes = AsyncMock(
            return_value=[GitRemote("/repo", "origin", "https://example.com/o/r.git")]
        )
        self.repository.fire_change(RepositoryChange.CONFIG, RepositoryChange.REMOTES)
        await self.tracker.join()

        assert self.service.is_tracked.await_count == 1
        assert self.tracker.context(ContextKey.ACTIVE_HAS_REMOTES)
        await self.tracker.dispose()

    @pytest.mark.asyncio
    async def test_blame_failure_from_service(self):
        self.tracker.start()
        await self.tracker.join()

        self.service.on_did_blame_fail.fire(FILE)
        await self.tracker.join()

        assert [event.blameable for event in self.events] == [True, False]
        await self.tracker.dispose()

    @pytest.mark.asyncio
    async def test_failing_event_does_not_stop_loop(self):
        self.tracker.start()
        await self.tracker.join()

        self.service.get_repositories = Mock(side_effect=RuntimeError("broken"))
        self.tracker.post(RepositoriesChanged())
        await self.tracker.join()

        self.service.get_repositories = Mock(return_value=[])
        self.tracker.post(EditorChanged(None, force=True))
        await self.tracker.join()

        assert [event.blameable for event in self.events] == [True, False]
        await self.tracker.dispose()

    @pytest.mark.asyncio
    async def test_disabled_tracker_ignores_notifications(self):
        self.tracker.set_enabled(False)
        self.events.clear()
        self.tracker.notify_editor_changed(EDITOR)
        self.tracker.notify_document_changed(DocumentSnapshot(FILE, is_dirty=True))
        await asyncio.sleep(0.03)

        assert self.events == []


class TestGitContextTrackerWithService:
    """Tracker wired to a real GitService over a mocked command layer."""

    def setup_method(self):
        config = GitContextConfig(tracker=TrackerConfig(watch_repositories=False))
        self.service = GitService(config, executor=Mock())
        self.service.commands = Mock()
        self.service.commands.revparse_toplevel = AsyncMock(return_value="/repo")
        self.service.commands.ls_files = AsyncMock(return_value="gone.txt")

        self.editors = FakeEditors()
        self.editors.active = EDITOR
        self.tracker = GitContextTracker(self.service, self.editors)
        self.events = []
        self.tracker.on_did_change_blameability.subscribe(self.events.append)

    @pytest.mark.asyncio
    async def test_deleted_revision_is_not_blameable(self):
        self.editors.documents[EDITOR] = DocumentSnapshot(
            "/repo/gone.txt", sha=DELETED_SHA
        )

        await self.tracker.process(EditorChanged(EDITOR, force=True))

        assert not self.tracker.state.tracked
        assert not self.tracker.state.blameable
        assert [event.blameable for event in self.events] == [False]
        self.service.commands.ls_files.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_working_tree_file_is_blameable(self):
        self.editors.documents[EDITOR] = DocumentSnapshot("/repo/gone.txt")

        await self.tracker.process(EditorChanged(EDITOR, force=True))

        assert self.tracker.state.blameable
        assert self.tracker.uri.relative_path == "gone.txt"
