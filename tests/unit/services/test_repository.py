"""
Unit tests for Repository change detection and remote caching.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from git_context.models.branch import GitRemote
from git_context.services.repository import (
    Repository,
    RepositoryChange,
    RepositoryChangeEvent,
    RepositoryWatchHandler,
    classify_git_path,
)


class TestClassifyGitPath:
    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/repo/.git/config", {RepositoryChange.CONFIG, RepositoryChange.REMOTES}),
            ("/repo/.git/refs/stash", {RepositoryChange.STASHES}),
            ("/repo/.git/logs/refs/stash", {RepositoryChange.STASHES}),
            ("/repo/.git/refs/remotes/origin/main", {RepositoryChange.REMOTES}),
            ("/repo/.git/HEAD", {RepositoryChange.REPOSITORY}),
            ("/repo/.git/index", {RepositoryChange.REPOSITORY}),
            ("/repo/.git/refs/heads/main", {RepositoryChange.REPOSITORY}),
            ("C:\\repo\\.git\\config", {RepositoryChange.CONFIG, RepositoryChange.REMOTES}),
            ("/repo/.git/index.lock", set()),
            ("/repo/.git/objects/ab/cdef", set()),
        ],
    )
    def test_classify(self, path, expected):
        assert classify_git_path(path) == expected


class TestRepositoryChangeEvent:
    def test_changed(self):
        event = RepositoryChangeEvent(
            Mock(), {RepositoryChange.CONFIG, RepositoryChange.REMOTES}
        )
        assert event.changed(RepositoryChange.CONFIG)
        assert not event.changed(RepositoryChange.CONFIG, only=True)
        assert not event.changed(RepositoryChange.STASHES)
        assert RepositoryChangeEvent(Mock(), {RepositoryChange.STASHES}).changed(
            RepositoryChange.STASHES, only=True
        )


class TestRepository:
    def setup_method(self):
        self.service = Mock()
        self.service.get_remotes = AsyncMock(
            return_value=[GitRemote("/repo", "origin", "https://example.com/a/b.git")]
        )
        self.repository = Repository(
            self.service, "/repo", "/repo/sub", debounce_seconds=0.01
        )
        self.events = []
        self.repository.on_did_change.subscribe(self.events.append)

    def test_identity(self):
        assert self.repository.path == "/repo"
        assert self.repository.folder == "/repo/sub"
        assert self.repository.name == "repo"

    def test_contains(self):
        assert self.repository.contains("/repo/src/a.py")
        assert self.repository.contains("/REPO/src/a.py")
        assert self.repository.contains("/repo")
        assert not self.repository.contains("/repository/a.py")

    @pytest.mark.asyncio
    async def test_remotes_are_cached_until_config_changes(self):
        assert await self.repository.has_remotes()
        await self.repository.get_remotes()
        assert self.service.get_remotes.await_count == 1

        self.repository.fire_change(RepositoryChange.REPOSITORY)
        await self.repository.get_remotes()
        assert self.service.get_remotes.await_count == 1

        self.repository.fire_change(RepositoryChange.REMOTES)
        await self.repository.get_remotes()
        assert self.service.get_remotes.await_count == 2

    @pytest.mark.asyncio
    async def test_queued_changes_are_coalesced(self):
        self.repository.queue_changes({RepositoryChange.REPOSITORY})
        self.repository.queue_changes({RepositoryChange.STASHES})
        self.repository.queue_changes({RepositoryChange.REPOSITORY})

        await asyncio.sleep(0.05)

        assert len(self.events) == 1
        assert self.events[0].changes == {
            RepositoryChange.REPOSITORY,
            RepositoryChange.STASHES,
        }
        assert self.events[0].repository is self.repository

    @pytest.mark.asyncio
    async def test_watch_handler_marshals_onto_loop(self):
        self.repository._debouncer.bind(asyncio.get_running_loop())
        handler = RepositoryWatchHandler(self.repository)

        def emit():
            handler.on_any_event(
                SimpleNamespace(is_directory=False, src_path="/repo/.git/HEAD")
            )
            handler.on_any_event(
                SimpleNamespace(is_directory=False, src_path="/repo/.git/HEAD.lock")
            )

        await asyncio.to_thread(emit)
        await asyncio.sleep(0.05)

        assert [event.changes for event in self.events] == [
            {RepositoryChange.REPOSITORY}
        ]

    @pytest.mark.asyncio
    async def test_watch_handler_uses_move_destination(self):
        self.repository._debouncer.bind(asyncio.get_running_loop())
        handler = RepositoryWatchHandler(self.repository)

        handler.on_any_event(
            SimpleNamespace(
                is_directory=False,
                src_path="/repo/.git/config.lock",
                dest_path="/repo/.git/config",
            )
        )
        await asyncio.sleep(0.05)

        assert self.events[0].changes == {
            RepositoryChange.CONFIG,
            RepositoryChange.REMOTES,
        }

    def test_start_watching_without_git_dir(self, tmp_path):
        repository = Repository(self.service, str(tmp_path))
        assert repository.start_watching() is False

    @pytest.mark.asyncio
    async def test_start_and_stop_watching(self, tmp_path):
        (tmp_path / ".git").mkdir()
        repository = Repository(self.service, str(tmp_path), debounce_seconds=0.01)

        assert repository.start_watching() is True
        repository.stop_watching()
        repository.dispose()

    def test_disposed_repository_ignores_changes(self):
        self.repository.dispose()
        self.repository.fire_change(RepositoryChange.REPOSITORY)
        assert self.events == []
