"""Repositories, the git service and active editor tracking."""

from .context_tracker import (
    BlameabilityChangeEvent,
    BlameabilityChangeReason,
    ContextChange,
    ContextKey,
    GitContextTracker,
    TrackerState,
)
from .events import DocumentSnapshot, EditorAccessor, EditorHandle, EventEmitter
from .git_service import GitChangeEvent, GitChangeReason, GitService
from .repository import Repository, RepositoryChange, RepositoryChangeEvent

__all__ = [
    "BlameabilityChangeEvent",
    "BlameabilityChangeReason",
    "ContextChange",
    "ContextKey",
    "DocumentSnapshot",
    "EditorAccessor",
    "EditorHandle",
    "EventEmitter",
    "GitChangeEvent",
    "GitChangeReason",
    "GitContextTracker",
    "GitService",
    "Repository",
    "RepositoryChange",
    "RepositoryChangeEvent",
    "TrackerState",
]
