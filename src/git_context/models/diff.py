"""Diff models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class GitDiffLineState(Enum):
    ADDED = "added"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


@dataclass
class GitDiffLine:
    line: str
    state: GitDiffLineState


@dataclass
class GitDiffChunk:
    """One ``@@`` hunk. Line spans are 1-based and inclusive."""

    chunk: str
    current_start: int
    current_end: int
    previous_start: int
    previous_end: int
    lines: List[GitDiffLine] = field(default_factory=list)


@dataclass
class GitDiff:
    diff: Optional[str] = None
    chunks: List[GitDiffChunk] = field(default_factory=list)


@dataclass
class GitDiffShortStat:
    files: int = 0
    insertions: int = 0
    deletions: int = 0
