"""Typed results produced by the parsers."""

from .blame import GitAuthor, GitBlame, GitBlameCommit, GitBlameLine
from .branch import GitBranch, GitRemote
from .commit import (
    GitCommit,
    GitCommitType,
    GitFileStatus,
    GitLog,
    GitLogCommit,
    GitStash,
    GitStashCommit,
)
from .diff import GitDiff, GitDiffChunk, GitDiffLine, GitDiffLineState, GitDiffShortStat
from .status import GitStatus, GitStatusFile
from .uri import GitUri

__all__ = [
    "GitAuthor",
    "GitBlame",
    "GitBlameCommit",
    "GitBlameLine",
    "GitBranch",
    "GitCommit",
    "GitCommitType",
    "GitDiff",
    "GitDiffChunk",
    "GitDiffLine",
    "GitDiffLineState",
    "GitDiffShortStat",
    "GitFileStatus",
    "GitLog",
    "GitLogCommit",
    "GitRemote",
    "GitStash",
    "GitStashCommit",
    "GitStatus",
    "GitStatusFile",
    "GitUri",
]
