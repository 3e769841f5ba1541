"""Commit, log and stash models."""

import posixpath
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence

from ..utils.sha_utils import (
    is_staged_uncommitted,
    is_uncommitted,
    short_form,
)


class GitCommitType(Enum):
    """Which kind of query produced a commit."""

    BLAME = "blame"
    BRANCH = "branch"
    FILE = "file"
    STASH = "stash"


@dataclass
class GitFileStatus:
    """One ``--name-status`` entry: status letter plus file name(s)."""

    status: str
    file_name: str
    original_file_name: Optional[str] = None
    repo_path: Optional[str] = None

    @property
    def is_rename(self) -> bool:
        return self.original_file_name is not None


def date_from_timestamp(value: Optional[str]) -> datetime:
    """Convert a unix-seconds string to an aware UTC datetime."""
    try:
        seconds = int(value) if value else 0
    except ValueError:
        seconds = 0
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


@dataclass
class GitCommit:
    """A commit as seen from one repository."""

    commit_type: GitCommitType
    repo_path: str
    sha: str
    author: str = ""
    date: datetime = field(default_factory=lambda: datetime.fromtimestamp(0, tz=timezone.utc))
    message: str = ""
    parent_shas: List[str] = field(default_factory=list)
    file_statuses: List[GitFileStatus] = field(default_factory=list)
    frozen: bool = field(default=False, repr=False, compare=False)

    @property
    def summary(self) -> str:
        """First line of the commit message."""
        return self.message.split("\n", 1)[0]

    @property
    def short_sha(self) -> str:
        return short_form(self.sha)

    @property
    def is_staged_uncommitted(self) -> bool:
        return is_staged_uncommitted(self.sha)

    @property
    def is_uncommitted(self) -> bool:
        return is_uncommitted(self.sha)

    def add_file_status(self, status: GitFileStatus) -> None:
        """Append a file status; only allowed until :meth:`freeze` is called."""
        if self.frozen:
            raise RuntimeError(f"Commit {self.short_sha} is frozen")
        self.file_statuses.append(status)

    def freeze(self) -> None:
        self.frozen = True


@dataclass
class GitLogCommit(GitCommit):
    """A commit scoped to a single file of its history.

    ``previous_sha`` and ``previous_file_name`` point at the next older
    commit that touched the same file, as found in the file's own log.
    """

    file_name: str = ""
    original_file_name: Optional[str] = None
    status: Optional[str] = None
    previous_sha: Optional[str] = None
    previous_file_name: Optional[str] = None

    @property
    def uri(self) -> str:
        return posixpath.join(self.repo_path, self.file_name)

    @property
    def previous_uri(self) -> str:
        return posixpath.join(
            self.repo_path,
            self.previous_file_name or self.original_file_name or self.file_name,
        )

    @property
    def previous_ref(self) -> str:
        """The revision to diff against when showing this commit's changes."""
        if self.previous_sha:
            return self.previous_sha
        if self.parent_shas:
            return self.parent_shas[0]
        return f"{self.sha}^"

    @property
    def previous_short_sha(self) -> str:
        return short_form(self.previous_ref)


@dataclass
class GitStashCommit(GitLogCommit):
    """A stash entry, identified by its reflog selector (``stash@{0}``)."""

    stash_name: str = ""


@dataclass
class GitLog:
    """Ordered history; ``commits`` keeps git's emission order."""

    repo_path: str
    commits: Dict[str, GitLogCommit] = field(default_factory=dict)
    sha: Optional[str] = None
    max_count: Optional[int] = None
    truncated: bool = False

    def __len__(self) -> int:
        return len(self.commits)

    def first(self) -> Optional[GitLogCommit]:
        return next(iter(self.commits.values()), None)

    def shas(self) -> Sequence[str]:
        return list(self.commits.keys())


@dataclass
class GitStash:
    """Stash list keyed by reflog selector."""

    repo_path: str
    commits: Dict[str, GitStashCommit] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.commits)
