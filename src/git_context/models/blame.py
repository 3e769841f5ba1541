"""Blame models."""

from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .commit import GitCommit


@dataclass
class GitBlameLine:
    """Attribution of one line (0-based numbers) to a commit."""

    sha: str
    line: int
    original_line: int


@dataclass
class GitBlameCommit(GitCommit):
    """A commit referenced by blame output, with the lines it owns."""

    file_name: str = ""
    original_file_name: Optional[str] = None
    previous_sha: Optional[str] = None
    previous_file_name: Optional[str] = None
    lines: List[GitBlameLine] = field(default_factory=list)


@dataclass
class GitAuthor:
    name: str
    line_count: int = 0


@dataclass
class GitBlame:
    """Result of ``git blame --incremental`` for one file."""

    repo_path: str
    authors: Dict[str, GitAuthor] = field(default_factory=dict)
    commits: Dict[str, GitBlameCommit] = field(default_factory=dict)
    lines: List[GitBlameLine] = field(default_factory=list)

    def commit_for_line(self, line: int) -> Optional[GitBlameCommit]:
        """Return the commit owning 0-based ``line``.

        ``lines`` is sorted by line number but may start past zero when the
        blame was limited to a range.
        """
        index = bisect_left(self.lines, line, key=lambda blame_line: blame_line.line)
        if index == len(self.lines) or self.lines[index].line != line:
            return None
        return self.commits.get(self.lines[index].sha)
