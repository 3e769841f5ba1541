"""
Parser for ``git blame --incremental`` output.

Incremental blame streams one record per contiguous range of lines::

    <sha> <original line> <final line> <line count>
    author ...            \\
    author-time ...        | only the first time <sha> is seen
    summary ...           /
    previous <sha> <file>
    filename <file>

A commit's metadata is written once; later ranges of the same commit
repeat only the header (and ``filename``). The parser keeps one commit
record per sha and a separate list of line attributions.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..models.blame import GitAuthor, GitBlame, GitBlameCommit, GitBlameLine
from ..models.commit import GitCommitType, date_from_timestamp
from ..utils.path_utils import derive_repo_path, normalize_path
from ..utils.sha_utils import is_uncommitted

logger = logging.getLogger(__name__)

HEADER_REGEX = re.compile(r"^([0-9a-f]{40}) (\d+) (\d+)(?: (\d+))?$")


@dataclass
class _BlameEntry:
    sha: str
    original_line: int
    line: int
    line_count: int
    author: Optional[str] = None
    author_date: Optional[str] = None
    summary: Optional[str] = None
    previous_sha: Optional[str] = None
    previous_file_name: Optional[str] = None
    file_name: Optional[str] = None


class BlameParser:
    """Turns captured incremental blame output into a ``GitBlame``."""

    @staticmethod
    def parse(
        data: str,
        repo_path: Optional[str],
        file_name: str,
        current_user: Optional[str] = None,
    ) -> Optional[GitBlame]:
        """Parse ``data``.

        Args:
            data: Captured stdout of ``git blame --incremental``
            repo_path: Repository root; derived from ``file_name`` when omitted
            file_name: File that was blamed
            current_user: Configured ``user.name``; rendered as ``You``

        Returns:
            GitBlame, or None for empty output
        """
        if not data or not data.strip():
            return None

        root = normalize_path(repo_path) if repo_path else None
        commits: Dict[str, GitBlameCommit] = {}
        authors: Dict[str, GitAuthor] = {}
        lines: List[GitBlameLine] = []
        entry: Optional[_BlameEntry] = None

        def finish(entry: _BlameEntry) -> None:
            nonlocal root
            if root is None and entry.file_name:
                root = derive_repo_path(file_name, entry.file_name)

            commit = commits.get(entry.sha)
            if commit is None:
                author = entry.author or ""
                if is_uncommitted(entry.sha) or (current_user and author == current_user):
                    author = "You"
                commit = GitBlameCommit(
                    commit_type=GitCommitType.BLAME,
                    repo_path=root or "",
                    sha=entry.sha,
                    author=author,
                    date=date_from_timestamp(entry.author_date),
                    message=entry.summary or "",
                    file_name=entry.file_name or "",
                    previous_sha=entry.previous_sha,
                    previous_file_name=entry.previous_file_name,
                )
                commits[entry.sha] = commit

            author_stats = authors.get(commit.author)
            if author_stats is None:
                author_stats = GitAuthor(commit.author)
                authors[commit.author] = author_stats
            author_stats.line_count += entry.line_count

            for offset in range(entry.line_count):
                blame_line = GitBlameLine(
                    sha=entry.sha,
                    line=entry.line + offset - 1,
                    original_line=entry.original_line + offset - 1,
                )
                commit.lines.append(blame_line)
                lines.append(blame_line)

        for raw_line in data.split("\n"):
            line = raw_line.rstrip("\r")
            if not line:
                continue

            header = HEADER_REGEX.match(line)
            if header is not None:
                if entry is not None:
                    finish(entry)
                sha, original_line, final_line, line_count = header.groups()
                entry = _BlameEntry(
                    sha=sha,
                    original_line=int(original_line),
                    line=int(final_line),
                    line_count=int(line_count) if line_count else 1,
                )
                continue

            if entry is None:
                continue

            key, _, value = line.partition(" ")
            if key == "author":
                entry.author = value
            elif key == "author-time":
                entry.author_date = value
            elif key == "summary":
                entry.summary = value
            elif key == "previous":
                previous_sha, _, previous_file = value.partition(" ")
                entry.previous_sha = previous_sha
                entry.previous_file_name = previous_file or None
            elif key == "filename":
                entry.file_name = value
                finish(entry)
                entry = None

        if entry is not None:
            finish(entry)

        for commit in commits.values():
            commit.lines.sort(key=lambda blame_line: blame_line.line)
            if root and not commit.repo_path:
                commit.repo_path = root
            commit.freeze()

        lines.sort(key=lambda blame_line: blame_line.line)
        sorted_authors = dict(
            sorted(authors.items(), key=lambda item: item[1].line_count, reverse=True)
        )

        logger.debug(
            f"Parsed blame for {file_name}: {len(commits)} commits, {len(lines)} lines"
        )

        return GitBlame(
            repo_path=root or "",
            authors=sorted_authors,
            commits=commits,
            lines=lines,
        )
