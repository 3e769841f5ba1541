"""Parsers for ``git diff`` output: hunks, ``--name-status`` and ``--shortstat``."""

import re
from typing import List, Optional

from ..models.commit import GitFileStatus
from ..models.diff import (
    GitDiff,
    GitDiffChunk,
    GitDiffLine,
    GitDiffLineState,
    GitDiffShortStat,
)

NAME_STATUS_REGEX = re.compile(r"^(.*?)\t(.*?)(?:\t(.*?))?$", re.MULTILINE)
SHORTSTAT_REGEX = re.compile(
    r"^\s*(\d+)\sfiles? changed"
    r"(?:,\s+(\d+)\s+insertions?\(\+\))?"
    r"(?:,\s+(\d+)\s+deletions?\(-\))?"
)
HUNK_HEADER_REGEX = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


def _span(start: str, count: Optional[str]) -> tuple:
    first = int(start)
    length = int(count) if count is not None else 1
    return first, first + length - 1


class DiffParser:
    """Stateless diff output parsers."""

    @staticmethod
    def parse(data: str) -> Optional[GitDiff]:
        """Split a unified diff into hunks with per-line state."""
        if not data:
            return None

        chunks: List[GitDiffChunk] = []
        current: Optional[GitDiffChunk] = None
        chunk_lines: List[str] = []

        def close() -> None:
            if current is not None:
                current.chunk = "\n".join(chunk_lines)
                chunks.append(current)

        for raw_line in data.split("\n"):
            line = raw_line.rstrip("\r")
            header = HUNK_HEADER_REGEX.match(line)
            if header is not None:
                close()
                previous_start, previous_end = _span(header.group(1), header.group(2))
                current_start, current_end = _span(header.group(3), header.group(4))
                current = GitDiffChunk(
                    chunk="",
                    current_start=current_start,
                    current_end=current_end,
                    previous_start=previous_start,
                    previous_end=previous_end,
                )
                chunk_lines = []
                continue

            if current is None or not line or line.startswith("\\"):
                continue

            chunk_lines.append(line)
            marker, text = line[0], line[1:]
            if marker == "+":
                current.lines.append(GitDiffLine(text, GitDiffLineState.ADDED))
            elif marker == "-":
                current.lines.append(GitDiffLine(text, GitDiffLineState.REMOVED))
            else:
                current.lines.append(GitDiffLine(text, GitDiffLineState.UNCHANGED))

        close()
        return GitDiff(diff=data, chunks=chunks)

    @staticmethod
    def parse_name_status(
        data: str, repo_path: Optional[str] = None
    ) -> Optional[List[GitFileStatus]]:
        """Parse ``--name-status`` lines; renames and copies carry two paths."""
        if not data:
            return None

        statuses: List[GitFileStatus] = []
        for match in NAME_STATUS_REGEX.finditer(data):
            code, first, second = match.groups()
            if not code:
                continue
            if second is None:
                statuses.append(GitFileStatus(code[0], first, None, repo_path))
            else:
                statuses.append(GitFileStatus(code[0], second, first, repo_path))
        return statuses

    @staticmethod
    def parse_shortstat(data: str) -> Optional[GitDiffShortStat]:
        """Extract the counts from a ``--shortstat`` summary line."""
        if not data:
            return None

        match = SHORTSTAT_REGEX.search(data)
        if match is None:
            return None

        files, insertions, deletions = match.groups()
        return GitDiffShortStat(
            files=int(files),
            insertions=int(insertions) if insertions else 0,
            deletions=int(deletions) if deletions else 0,
        )
