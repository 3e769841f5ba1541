"""
Parser for ``git log`` output in the engine's record format.

The log command is run with::

    --format=%H -%nauthor %an%nauthor-date %at%nparents %P%nsummary %B%nfilename ?

plus ``--name-status``, so every commit is a header line carrying the sha,
a fixed sequence of labeled fields, a possibly multi-line message, the
``filename ?`` marker and then the name-status lines for that commit.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from ..models.commit import (
    GitCommitType,
    GitFileStatus,
    GitLog,
    GitLogCommit,
    date_from_timestamp,
)
from ..utils.path_utils import derive_repo_path, normalize_path
from ..utils.sha_utils import SHA_REGEX, is_uncommitted

logger = logging.getLogger(__name__)

FILENAME_MARKER = "filename ?"

# M\tfile, R100\told\tnew, C075\tsrc\tdest
STATUS_LINE_REGEX = re.compile(r"^([A-Z])([0-9]*)\t([^\t]*)(?:\t(.*))?$")


@dataclass
class LogRecord:
    """Raw fields of one commit record before it becomes a model."""

    sha: str
    author: Optional[str] = None
    author_date: Optional[str] = None
    parent_shas: List[str] = field(default_factory=list)
    reflog_selector: Optional[str] = None
    message: str = ""
    file_statuses: List[GitFileStatus] = field(default_factory=list)


def _is_header(line: str) -> bool:
    token = line.split(" ", 1)[0]
    return bool(token) and SHA_REGEX.match(token) is not None


def parse_status_line(line: str, repo_path: Optional[str] = None) -> Optional[GitFileStatus]:
    """Parse one ``--name-status`` line; renames and copies carry two paths."""
    match = STATUS_LINE_REGEX.match(line)
    if match is None:
        return None
    status, _score, first, second = match.groups()
    if second is not None:
        return GitFileStatus(status, second, first, repo_path)
    return GitFileStatus(status, first, None, repo_path)


def iter_log_records(data: str, repo_path: Optional[str] = None) -> Iterator[LogRecord]:
    """Yield commit records in the order git emitted them."""
    lines = data.split("\n")
    count = len(lines)
    i = 0
    record: Optional[LogRecord] = None

    while i < count:
        line = lines[i].rstrip("\r")
        i += 1

        if record is None:
            if _is_header(line):
                record = LogRecord(sha=line.split(" ", 1)[0])
            continue

        key, _, value = line.partition(" ")

        if key == "author":
            record.author = "You" if is_uncommitted(record.sha) else value
        elif key == "author-date":
            record.author_date = value
        elif key == "parents":
            record.parent_shas = value.split()
        elif key == "reflog-selector":
            record.reflog_selector = value
        elif key == "summary":
            message_lines = [value]
            while i < count:
                next_line = lines[i].rstrip("\r")
                if next_line == FILENAME_MARKER:
                    break
                message_lines.append(next_line)
                i += 1
            record.message = "\n".join(message_lines).strip()
        elif line == FILENAME_MARKER:
            while i < count:
                next_line = lines[i].rstrip("\r")
                if _is_header(next_line):
                    break
                i += 1
                if not next_line:
                    continue
                status = parse_status_line(next_line, repo_path)
                if status is not None:
                    record.file_statuses.append(status)
            yield record
            record = None

    # Output cut short after the header fields
    if record is not None:
        yield record


class LogParser:
    """Turns captured log output into a ``GitLog``."""

    @staticmethod
    def parse(
        data: str,
        commit_type: GitCommitType,
        repo_path: Optional[str],
        file_name: Optional[str] = None,
        sha: Optional[str] = None,
        max_count: Optional[int] = None,
        reverse: bool = False,
    ) -> Optional[GitLog]:
        """Parse ``data``.

        Args:
            data: Captured stdout of the log command
            commit_type: ``FILE`` for a single file's history, ``BRANCH`` for
                a repository log
            repo_path: Repository root; derived from ``file_name`` when omitted
            file_name: File the history was requested for
            sha: Revision the history starts from
            max_count: Maximum number of commits requested
            reverse: The log was requested oldest first

        Returns:
            GitLog, or None for empty output
        """
        if not data or not data.strip():
            return None

        commits = {}
        recent: Optional[GitLogCommit] = None
        root = normalize_path(repo_path) if repo_path else None

        for record in iter_log_records(data, root):
            if reverse and max_count and len(commits) >= max_count:
                break

            existing = commits.get(record.sha)
            if existing is not None:
                # -m emits merges once per parent
                for status in record.file_statuses:
                    if status not in existing.file_statuses:
                        existing.add_file_status(status)
                continue

            first_status = record.file_statuses[0] if record.file_statuses else None

            if commit_type == GitCommitType.FILE:
                relative = first_status.file_name if first_status else ""
                if root is None and file_name and relative:
                    root = derive_repo_path(file_name, relative)
                statuses = [first_status] if first_status else []
                commit_file_name = relative
                original_file_name = first_status.original_file_name if first_status else None
                status_letter = first_status.status if first_status else None
            else:
                statuses = list(record.file_statuses)
                commit_file_name = ", ".join(s.file_name for s in statuses if s.file_name)
                original_file_name = None
                status_letter = first_status.status if first_status else None

            for status in statuses:
                status.repo_path = root

            commit = GitLogCommit(
                commit_type=commit_type,
                repo_path=root or "",
                sha=record.sha,
                author=record.author or "",
                date=date_from_timestamp(record.author_date),
                message=record.message,
                parent_shas=record.parent_shas,
                file_statuses=statuses,
                file_name=commit_file_name,
                original_file_name=original_file_name,
                status=status_letter,
            )

            if recent is not None and commit_type == GitCommitType.FILE:
                if reverse:
                    commit.previous_sha = recent.sha
                    commit.previous_file_name = recent.original_file_name or recent.file_name
                else:
                    recent.previous_sha = commit.sha
                    recent.previous_file_name = commit.original_file_name or commit.file_name

            commits[record.sha] = commit
            recent = commit

        for commit in commits.values():
            commit.freeze()

        logger.debug(f"Parsed {len(commits)} commits for {file_name or root}")

        return GitLog(
            repo_path=root or "",
            commits=commits,
            sha=sha,
            max_count=max_count,
            truncated=bool(max_count and len(commits) >= max_count),
        )
