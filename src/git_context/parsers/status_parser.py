"""Parser for ``git status --porcelain`` (v1) and ``--porcelain=v2``."""

import re
from typing import List, Optional

from ..models.status import GitStatus, GitStatusFile
from ..utils.path_utils import normalize_path

AHEAD_V1_REGEX = re.compile(r"ahead ([0-9]+)")
BEHIND_V1_REGEX = re.compile(r"behind ([0-9]+)")
NO_COMMITS_V1_PREFIX = "No commits yet on "


def _status_letter(value: str) -> Optional[str]:
    """``" "`` and ``"."`` mean unmodified."""
    value = value.strip()
    if not value or value == ".":
        return None
    return value


def _parse_status_file(
    repo_path: str,
    raw_status: str,
    file_name: str,
    original_file_name: Optional[str] = None,
) -> GitStatusFile:
    index_status = _status_letter(raw_status[0]) if raw_status else None
    work_tree_status = _status_letter(raw_status[1]) if len(raw_status) > 1 else None
    return GitStatusFile(
        repo_path=repo_path,
        index_status=index_status,
        work_tree_status=work_tree_status,
        file_name=file_name,
        original_file_name=original_file_name,
    )


class StatusParser:
    """Porcelain status parser for both schema versions."""

    @staticmethod
    def parse(
        data: str, repo_path: str, porcelain_version: int = 1
    ) -> Optional[GitStatus]:
        """Parse ``data``.

        Leading whitespace is significant in v1 (``" M file"``), so lines
        are never stripped on the left.
        """
        if not data:
            return None

        lines = [line.rstrip("\r") for line in data.split("\n")]
        lines = [line for line in lines if line]
        if not lines:
            return None

        status = GitStatus(repo_path=normalize_path(repo_path))
        if porcelain_version < 2:
            StatusParser._parse_v1(lines, status)
        else:
            StatusParser._parse_v2(lines, status)
        return status

    @staticmethod
    def _parse_v1(lines: List[str], status: GitStatus) -> None:
        for line in lines:
            if line.startswith("##"):
                StatusParser._parse_v1_branch(line[2:].strip(), status)
                continue

            raw_status = line[:2]
            file_name = line[3:]
            if raw_status[0] in ("R", "C") and " -> " in file_name:
                original, _, renamed = file_name.replace('"', "").partition(" -> ")
                entry = _parse_status_file(
                    status.repo_path, raw_status, renamed.strip(), original.strip()
                )
            else:
                entry = _parse_status_file(status.repo_path, raw_status, file_name)
            status.files.append(entry)

    @staticmethod
    def _parse_v1_branch(branch_info: str, status: GitStatus) -> None:
        if branch_info.startswith(NO_COMMITS_V1_PREFIX):
            status.branch = branch_info[len(NO_COMMITS_V1_PREFIX) :]
            return

        branch_part, _, upstream_status = branch_info.partition(" ")
        branch, _, upstream = branch_part.partition("...")
        status.branch = branch
        status.upstream = upstream or None

        if upstream_status:
            ahead = AHEAD_V1_REGEX.search(upstream_status)
            behind = BEHIND_V1_REGEX.search(upstream_status)
            status.ahead = int(ahead.group(1)) if ahead else 0
            status.behind = int(behind.group(1)) if behind else 0

    @staticmethod
    def _parse_v2(lines: List[str], status: GitStatus) -> None:
        for line in lines:
            parts = line.split(" ")

            if line.startswith("#"):
                if len(parts) < 3:
                    continue
                key = parts[1]
                if key == "branch.oid":
                    status.sha = parts[2]
                elif key == "branch.head":
                    status.branch = parts[2]
                elif key == "branch.upstream":
                    status.upstream = parts[2]
                elif key == "branch.ab" and len(parts) >= 4:
                    status.ahead = int(parts[2].lstrip("+"))
                    status.behind = int(parts[3].lstrip("-"))
                continue

            kind = parts[0]
            entry: Optional[GitStatusFile] = None
            if kind == "1":
                # 1 XY sub mH mI mW hH hI path
                entry = _parse_status_file(status.repo_path, parts[1], " ".join(parts[8:]))
            elif kind == "2":
                # 2 XY sub mH mI mW hH hI Xscore path<tab>origPath
                renamed, _, original = " ".join(parts[9:]).partition("\t")
                entry = _parse_status_file(
                    status.repo_path, parts[1], renamed, original or None
                )
            elif kind == "u":
                # u XY sub m1 m2 m3 mW h1 h2 h3 path
                entry = _parse_status_file(status.repo_path, parts[1], " ".join(parts[10:]))
            elif kind == "?":
                entry = _parse_status_file(status.repo_path, "??", " ".join(parts[1:]))

            if entry is not None:
                status.files.append(entry)
