"""Working tree status models."""

import posixpath
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class GitStatusFile:
    """A file entry from ``git status --porcelain``.

    ``index_status`` and ``work_tree_status`` hold the porcelain letter for
    each side, ``None`` when that side is unmodified.
    """

    repo_path: str
    index_status: Optional[str]
    work_tree_status: Optional[str]
    file_name: str
    original_file_name: Optional[str] = None

    @property
    def status(self) -> str:
        return self.index_status or self.work_tree_status or "?"

    @property
    def staged(self) -> bool:
        return self.index_status is not None and self.index_status != "?"

    @property
    def untracked(self) -> bool:
        return self.status == "?"

    @property
    def uri(self) -> str:
        return posixpath.join(self.repo_path, self.file_name)


@dataclass
class GitStatus:
    """Repository status with branch tracking information."""

    repo_path: str
    branch: str = ""
    sha: str = ""
    upstream: Optional[str] = None
    ahead: int = 0
    behind: int = 0
    files: List[GitStatusFile] = field(default_factory=list)

    def get_upstream_status(self) -> str:
        """Render ahead/behind as ``2↑ 1↓``; empty when in sync."""
        if not self.upstream or (self.ahead == 0 and self.behind == 0):
            return ""
        parts = []
        if self.ahead:
            parts.append(f"{self.ahead}↑")
        if self.behind:
            parts.append(f"{self.behind}↓")
        return " ".join(parts)
