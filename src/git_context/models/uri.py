"""File identity inside a repository at an optional revision."""

import posixpath
from dataclasses import dataclass
from typing import Optional

from ..utils.path_utils import normalize_path, split_path
from ..utils.sha_utils import is_staged_uncommitted, is_uncommitted, short_form


@dataclass(frozen=True)
class GitUri:
    """A file path, the repository it lives in and a revision.

    ``sha`` is ``None`` for the working tree copy.
    """

    fs_path: str
    repo_path: Optional[str] = None
    sha: Optional[str] = None

    @classmethod
    def create(
        cls, fs_path: str, repo_path: Optional[str] = None, sha: Optional[str] = None
    ) -> "GitUri":
        return cls(
            normalize_path(fs_path),
            normalize_path(repo_path) if repo_path else None,
            sha,
        )

    @property
    def file_name(self) -> str:
        return posixpath.basename(self.fs_path)

    @property
    def relative_path(self) -> str:
        """Path relative to the repository root, or the full path without one."""
        if not self.repo_path:
            return self.fs_path
        relative, _ = split_path(self.fs_path, self.repo_path)
        return relative

    @property
    def short_sha(self) -> str:
        return short_form(self.sha) if self.sha else ""

    @property
    def is_uncommitted(self) -> bool:
        return self.sha is None or is_uncommitted(self.sha)

    @property
    def is_staged_uncommitted(self) -> bool:
        return self.sha is not None and is_staged_uncommitted(self.sha)

    def with_sha(self, sha: Optional[str]) -> "GitUri":
        return GitUri(self.fs_path, self.repo_path, sha)
