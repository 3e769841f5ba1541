"""Path normalization relative to a repository root."""

import posixpath
from pathlib import Path
from typing import Optional, Tuple, Union

PathLike = Union[str, Path]


def normalize_path(file_name: Optional[PathLike]) -> str:
    """Convert ``file_name`` to forward-slash form."""
    if not file_name:
        return ""
    return str(file_name).replace("\\", "/")


def split_path(
    file_name: PathLike, repo_path: Optional[PathLike] = None, extract: bool = True
) -> Tuple[str, Optional[str]]:
    """Split ``file_name`` into ``(relative_file, root)``.

    Args:
        file_name: Absolute or relative file name
        repo_path: Repository root; when given, it is stripped from the front
            of ``file_name`` (case-insensitively)
        extract: Without a root, derive ``root`` from the directory of
            ``file_name`` and keep only its base name

    Returns:
        Tuple of (file name relative to root, root)
    """
    file_str = normalize_path(file_name)

    if repo_path:
        root = normalize_path(repo_path)
        prefix = (root if root.endswith("/") else f"{root}/").lower()
        if file_str.lower().startswith(prefix):
            file_str = file_str[len(prefix) :]
        return file_str, root

    if extract:
        return posixpath.basename(file_str), posixpath.dirname(file_str)

    return file_str, None


def derive_repo_path(file_name: PathLike, relative_file_name: str) -> str:
    """Recover the repository root from an absolute file name.

    git reports file names relative to the root; removing that suffix from
    the absolute name the query was made for leaves the root.
    """
    file_str = normalize_path(file_name)
    relative = normalize_path(relative_file_name)
    suffix = f"/{relative}" if file_str.startswith("/") else relative
    if relative and file_str.lower().endswith(suffix.lower()):
        return file_str[: len(file_str) - len(suffix)]
    return posixpath.dirname(file_str)
