"""
Commit id classification.

Git itself only knows real object ids. The engine adds pseudo ids for the
index (staged but uncommitted), the working tree (uncommitted) and a deleted
marker, and every other component relies on these being told apart by a pure
pattern match on the string.
"""

import re
from enum import Enum
from typing import Optional

STAGED_UNCOMMITTED_SHA = "0000000000000000000000000000000000000000:"
UNCOMMITTED_SHA = "0000000000000000000000000000000000000000"
DELETED_SHA = "ffffffffffffffffffffffffffffffffffffffff"

SHA_REGEX = re.compile(r"^[0-9a-f]{40}(\^[0-9]*?)??( -)?$")
STAGED_UNCOMMITTED_REGEX = re.compile(r"^[0]{40}(\^[0-9]*?)??:$")
UNCOMMITTED_REGEX = re.compile(r"^[0]{40}(\^[0-9]*?)??:??$")


class CommitIdKind(Enum):
    """The four classes a commit id string can fall into."""

    NORMAL = "normal"
    STAGED_UNCOMMITTED = "staged-uncommitted"
    UNCOMMITTED = "uncommitted"
    DELETED = "deleted"


def is_sha(sha: Optional[str]) -> bool:
    """True for anything shaped like a 40-hex id, sentinels included."""
    return bool(sha) and SHA_REGEX.match(sha) is not None


def is_staged_uncommitted(sha: Optional[str]) -> bool:
    return bool(sha) and STAGED_UNCOMMITTED_REGEX.match(sha) is not None


def is_uncommitted(sha: Optional[str]) -> bool:
    """True for the working-tree id and for the staged id."""
    return bool(sha) and UNCOMMITTED_REGEX.match(sha) is not None


def is_deleted(sha: Optional[str]) -> bool:
    return sha == DELETED_SHA


def classify(sha: Optional[str]) -> Optional[CommitIdKind]:
    """Return the single class ``sha`` belongs to.

    The checks run from the most specific pattern to the least specific one,
    so a string never lands in two classes. Returns ``None`` for values that
    are not commit ids at all (branch names, abbreviated shas).
    """
    if not sha:
        return None
    if is_deleted(sha):
        return CommitIdKind.DELETED
    if is_staged_uncommitted(sha):
        return CommitIdKind.STAGED_UNCOMMITTED
    if is_uncommitted(sha):
        return CommitIdKind.UNCOMMITTED
    if is_sha(sha):
        return CommitIdKind.NORMAL
    return None


def short_form(sha: str) -> str:
    """Shorten ``sha`` for display.

    A ``^N`` parent suffix found past the sixth character is kept whole,
    everything else is cut to eight characters.
    """
    if is_staged_uncommitted(sha):
        return "index"
    if is_uncommitted(sha):
        return ""

    index = sha.find("^")
    # Assumes a single character after the caret
    if index > 6:
        return f"{sha[:6]}{sha[index:]}"
    return sha[:8]
