"""Pure parsers turning captured git output into typed models.

Parsers never run git themselves.
"""

from .blame_parser import BlameParser
from .branch_parser import BranchParser
from .diff_parser import DiffParser
from .log_parser import LogParser
from .remote_parser import RemoteParser
from .stash_parser import StashParser
from .status_parser import StatusParser

__all__ = [
    "BlameParser",
    "BranchParser",
    "DiffParser",
    "LogParser",
    "RemoteParser",
    "StashParser",
    "StatusParser",
]
