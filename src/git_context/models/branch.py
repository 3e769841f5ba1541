"""Branch and remote models."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class GitBranch:
    """A local or remote-tracking branch from ``git branch -vv``."""

    repo_path: str
    name: str
    sha: str = ""
    current: bool = False
    remote: bool = False
    tracking: Optional[str] = None
    ahead: int = 0
    behind: int = 0

    def get_name(self) -> str:
        """Branch name without the remote prefix for remote branches."""
        if self.remote and "/" in self.name:
            return self.name.split("/", 1)[1]
        return self.name

    def get_remote(self) -> Optional[str]:
        if self.remote:
            return self.name.split("/", 1)[0]
        if self.tracking and "/" in self.tracking:
            return self.tracking.split("/", 1)[0]
        return None


@dataclass
class GitRemote:
    """A named remote; fetch and push lines are folded into one record."""

    repo_path: str
    name: str
    url: str
    domain: str = ""
    path: str = ""
    types: List[str] = field(default_factory=list)
    push_url: Optional[str] = None
