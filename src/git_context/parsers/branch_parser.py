"""Parser for ``git branch -vv [-a]``."""

import re
from typing import List, Optional

from ..models.branch import GitBranch
from ..utils.path_utils import normalize_path

# "* main  1a2b3c4 [origin/main: ahead 1, behind 2] subject"
BRANCH_WITH_TRACKING_REGEX = re.compile(
    r"^(\*?)\s+(.+?)\s+([0-9a-f]+)\s+(?:\[(.*?/.*?)(?::\s(.*?)\]|\]))?"
)
AHEAD_REGEX = re.compile(r"ahead ([0-9]+)")
BEHIND_REGEX = re.compile(r"behind ([0-9]+)")
REMOTES_PREFIX = "remotes/"


class BranchParser:
    @staticmethod
    def parse(data: str, repo_path: str) -> Optional[List[GitBranch]]:
        if not data:
            return None

        root = normalize_path(repo_path)
        branches: List[GitBranch] = []

        for raw_line in data.split("\n"):
            line = raw_line.rstrip("\r")
            if not line:
                continue

            match = BRANCH_WITH_TRACKING_REGEX.match(line)
            if match is None:
                continue

            current, name, sha, tracking, state = match.groups()
            remote = name.startswith(REMOTES_PREFIX)
            if remote:
                name = name[len(REMOTES_PREFIX) :]

            ahead = behind = 0
            if state:
                ahead_match = AHEAD_REGEX.search(state)
                behind_match = BEHIND_REGEX.search(state)
                ahead = int(ahead_match.group(1)) if ahead_match else 0
                behind = int(behind_match.group(1)) if behind_match else 0

            branches.append(
                GitBranch(
                    repo_path=root,
                    name=name,
                    sha=sha,
                    current=current == "*",
                    remote=remote,
                    tracking=tracking,
                    ahead=ahead,
                    behind=behind,
                )
            )

        return branches
