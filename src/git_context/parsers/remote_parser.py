"""Parser for ``git remote -v``."""

import re
from typing import Dict, List, Optional, Tuple

from ..models.branch import GitRemote
from ..utils.path_utils import normalize_path

# "origin\thttps://github.com/owner/repo.git (fetch)"
REMOTE_REGEX = re.compile(r"^(.*)\t(.*)\s\((.*)\)$")
URL_REGEX = re.compile(
    r"^(?:git://(.*?)/"
    r"|https://(?:.*?@)?(.*?)/"
    r"|http://(?:.*?@)?(.*?)/"
    r"|git@(.*):"
    r"|ssh://(?:.*@)?(.*?)(?::.*?)?/)"
    r"(.*)$"
)


def parse_git_url(url: str) -> Tuple[str, str]:
    """Split a remote url into ``(domain, path)``; ``("", "")`` if unknown."""
    match = URL_REGEX.match(url)
    if match is None:
        return "", ""
    groups = match.groups()
    domain = next((g for g in groups[:5] if g), "")
    path = re.sub(r"\.git/?$", "", groups[5] or "")
    return domain, path


class RemoteParser:
    @staticmethod
    def parse(data: str, repo_path: str) -> Optional[List[GitRemote]]:
        """Parse ``data`` into one ``GitRemote`` per remote name."""
        if not data:
            return None

        root = normalize_path(repo_path)
        remotes: Dict[str, GitRemote] = {}

        for raw_line in data.split("\n"):
            match = REMOTE_REGEX.match(raw_line.rstrip("\r"))
            if match is None:
                continue

            name, url, url_type = match.groups()
            remote = remotes.get(name)
            if remote is None:
                domain, path = parse_git_url(url)
                remote = GitRemote(
                    repo_path=root, name=name, url=url, domain=domain, path=path
                )
                remotes[name] = remote
            elif url != remote.url and url_type == "push":
                remote.push_url = url

            if url_type not in remote.types:
                remote.types.append(url_type)

        return list(remotes.values())
