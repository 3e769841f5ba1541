"""
Git command builders.

Each method assembles the argument vector for one git subcommand and runs
it through the executor. Methods that know how to recover from a specific
failure opt out of the executor's default error handling and interpret the
message themselves.
"""

import logging
import os
import re
from typing import List, Optional, Sequence

from ..utils.path_utils import split_path
from ..utils.sha_utils import is_staged_uncommitted, is_uncommitted
from .executor import GitCommandError, GitCommandExecutor

logger = logging.getLogger(__name__)

LOG_FORMAT = "%H -%nauthor %an%nauthor-date %at%nparents %P%nsummary %B%nfilename ?"
STASH_FORMAT = "%H -%nauthor-date %at%nreflog-selector %gd%nsummary %B%nfilename ?"

DEFAULT_BLAME_PARAMS = ["blame", "--root", "--incremental"]
DEFAULT_LOG_PARAMS = [
    "log",
    "--name-status",
    "--full-history",
    "-M",
    f"--format={LOG_FORMAT}",
]
DEFAULT_STASH_PARAMS = [
    "stash",
    "list",
    "--name-status",
    "--full-history",
    "-M",
    f"--format={STASH_FORMAT}",
]

HEAD_NOT_A_BRANCH_REGEX = re.compile(r"HEAD does not point to a branch")
NO_UPSTREAM_REGEX = re.compile(r"no upstream configured for branch")
PATH_NOT_IN_REVISION_REGEXES = [
    re.compile(r"Path '.*?' does not exist in"),
    re.compile(r"Path '.*?' exists on disk, but not in"),
]


def _porcelain_flag(porcelain_version: int) -> str:
    return f"--porcelain=v{porcelain_version}" if porcelain_version >= 2 else "--porcelain"


def _status_env() -> dict:
    env = os.environ.copy()
    env["GIT_OPTIONAL_LOCKS"] = "0"
    return env


class GitCommands:
    """Argument vectors for the git subcommands the engine uses."""

    def __init__(self, executor: GitCommandExecutor):
        self.executor = executor

    async def blame(
        self,
        repo_path: Optional[str],
        file_name: str,
        sha: Optional[str] = None,
        ignore_whitespace: bool = False,
        start_line: Optional[int] = None,
        end_line: Optional[int] = None,
    ) -> str:
        """Incremental blame of ``file_name`` at ``sha``.

        The staged pseudo-revision is blamed by piping the index copy of the
        file to ``--contents -``.
        """
        file, root = split_path(file_name, repo_path)

        params: List[str] = list(DEFAULT_BLAME_PARAMS)
        if ignore_whitespace:
            params.append("-w")
        if start_line is not None and end_line is not None:
            params.append(f"-L{start_line},{end_line}")

        stdin: Optional[str] = None
        if sha:
            if is_staged_uncommitted(sha):
                params.extend(["--contents", "-"])
                stdin = await self.show(repo_path, file_name, ":") or ""
            else:
                params.append(sha)

        return await self.executor.execute(root, *params, "--", file, stdin=stdin)

    async def branch(self, repo_path: str, all_branches: bool = False) -> str:
        params = ["branch", "-vv"]
        if all_branches:
            params.append("-a")
        return await self.executor.execute(repo_path, *params)

    async def checkout(self, repo_path: str, file_name: str, sha: str) -> str:
        file, root = split_path(file_name, repo_path)
        return await self.executor.execute(root, "checkout", sha, "--", file)

    async def config_get(self, key: str, repo_path: Optional[str] = None) -> str:
        try:
            data = await self.executor.execute(
                repo_path or "", "config", "--get", key, will_handle_errors=True
            )
            return data.strip()
        except GitCommandError:
            return ""

    async def diff(
        self,
        repo_path: str,
        file_name: str,
        sha1: Optional[str] = None,
        sha2: Optional[str] = None,
        encoding: Optional[str] = None,
    ) -> str:
        params = ["diff", "--diff-filter=M", "-M", "--no-ext-diff"]
        if sha1:
            params.append("--staged" if is_staged_uncommitted(sha1) else sha1)
        if sha2:
            params.append("--staged" if is_staged_uncommitted(sha2) else sha2)
        return await self.executor.execute(
            repo_path, *params, "--", file_name, encoding=encoding or "utf-8"
        )

    async def diff_name_status(
        self,
        repo_path: str,
        sha1: Optional[str] = None,
        sha2: Optional[str] = None,
        diff_filter: Optional[str] = None,
    ) -> str:
        params = ["diff", "--name-status", "-M", "--no-ext-diff"]
        if diff_filter:
            params.append(f"--diff-filter={diff_filter}")
        if sha1:
            params.append(sha1)
        if sha2:
            params.append(sha2)
        return await self.executor.execute(repo_path, *params)

    async def diff_shortstat(self, repo_path: str, sha: Optional[str] = None) -> str:
        params = ["diff", "--shortstat", "--no-ext-diff"]
        if sha:
            params.append(sha)
        return await self.executor.execute(repo_path, *params)

    async def difftool_dir_diff(
        self, repo_path: str, sha1: str, sha2: Optional[str] = None
    ) -> str:
        params = ["difftool", "--dir-diff", sha1]
        if sha2:
            params.append(sha2)
        return await self.executor.execute(repo_path, *params)

    async def difftool_file_diff(
        self, repo_path: str, file_name: str, staged: bool
    ) -> str:
        params = ["difftool", "--no-prompt"]
        if staged:
            params.append("--staged")
        params.extend(["--", file_name])
        return await self.executor.execute(repo_path, *params)

    async def log(
        self,
        repo_path: str,
        sha: Optional[str] = None,
        max_count: Optional[int] = None,
        reverse: bool = False,
    ) -> str:
        params = [*DEFAULT_LOG_PARAMS, "-m"]
        if max_count and not reverse:
            params.append(f"-n{max_count}")
        if sha and not is_staged_uncommitted(sha):
            if reverse:
                params.extend(["--reverse", "--ancestry-path", f"{sha}..HEAD"])
            else:
                params.append(sha)
        return await self.executor.execute(repo_path, *params)

    async def log_file(
        self,
        repo_path: Optional[str],
        file_name: str,
        sha: Optional[str] = None,
        max_count: Optional[int] = None,
        reverse: bool = False,
        start_line: Optional[int] = None,
        end_line: Optional[int] = None,
        skip_merges: bool = False,
    ) -> str:
        """History of a single file, following renames."""
        file, root = split_path(file_name, repo_path)

        params = [*DEFAULT_LOG_PARAMS, "--follow"]
        if max_count and not reverse:
            params.append(f"-n{max_count}")

        # Merge commits are only kept when looking for one specific sha
        if skip_merges or not sha or (max_count or 0) > 2:
            params.append("--no-merges")
        else:
            params.append("-m")

        if sha and not is_staged_uncommitted(sha):
            if reverse:
                params.extend(["--reverse", "--ancestry-path", f"{sha}..HEAD"])
            else:
                params.append(sha)

        if start_line is not None and end_line is not None:
            params.append(f"-L{start_line},{end_line}:{file}")

        params.extend(["--", file])
        return await self.executor.execute(root, *params)

    async def log_search(
        self, repo_path: str, search: Sequence[str] = (), max_count: Optional[int] = None
    ) -> str:
        params = [*DEFAULT_LOG_PARAMS, "-m", "-i"]
        if max_count:
            params.append(f"-n{max_count}")
        return await self.executor.execute(repo_path, *params, *search)

    async def log_shortstat(self, repo_path: str, sha: Optional[str] = None) -> str:
        params = ["log", "--shortstat", "--oneline"]
        if sha and not is_staged_uncommitted(sha):
            params.append(sha)
        return await self.executor.execute(repo_path, *params)

    async def ls_files(
        self, repo_path: str, file_name: str, sha: Optional[str] = None
    ) -> str:
        params = ["ls-files"]
        if sha and not is_staged_uncommitted(sha):
            params.append(f"--with-tree={sha}")
        try:
            data = await self.executor.execute(
                repo_path, *params, file_name, will_handle_errors=True
            )
            return data.strip()
        except GitCommandError:
            return ""

    async def remote(self, repo_path: str) -> str:
        return await self.executor.execute(repo_path, "remote", "-v")

    async def remote_url(self, repo_path: str, remote: str) -> str:
        return await self.executor.execute(repo_path, "remote", "get-url", remote)

    async def revparse_current_branch(self, repo_path: str) -> Optional[str]:
        """``<branch>\\n<upstream>``; ``None`` on a detached HEAD.

        Without an upstream git fails, but the first line of its message
        still names the branch.
        """
        params = ["rev-parse", "--abbrev-ref", "--symbolic-full-name", "@", "@{u}"]
        try:
            return await self.executor.execute(
                repo_path, *params, will_handle_errors=True
            )
        except GitCommandError as e:
            msg = str(e)
            if HEAD_NOT_A_BRANCH_REGEX.search(msg):
                return None
            if NO_UPSTREAM_REGEX.search(msg):
                return e.stdout.split("\n")[0] if e.stdout else msg.split("\n")[0]
            return self.executor.handle_error(e, repo_path, params)

    async def revparse_toplevel(self, cwd: str) -> Optional[str]:
        try:
            data = await self.executor.execute(
                cwd, "rev-parse", "--show-toplevel", will_handle_errors=True
            )
            return data.strip()
        except GitCommandError:
            return None

    async def show(
        self,
        repo_path: Optional[str],
        file_name: str,
        branch_or_sha: str,
        encoding: Optional[str] = None,
    ) -> Optional[str]:
        """Contents of ``file_name`` at ``branch_or_sha``.

        Returns None when the file does not exist at that revision.

        Raises:
            ValueError: For the working-tree pseudo revision, which has no
                stored contents
        """
        file, root = split_path(file_name, repo_path)

        if is_staged_uncommitted(branch_or_sha):
            branch_or_sha = ":"
        if is_uncommitted(branch_or_sha):
            raise ValueError(f"sha={branch_or_sha} is uncommitted")

        if branch_or_sha.endswith(":"):
            arg = f"{branch_or_sha}./{file}"
        else:
            arg = f"{branch_or_sha}:./{file}"

        try:
            return await self.executor.execute(
                root, "show", arg, encoding=encoding or "utf-8", will_handle_errors=True
            )
        except GitCommandError as e:
            msg = str(e)
            if any(regex.search(msg) for regex in PATH_NOT_IN_REVISION_REGEXES):
                return None
            return self.executor.handle_error(e, root, ["show", arg])

    async def stash_apply(
        self, repo_path: str, stash_name: str, delete_after: bool
    ) -> Optional[str]:
        if not stash_name:
            return None
        return await self.executor.execute(
            repo_path, "stash", "pop" if delete_after else "apply", stash_name
        )

    async def stash_delete(self, repo_path: str, stash_name: str) -> Optional[str]:
        if not stash_name:
            return None
        return await self.executor.execute(repo_path, "stash", "drop", stash_name)

    async def stash_list(self, repo_path: str) -> str:
        return await self.executor.execute(repo_path, *DEFAULT_STASH_PARAMS)

    async def stash_push(
        self, repo_path: str, pathspecs: Sequence[str], message: Optional[str] = None
    ) -> str:
        params = ["stash", "push", "-u"]
        if message:
            params.extend(["-m", message])
        params.extend(["--", *pathspecs])
        return await self.executor.execute(repo_path, *params)

    async def stash_save(self, repo_path: str, message: Optional[str] = None) -> str:
        params = ["stash", "save", "-u"]
        if message:
            params.append(message)
        return await self.executor.execute(repo_path, *params)

    async def status(self, repo_path: str, porcelain_version: int = 1) -> str:
        return await self.executor.execute(
            repo_path,
            "status",
            _porcelain_flag(porcelain_version),
            "--branch",
            "-u",
            env=_status_env(),
        )

    async def status_file(
        self, repo_path: str, file_name: str, porcelain_version: int = 1
    ) -> str:
        file, root = split_path(file_name, repo_path)
        return await self.executor.execute(
            root, "status", _porcelain_flag(porcelain_version), file, env=_status_env()
        )
