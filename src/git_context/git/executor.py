"""
Git command executor with single-flight deduplication.

Every git invocation in the engine goes through ``GitCommandExecutor``. It
prefixes the safety flags, keeps interactive credential helpers quiet, and
collapses concurrent identical invocations (same cwd and arguments) into a
single process whose output is shared by all callers.

Failures are classified here and nowhere else: git errors that merely mean
"no data" (not a repository, path outside the repository, no commits yet,
...) are logged as warnings and turned into an empty result, anything else
is logged and re-raised as ``GitCommandError``.
"""

import asyncio
import codecs
import logging
import os
import re
import threading
from typing import Awaitable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..config import GitInfo

logger = logging.getLogger(__name__)

SAFETY_ARGS: Tuple[str, ...] = ("-c", "core.quotepath=false", "-c", "color.ui=false")

GIT_WARNINGS: List[re.Pattern] = [
    re.compile(r"Not a git repository"),
    re.compile(r"is outside repository"),
    re.compile(r"no such path"),
    re.compile(r"does not have any commits"),
    re.compile(r"Path '.*?' does not exist in"),
    re.compile(r"Path '.*?' exists on disk, but not in"),
    re.compile(r"no upstream configured for branch"),
]

RAW_ENCODINGS = ("utf8", "utf-8", "binary")

StdinSource = Union[str, bytes, Awaitable[Optional[str]]]


class GitCommandError(Exception):
    """Exception raised when a git process fails."""

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        cwd: Optional[str] = None,
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = list(command) if command else []
        self.cwd = cwd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def get_encoding(encoding: Optional[str]) -> str:
    """Return ``encoding`` if Python knows it, otherwise ``utf-8``."""
    if not encoding:
        return "utf-8"
    if encoding == "binary":
        return encoding
    try:
        codecs.lookup(encoding)
        return encoding
    except LookupError:
        return "utf-8"


def build_git_environment(base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Get environment variables for git commands.

    Git Credential Manager is told never to prompt and to keep credentials,
    so a background query can never block on an interactive dialog.

    Args:
        base: Environment to start from; defaults to ``os.environ``

    Returns:
        Dictionary of environment variables for git commands
    """
    env = dict(base if base is not None else os.environ)
    env["GCM_INTERACTIVE"] = "NEVER"
    env["GCM_PRESERVE_CREDS"] = "TRUE"
    return env


def decode_output(data: bytes, encoding: Optional[str]) -> str:
    """Decode captured git output for a caller.

    ``utf-8`` output is decoded directly; ``binary`` keeps every byte as the
    code point of the same value so the caller can write it back unchanged;
    any other encoding is validated first and falls back to ``utf-8``.
    """
    if encoding == "binary":
        return data.decode("latin-1")
    if encoding is None or encoding.lower() in RAW_ENCODINGS:
        return data.decode("utf-8", errors="replace")
    return data.decode(get_encoding(encoding), errors="replace")


def _retrieve_exception(task: "asyncio.Future[bytes]") -> None:
    # Every caller may have been cancelled before git failed
    if not task.cancelled() and task.exception() is not None:
        logger.debug(f"Shared git command failed: {task.exception()}")


class InFlightCommandRegistry:
    """Registry of git commands that are currently running.

    Maps a command key to the task producing its output. The lock makes the
    check-and-insert atomic, so one registry may be shared by executors
    running on different threads.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, "asyncio.Future[bytes]"] = {}
        self._lock = threading.Lock()

    def get_or_create(
        self, key: str, factory
    ) -> Tuple["asyncio.Future[bytes]", bool]:
        """Return the in-flight future for ``key``, creating it if needed.

        Returns:
            Tuple of (future, created)
        """
        with self._lock:
            future = self._pending.get(key)
            if future is not None:
                return future, False
            future = factory()
            self._pending[key] = future
            return future, True

    def remove(self, key: str, future: "asyncio.Future[bytes]") -> None:
        """Forget ``key`` if it still points to ``future``."""
        with self._lock:
            if self._pending.get(key) is future:
                del self._pending[key]

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)


class GitCommandExecutor:
    """Runs git and shares the output of concurrent identical invocations."""

    def __init__(
        self,
        git_info: Optional[GitInfo] = None,
        registry: Optional[InFlightCommandRegistry] = None,
    ):
        """Initialize the executor.

        Args:
            git_info: Resolved git executable path and version
            registry: In-flight command registry; a private one is created
                when omitted
        """
        self.git_info = git_info or GitInfo()
        self.registry = registry or InFlightCommandRegistry()

    async def execute(
        self,
        cwd: Optional[str],
        *args: str,
        env: Optional[Mapping[str, str]] = None,
        encoding: Optional[str] = "utf-8",
        stdin: Optional[StdinSource] = None,
        will_handle_errors: bool = False,
    ) -> str:
        """Run ``git <args>`` in ``cwd`` and return its decoded stdout.

        Args:
            cwd: Working directory
            *args: git arguments, without the safety prefix
            env: Base environment; defaults to ``os.environ``
            encoding: Encoding of the output (``binary`` for raw bytes)
            stdin: Data, or an awaitable producing data, to pipe to git
            will_handle_errors: Raise every failure instead of applying the
                default warning classification

        Raises:
            GitCommandError: If git fails with an unexpected error
        """
        if will_handle_errors:
            return await self._execute_core(cwd, args, env, encoding, stdin)

        try:
            return await self._execute_core(cwd, args, env, encoding, stdin)
        except GitCommandError as e:
            return self.handle_error(e, cwd, args)

    def handle_error(
        self, error: GitCommandError, cwd: Optional[str], args: Sequence[str]
    ) -> str:
        """Default classification of a git failure.

        Returns an empty string for expected warnings, re-raises otherwise.
        """
        msg = str(error)
        one_line = re.sub(r"\r?\n|\r", " ", msg)
        command = " ".join(args)
        if msg:
            for warning in GIT_WARNINGS:
                if warning.search(msg):
                    logger.warning(f"git {command}  cwd='{cwd}'\n  {one_line}")
                    return ""

        logger.error(f"git {command}  cwd='{cwd}'\n  {one_line}")
        raise error

    async def _execute_core(
        self,
        cwd: Optional[str],
        args: Sequence[str],
        env: Optional[Mapping[str, str]],
        encoding: Optional[str],
        stdin: Optional[StdinSource],
    ) -> str:
        full_args = [*SAFETY_ARGS, *args]
        command = f"({cwd}): git {' '.join(full_args)}"

        loop = asyncio.get_running_loop()

        def start() -> "asyncio.Future[bytes]":
            task = loop.create_task(self._spawn(command, cwd, full_args, env, stdin))
            task.add_done_callback(_retrieve_exception)
            return task

        task, created = self.registry.get_or_create(command, start)
        if created:
            logger.debug(f"Spawning {command}")
        else:
            logger.debug(f"Awaiting {command}")

        # Shielded so an abandoned caller never cancels the shared process
        data = await asyncio.shield(task)

        logger.debug(f"Completed {command}")
        return decode_output(data, encoding)

    async def _spawn(
        self,
        command: str,
        cwd: Optional[str],
        full_args: List[str],
        env: Optional[Mapping[str, str]],
        stdin: Optional[StdinSource],
    ) -> bytes:
        task = asyncio.current_task()
        try:
            return await self._run_process(cwd, full_args, env, stdin)
        finally:
            if task is not None:
                self.registry.remove(command, task)

    async def _run_process(
        self,
        cwd: Optional[str],
        full_args: List[str],
        env: Optional[Mapping[str, str]],
        stdin: Optional[StdinSource],
    ) -> bytes:
        stdin_data: Optional[bytes] = None
        if stdin is not None:
            if isinstance(stdin, bytes):
                stdin_data = stdin
            elif isinstance(stdin, str):
                stdin_data = stdin.encode("utf-8")
            else:
                content = await stdin
                stdin_data = (content or "").encode("utf-8")

        try:
            process = await asyncio.create_subprocess_exec(
                self.git_info.path,
                *full_args,
                cwd=cwd or None,
                env=build_git_environment(env),
                stdin=(
                    asyncio.subprocess.PIPE
                    if stdin_data is not None
                    else asyncio.subprocess.DEVNULL
                ),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise GitCommandError(
                f"Unable to run {self.git_info.path}: {e}",
                command=full_args,
                cwd=cwd,
            ) from e

        stdout, stderr = await process.communicate(stdin_data)

        if process.returncode != 0:
            stderr_text = stderr.decode("utf-8", errors="replace")
            stdout_text = stdout.decode("utf-8", errors="replace")
            message = stderr_text.strip() or (
                f"git exited with code {process.returncode}"
            )
            raise GitCommandError(
                message,
                command=full_args,
                cwd=cwd,
                returncode=process.returncode,
                stdout=stdout_text,
                stderr=stderr_text,
            )

        return stdout
