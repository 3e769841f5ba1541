"""Running git: the executor and the per-subcommand argument builders."""

from .commands import GitCommands, LOG_FORMAT, STASH_FORMAT
from .executor import (
    GIT_WARNINGS,
    GitCommandError,
    GitCommandExecutor,
    InFlightCommandRegistry,
)

__all__ = [
    "GIT_WARNINGS",
    "GitCommandError",
    "GitCommandExecutor",
    "GitCommands",
    "InFlightCommandRegistry",
    "LOG_FORMAT",
    "STASH_FORMAT",
]
