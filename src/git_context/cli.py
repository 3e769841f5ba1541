"""Command line interface for git-context diagnostics."""

import asyncio
import logging
import os
import sys
import threading
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import ConfigManager, GitContextConfig, GitInfo
from .git.executor import GitCommandError, GitCommandExecutor
from .models.uri import GitUri
from .services.git_service import GitService

logger = logging.getLogger(__name__)

console = Console()


def run_async(coro):
    """
    Run an async coroutine, handling both new event loops and existing ones.

    Args:
        coro: The coroutine to run

    Returns:
        The result of the coroutine
    """
    try:
        asyncio.get_running_loop()

        result = None
        exception = None

        def run_in_new_loop():
            nonlocal result, exception
            try:
                new_loop = asyncio.new_event_loop()
                asyncio.set_event_loop(new_loop)
                try:
                    result = new_loop.run_until_complete(coro)
                finally:
                    new_loop.close()
            except Exception as e:
                exception = e

        thread = threading.Thread(target=run_in_new_loop)
        thread.start()
        thread.join()

        if exception:
            raise exception
        return result

    except RuntimeError:
        return asyncio.run(coro)


async def _create_service(ctx, path: str) -> GitService:
    """Build a service, asking git for its version when the config has none."""
    config: GitContextConfig = ctx.obj["config"]
    executor = GitCommandExecutor(config.git)
    if not ctx.obj["detect_version"]:
        return GitService(config, executor)

    cwd = path if os.path.isdir(path) else os.path.dirname(path)

    try:
        version = await executor.execute(cwd, "--version")
        config.git = GitInfo(path=config.git.path, version=version)
        executor = GitCommandExecutor(config.git)
    except GitCommandError as e:
        logger.warning(f"Could not determine git version: {e}")
    return GitService(config, executor)


async def _resolve_repo(service: GitService, path: str) -> str:
    repo_path = await service.get_repo_path(os.path.abspath(path))
    if not repo_path:
        raise click.ClickException(f"{path} is not inside a git repository")
    return repo_path


@click.group()
@click.option("--config", "-c", type=click.Path(exists=False), help="Config file path")
@click.option("--git", "git_path", help="Path to the git executable")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__, prog_name="git-context")
@click.pass_context
def cli(ctx, config: Optional[str], git_path: Optional[str], verbose: bool):
    """Inspect what the git-context engine sees in a repository.

    \b
    EXAMPLES:
      git-context log --max-count 5
      git-context blame src/app.py
      git-context status
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )
    if not verbose:
        logging.getLogger("watchdog").setLevel(logging.WARNING)

    config_manager = ConfigManager(Path(config) if config else None)
    try:
        loaded = config_manager.load()
    except ValueError as e:
        raise click.ClickException(str(e))
    ctx.obj["detect_version"] = "git" not in loaded.model_fields_set
    if git_path:
        loaded.git = GitInfo(path=git_path, version=loaded.git.version)

    ctx.obj["config_manager"] = config_manager
    ctx.obj["config"] = loaded


@cli.command()
@click.argument("path", default=".", type=click.Path(exists=True))
@click.option("--max-count", "-n", type=int, default=None, help="Number of commits")
@click.option("--sha", default=None, help="Start from this revision")
@click.pass_context
def log(ctx, path: str, max_count: Optional[int], sha: Optional[str]):
    """Show history of a repository, or of a single file."""

    async def _log():
        service = await _create_service(ctx, os.path.abspath(path))
        repo_path = await _resolve_repo(service, path)
        if os.path.isfile(path):
            return await service.get_log_for_file(
                repo_path, os.path.abspath(path), sha, max_count
            )
        return await service.get_log_for_repo(repo_path, sha, max_count)

    git_log = run_async(_log())
    if git_log is None or not git_log.commits:
        console.print("No commits found", style="yellow")
        return

    table = Table(title=f"History of {path}")
    table.add_column("Sha", style="cyan")
    table.add_column("Author", style="magenta")
    table.add_column("Date", style="green")
    table.add_column("Summary")
    for commit in git_log.commits.values():
        table.add_row(
            commit.short_sha,
            commit.author,
            commit.date.strftime("%Y-%m-%d %H:%M"),
            commit.summary,
        )
    console.print(table)
    if git_log.truncated:
        console.print(f"Showing first {git_log.max_count} commits", style="dim")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--sha", default=None, help="Blame at this revision")
@click.pass_context
def blame(ctx, file: str, sha: Optional[str]):
    """Show line attribution for a file."""

    async def _blame():
        service = await _create_service(ctx, os.path.abspath(file))
        repo_path = await _resolve_repo(service, file)
        uri = GitUri.create(os.path.abspath(file), repo_path, sha)
        return await service.get_blame_for_file(uri)

    result = run_async(_blame())
    if result is None:
        console.print(f"Unable to blame {file}", style="red")
        sys.exit(1)

    table = Table(title=f"Authors of {file}")
    table.add_column("Author", style="magenta")
    table.add_column("Lines", justify="right", style="green")
    for author in result.authors.values():
        table.add_row(author.name, str(author.line_count))
    console.print(table)

    if ctx.obj["verbose"]:
        for blame_line in result.lines:
            commit = result.commits[blame_line.sha]
            console.print(
                f"{blame_line.line + 1:>5} {commit.short_sha} {commit.author}",
                markup=False,
            )


@cli.command()
@click.argument("path", default=".", type=click.Path(exists=True))
@click.pass_context
def status(ctx, path: str):
    """Show branch and working tree status."""

    async def _status():
        service = await _create_service(ctx, os.path.abspath(path))
        repo_path = await _resolve_repo(service, path)
        return await service.get_status_for_repo(repo_path)

    git_status = run_async(_status())
    if git_status is None:
        console.print("No status available", style="yellow")
        return

    upstream = git_status.upstream or "no upstream"
    console.print(
        f"On [cyan]{git_status.branch or 'detached HEAD'}[/cyan] "
        f"({upstream}) {git_status.get_upstream_status()}"
    )
    if not git_status.files:
        console.print("Working tree clean", style="green")
        return

    table = Table()
    table.add_column("Index", style="green")
    table.add_column("Work tree", style="red")
    table.add_column("File")
    for file in git_status.files:
        name = file.file_name
        if file.original_file_name:
            name = f"{file.original_file_name} -> {file.file_name}"
        table.add_row(file.index_status or "", file.work_tree_status or "", name)
    console.print(table)


@cli.command()
@click.argument("path", default=".", type=click.Path(exists=True))
@click.pass_context
def branches(ctx, path: str):
    """List local and remote branches."""

    async def _branches():
        service = await _create_service(ctx, os.path.abspath(path))
        repo_path = await _resolve_repo(service, path)
        return await service.get_branches(repo_path)

    table = Table(title="Branches")
    table.add_column("", style="green")
    table.add_column("Name", style="cyan")
    table.add_column("Sha")
    table.add_column("Tracking", style="magenta")
    for branch in run_async(_branches()):
        table.add_row(
            "*" if branch.current else "",
            branch.name,
            branch.sha,
            branch.tracking or "",
        )
    console.print(table)


@cli.command()
@click.argument("path", default=".", type=click.Path(exists=True))
@click.pass_context
def remotes(ctx, path: str):
    """List remotes with their parsed domain and path."""

    async def _remotes():
        service = await _create_service(ctx, os.path.abspath(path))
        repo_path = await _resolve_repo(service, path)
        return await service.get_remotes(repo_path)

    table = Table(title="Remotes")
    table.add_column("Name", style="cyan")
    table.add_column("Url")
    table.add_column("Domain", style="green")
    table.add_column("Path", style="magenta")
    table.add_column("Types")
    for remote in run_async(_remotes()):
        table.add_row(
            remote.name, remote.url, remote.domain, remote.path, ", ".join(remote.types)
        )
    console.print(table)


@cli.command("init-config")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@click.pass_context
def init_config(ctx, force: bool):
    """Write a default configuration file."""
    config_manager: ConfigManager = ctx.obj["config_manager"]
    if config_manager.config_path.exists() and not force:
        raise click.ClickException(
            f"{config_manager.config_path} already exists (use --force to overwrite)"
        )
    config = ctx.obj["config"]
    config_manager.create_default_config(config.git.path)
    console.print(f"Wrote {config_manager.config_path}", style="green")


def main():
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\nInterrupted by user", style="red")
        sys.exit(1)
    except Exception as e:
        console.print(f"Unexpected error: {str(e)}", style="red", markup=False)
        sys.exit(1)


if __name__ == "__main__":
    main()
