"""Parser for ``git stash list`` in the engine's record format."""

from typing import Optional

from ..models.commit import GitCommitType, GitStash, GitStashCommit, date_from_timestamp
from ..utils.path_utils import normalize_path
from .log_parser import iter_log_records


class StashParser:
    """Stash records share the log record shape, keyed by reflog selector."""

    @staticmethod
    def parse(data: str, repo_path: str) -> Optional[GitStash]:
        if not data or not data.strip():
            return None

        root = normalize_path(repo_path)
        commits = {}

        for record in iter_log_records(data, root):
            stash_name = record.reflog_selector or record.sha
            if stash_name in commits:
                continue

            commit = GitStashCommit(
                commit_type=GitCommitType.STASH,
                repo_path=root,
                sha=record.sha,
                author=record.author or "",
                date=date_from_timestamp(record.author_date),
                message=record.message,
                parent_shas=record.parent_shas,
                file_statuses=list(record.file_statuses),
                file_name=", ".join(s.file_name for s in record.file_statuses),
                status=record.file_statuses[0].status if record.file_statuses else None,
                stash_name=stash_name,
            )
            commit.freeze()
            commits[stash_name] = commit

        return GitStash(repo_path=root, commits=commits)
