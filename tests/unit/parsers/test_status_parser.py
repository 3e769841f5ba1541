"""
Unit tests for StatusParser (porcelain v1 and v2).
"""

from git_context.parsers.status_parser import StatusParser

OID = "1a2b3c4d5e6f7a8b9c0d1e2f3a4b5c6d7e8f9a0b"
HASH = "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"


class TestPorcelainV1:
    def test_work_tree_modification(self):
        status = StatusParser.parse(" M file.txt", "/repo", porcelain_version=1)

        assert len(status.files) == 1
        entry = status.files[0]
        assert entry.index_status is None
        assert entry.work_tree_status == "M"
        assert entry.file_name == "file.txt"
        assert entry.status == "M"
        assert not entry.staged

    def test_branch_header_with_upstream(self):
        data = "## main...origin/main [ahead 1, behind 2]\nM  staged.py\n?? new.py\n"
        status = StatusParser.parse(data, "/repo", porcelain_version=1)

        assert status.branch == "main"
        assert status.upstream == "origin/main"
        assert (status.ahead, status.behind) == (1, 2)
        assert status.get_upstream_status() == "1↑ 2↓"

        staged, untracked = status.files
        assert staged.staged
        assert staged.work_tree_status is None
        assert untracked.untracked
        assert untracked.uri == "/repo/new.py"

    def test_rename(self):
        status = StatusParser.parse("R  old.py -> new.py", "/repo", porcelain_version=1)

        entry = status.files[0]
        assert entry.file_name == "new.py"
        assert entry.original_file_name == "old.py"
        assert entry.index_status == "R"

    def test_no_commits_yet(self):
        status = StatusParser.parse("## No commits yet on main\n", "/repo", 1)

        assert status.branch == "main"
        assert status.upstream is None
        assert status.files == []

    def test_branch_without_upstream(self):
        status = StatusParser.parse("## feature\n", "/repo", 1)
        assert status.branch == "feature"
        assert status.upstream is None
        assert status.get_upstream_status() == ""

    def test_empty_output(self):
        assert StatusParser.parse("", "/repo", 1) is None


class TestPorcelainV2:
    def test_branch_ahead_behind(self):
        status = StatusParser.parse("# branch.ab +2 -1", "/repo", porcelain_version=2)
        assert (status.ahead, status.behind) == (2, 1)

    def test_full_output(self):
        data = "\n".join(
            [
                f"# branch.oid {OID}",
                "# branch.head main",
                "# branch.upstream origin/main",
                "# branch.ab +0 -3",
                f"1 .M N... 100644 100644 100644 {HASH} {HASH} src/a file.py",
                f"2 R. N... 100644 100644 100644 {HASH} {HASH} R100 new.py\told.py",
                f"u UU N... 100644 100644 100644 100644 {HASH} {HASH} {HASH} conflict.py",
                "? untracked.txt",
                "",
            ]
        )
        status = StatusParser.parse(data, "/repo", porcelain_version=2)

        assert status.sha == OID
        assert status.branch == "main"
        assert status.upstream == "origin/main"
        assert (status.ahead, status.behind) == (0, 3)

        modified, renamed, conflict, untracked = status.files
        assert modified.file_name == "src/a file.py"
        assert modified.index_status is None
        assert modified.work_tree_status == "M"
        assert renamed.file_name == "new.py"
        assert renamed.original_file_name == "old.py"
        assert renamed.index_status == "R"
        assert renamed.work_tree_status is None
        assert conflict.file_name == "conflict.py"
        assert conflict.status == "U"
        assert untracked.untracked
