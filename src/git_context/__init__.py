"""
git-context - git integration engine.

Runs the git executable with single-flight deduplication, parses its output
into typed commits, blames, diffs, stashes, statuses, remotes and branches,
and tracks the version-control state of the active editor file.
"""

__version__ = "0.4.2"
