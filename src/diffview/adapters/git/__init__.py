"""Git-backed repositories, diff sources and project host."""

from diffview.adapters.git.command import GitCommandError, GitCommandRunner
from diffview.adapters.git.host import AutoCleanupPrompt, GitProjectHost
from diffview.adapters.git.operations import GitRepository
from diffview.adapters.git.stack import GitDiffSource

__all__ = [
    "AutoCleanupPrompt",
    "GitCommandError",
    "GitCommandRunner",
    "GitDiffSource",
    "GitProjectHost",
    "GitRepository",
]
