"""Test helpers package."""

from tests.helpers.fakes import (
    FakeBuffer,
    FakeBufferProvider,
    FakeCleanupPrompt,
    FakeDiffSource,
    FakeProjectHost,
    FakeRepository,
    FakeReviewService,
    RecordingNotifier,
    ViewModelHarness,
    build_view_model,
)
from tests.helpers.git import commit_all, init_git_repo_with_commit
from tests.helpers.wait import settle, wait_until

__all__ = [
    "FakeBuffer",
    "FakeBufferProvider",
    "FakeCleanupPrompt",
    "FakeDiffSource",
    "FakeProjectHost",
    "FakeRepository",
    "FakeReviewService",
    "RecordingNotifier",
    "ViewModelHarness",
    "build_view_model",
    "commit_all",
    "init_git_repo_with_commit",
    "settle",
    "wait_until",
]
