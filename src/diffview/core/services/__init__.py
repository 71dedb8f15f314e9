"""Service layer of the diff view model."""

from diffview.core.services.fetch import DiffFetchOrchestrator, FetchTarget
from diffview.core.services.modes import ModeController
from diffview.core.services.registry import RepositoryRegistry
from diffview.core.services.workflow import PublishCommitWorkflow

__all__ = [
    "DiffFetchOrchestrator",
    "FetchTarget",
    "ModeController",
    "PublishCommitWorkflow",
    "RepositoryRegistry",
]
