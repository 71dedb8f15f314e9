"""Exception taxonomy for the diff view core."""

from __future__ import annotations


class DiffViewError(Exception):
    """Base class for diff view errors."""


class PreconditionError(DiffViewError):
    """A caller broke a contract it was expected to check beforehand."""


class UnsupportedRepositoryError(PreconditionError):
    """A path is not owned by a repository of the supported type."""

    def __init__(self, path: str, found_type: str | None, supported_type: str) -> None:
        self.path = path
        self.found_type = found_type
        self.supported_type = supported_type
        found = found_type or "no repository"
        super().__init__(
            f"Diff view only supports `{supported_type}` repositories, "
            f"but found `{found}` at path: `{path}`"
        )


class MissingRepositoryStackError(PreconditionError):
    """A supported repository has no tracked diff source."""


class NoActiveRepositoryError(PreconditionError):
    """An operation needs an active repository and none is set."""


class UnrecognizedModeError(PreconditionError, ValueError):
    """A mode value outside its enumeration was supplied."""


class WorkflowError(DiffViewError):
    """A commit or publish step failed."""


class HeadCommitMessageError(WorkflowError):
    def __init__(self) -> None:
        super().__init__("Cannot Fetch Head Commit Message!")


class MissingReviewError(WorkflowError):
    def __init__(self) -> None:
        super().__init__("A revision must exist to update!")


class EmptyUpdateError(WorkflowError):
    def __init__(self) -> None:
        super().__init__("Cannot update revision with empty message")


class UnsupportedVcsError(PreconditionError):
    """The configured version-control system has no adapter."""

    def __init__(self, vcs_type: str, available: str) -> None:
        self.vcs_type = vcs_type
        super().__init__(
            f"No adapter for `{vcs_type}` repositories is available; "
            f"set general.vcs_type to `{available}`"
        )
