"""Wire a git-backed diff view model for command-line use."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from diffview.adapters.git.command import GitCommandRunner
from diffview.adapters.git.host import AutoCleanupPrompt, GitProjectHost
from diffview.adapters.git.operations import GIT_TYPE, GitRepository
from diffview.adapters.git.stack import GitDiffSource
from diffview.adapters.local import FileBufferProvider, UnconfiguredReviewService
from diffview.core.errors import UnsupportedRepositoryError, UnsupportedVcsError
from diffview.core.view_model import DiffViewModel

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable
    from pathlib import Path

    from diffview.core.config import DiffViewConfig
    from diffview.core.models.enums import DiffOption
    from diffview.core.ports import Notifier, Repository

log = logging.getLogger(__name__)

MAX_SETTLE_ROUNDS = 20


class CliSession:
    """A view model plus the git diff sources it created."""

    def __init__(self, view_model: DiffViewModel, host: GitProjectHost) -> None:
        self.view_model = view_model
        self.host = host
        self.sources: list[GitDiffSource] = []

    async def settle(self) -> None:
        """Wait until neither the view model nor any diff source has pending work."""
        for _ in range(MAX_SETTLE_ROUNDS):
            await asyncio.gather(*(source.wait_idle() for source in self.sources))
            await self.view_model.wait_idle()
            if not self.view_model.pending_tasks and not any(s.pending for s in self.sources):
                return
        log.warning("Diff view did not settle after %d rounds", MAX_SETTLE_ROUNDS)


@asynccontextmanager
async def open_session(
    roots: Iterable[Path],
    config: DiffViewConfig,
    notifier: Notifier,
) -> AsyncIterator[CliSession]:
    if config.general.vcs_type != GIT_TYPE:
        log.warning("Configured vcs_type %r has no adapter", config.general.vcs_type)
        raise UnsupportedVcsError(config.general.vcs_type, GIT_TYPE)
    runner = GitCommandRunner(timeout=config.general.process_timeout_seconds)
    host = GitProjectHost(runner)
    await host.set_roots(roots)

    session: CliSession | None = None

    def create_source(repository: Repository, option: DiffOption) -> GitDiffSource:
        if not isinstance(repository, GitRepository):
            raise UnsupportedRepositoryError(
                repository.get_project_directory(), repository.type, GIT_TYPE
            )
        source = GitDiffSource(
            repository,
            option,
            compare_revision=config.general.default_compare_revision,
            on_error=notifier.internal_error,
        )
        if session is not None:
            session.sources.append(source)
        return source

    view_model = DiffViewModel(
        host,
        create_source,
        FileBufferProvider(),
        UnconfiguredReviewService(),
        AutoCleanupPrompt(),
        notifier,
        config=config,
    )
    session = CliSession(view_model, host)
    session.sources.extend(
        source for source in view_model.registry.stacks if isinstance(source, GitDiffSource)
    )
    view_model.activate()
    try:
        await session.settle()
        yield session
    finally:
        await view_model.aclose()
        host.dispose()
