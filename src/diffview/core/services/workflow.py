"""Commit and publish workflows against the active repository."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from diffview.core.errors import (
    EmptyUpdateError,
    HeadCommitMessageError,
    MissingReviewError,
    NoActiveRepositoryError,
)
from diffview.core.events import Emitter
from diffview.core.models.entities import ProgressMessage
from diffview.core.models.enums import (
    AmendMode,
    CommitMode,
    CommitModeState,
    PublishMode,
    PublishModeState,
    ViewMode,
    get_amend_mode,
)
from diffview.core.services.review import extract_update_message

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from diffview.core.models.entities import ReviewRef
    from diffview.core.ports import (
        CleanupPrompt,
        Notifier,
        Repository,
        ReviewReferenceParser,
        ReviewService,
    )
    from diffview.core.services.modes import ModeController
    from diffview.core.services.registry import RepositoryRegistry
    from diffview.core.store import StateStore

log = logging.getLogger(__name__)


async def drain_progress(
    stream: AsyncIterator[ProgressMessage],
    sink: Emitter[ProgressMessage] | None = None,
) -> int:
    """Consume a progress stream to completion, forwarding each message."""
    count = 0
    async for message in stream:
        count += 1
        log.debug("[%s] %s", message.level, message.text.rstrip())
        if sink is not None:
            sink.emit(message)
    return count


class PublishCommitWorkflow:
    """Runs the multi-step commit and publish protocols.

    External failures end here: they become a notification plus a state
    transition. Precondition failures, such as a missing active repository,
    propagate to the caller.
    """

    def __init__(
        self,
        store: StateStore,
        registry: RepositoryRegistry,
        modes: ModeController,
        review_service: ReviewService,
        cleanup_prompt: CleanupPrompt,
        notifier: Notifier,
        parse_review_reference: ReviewReferenceParser,
    ) -> None:
        self._store = store
        self._registry = registry
        self._modes = modes
        self._review_service = review_service
        self._cleanup_prompt = cleanup_prompt
        self._notifier = notifier
        self._parse_review_reference = parse_review_reference
        self.publish_updates: Emitter[ProgressMessage] = Emitter("publish-updates")

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def commit(self, message: str) -> None:
        if message == "":
            self._notifier.error("Commit aborted", "Commit message empty")
            return

        active = self._registry.active_stack
        if active is None:
            raise NoActiveRepositoryError("No active repository stack")

        self._store.set_state(
            replace(
                self._store.state,
                commit_message=message,
                commit_mode_state=CommitModeState.AWAITING_COMMIT,
            )
        )
        state = self._store.state
        repository = active.get_repository()
        log.info("Running %s in %s", state.commit_mode, repository.get_project_directory())

        try:
            match state.commit_mode:
                case CommitMode.COMMIT:
                    await drain_progress(repository.commit(message))
                    self._notifier.success("Commit created")
                case CommitMode.AMEND:
                    amend_mode = get_amend_mode(state.should_rebase_on_amend)
                    await drain_progress(repository.amend(message, amend_mode))
                    self._notifier.success("Commit amended")
        except Exception as error:  # quality-allow-broad-except
            log.warning("Commit failed: %s", error)
            self._notifier.error("Error creating commit", f"Details: {error}")
            self._store.set_state(
                replace(self._store.state, commit_mode_state=CommitModeState.READY)
            )
            return

        self._store.set_state(replace(self._store.state, commit_mode_state=CommitModeState.READY))
        active.refresh_revisions_state()
        self._modes.set_view_mode(ViewMode.BROWSE)

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    async def publish_diff(self, publish_message: str, lint_excuse: str | None = None) -> None:
        active = self._registry.active_stack
        if active is None:
            raise NoActiveRepositoryError("Cannot publish without an active stack!")

        self._store.set_state(
            replace(
                self._store.state,
                publish_message=publish_message,
                publish_mode_state=PublishModeState.AWAITING_PUBLISH,
            )
        )
        state = self._store.state
        publish_mode = state.publish_mode
        repository = active.get_repository()
        log.info("Publishing (%s) from %s", publish_mode, repository.get_project_directory())

        commit_message = publish_message if publish_mode == PublishMode.CREATE else None
        clean_result = None
        try:
            clean_result = await self._cleanup_prompt(
                repository,
                commit_message,
                state.should_rebase_on_amend,
            )
        except Exception as error:  # quality-allow-broad-except
            self._notifier.error("Error clearing dirty changes", str(error))
        if clean_result is None:
            self._store.set_state(
                replace(self._store.state, publish_mode_state=PublishModeState.READY)
            )
            return

        try:
            head_commit_message = await self._modes.get_active_head_commit_message()
            if head_commit_message is None:
                raise HeadCommitMessageError
            match publish_mode:
                case PublishMode.CREATE:
                    await self._create_revision(
                        repository,
                        head_commit_message,
                        publish_message,
                        clean_result.amended,
                        lint_excuse,
                    )
                case PublishMode.UPDATE:
                    await self._update_revision(
                        repository,
                        head_commit_message,
                        publish_message,
                        clean_result.allow_untracked,
                        lint_excuse,
                    )
        except Exception as error:  # quality-allow-broad-except
            log.warning("Publish failed: %s", error)
            self._notifier.error("Couldn't publish the revision", str(error))
            self._store.set_state(
                replace(
                    self._store.state,
                    publish_message=publish_message,
                    publish_mode_state=PublishModeState.PUBLISH_ERROR,
                )
            )
            return

        self._store.set_state(
            replace(self._store.state, publish_mode_state=PublishModeState.READY)
        )
        self._modes.set_view_mode(ViewMode.BROWSE)

    async def _create_revision(
        self,
        repository: Repository,
        head_commit_message: str,
        publish_message: str,
        amended: bool,
        lint_excuse: str | None,
    ) -> None:
        path = repository.get_project_directory()
        if not amended and publish_message != head_commit_message:
            # Clean mode: creating the revision rewrites the message again anyway.
            log.info("Amending commit with the updated message")
            await drain_progress(repository.amend(publish_message, AmendMode.CLEAN))
            self._notifier.success("Commit amended with the updated message")

        self.publish_updates.emit(ProgressMessage(level="log", text="Creating new revision...\n"))
        await drain_progress(
            self._review_service.create_revision(path, lint_excuse),
            self.publish_updates,
        )

        new_head = await repository.get_head_commit_message()
        review = self._parse_review_reference(new_head or "")
        if review is not None:
            self._notify_revision_status(review, "created")

    async def _update_revision(
        self,
        repository: Repository,
        head_commit_message: str,
        publish_message: str,
        allow_untracked: bool,
        lint_excuse: str | None,
    ) -> None:
        review = self._parse_review_reference(head_commit_message)
        if review is None:
            raise MissingReviewError
        user_message = extract_update_message(review, publish_message)
        if not user_message:
            raise EmptyUpdateError

        self.publish_updates.emit(
            ProgressMessage(level="log", text=f"Updating revision `{review.name}`...\n")
        )
        await drain_progress(
            self._review_service.update_revision(
                repository.get_project_directory(),
                user_message,
                allow_untracked,
                lint_excuse,
            ),
            self.publish_updates,
        )
        self._notify_revision_status(review, "updated")

    def _notify_revision_status(self, review: ReviewRef | None, status: str) -> None:
        if review is None:
            self._notifier.success(f"Revision {status}")
            return
        self._notifier.success(f"Revision '{review.name}' {status}", review.url)
