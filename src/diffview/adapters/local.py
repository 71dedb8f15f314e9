"""File-backed buffers, a logging notifier and a placeholder review service."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from diffview.core.config import atomic_write
from diffview.core.errors import WorkflowError
from diffview.core.events import Signal

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from diffview.core.events import Disposable
    from diffview.core.models.entities import ProgressMessage

log = logging.getLogger(__name__)


class FileBuffer:
    """In-memory text of one file, tracking edits against its on-disk copy."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._text = ""
        self._saved_text = ""
        self._loaded = False
        self._reloaded = Signal("buffer-reload")
        self._destroyed = Signal("buffer-destroy")
        self._modified_changed = Signal("buffer-modified")
        self._stopped_changing = Signal("buffer-stop-changing")

    @property
    def path(self) -> Path:
        return self._path

    @property
    def loaded(self) -> bool:
        return self._loaded

    def get_text(self) -> str:
        return self._text

    def is_modified(self) -> bool:
        return self._text != self._saved_text

    def set_text(self, text: str) -> None:
        was_modified = self.is_modified()
        self._text = text
        if self.is_modified() != was_modified:
            self._modified_changed.emit()
        self._stopped_changing.emit()

    async def load(self) -> None:
        """Read the file from disk; a missing file reads as empty."""
        if self._path.exists():
            text = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        else:
            text = ""
        reloaded = self._loaded and text != self._saved_text
        self._text = self._saved_text = text
        self._loaded = True
        if reloaded:
            self._reloaded.emit()

    async def save(self) -> None:
        was_modified = self.is_modified()
        await asyncio.to_thread(atomic_write, self._path, self._text)
        self._saved_text = self._text
        if was_modified:
            self._modified_changed.emit()

    def destroy(self) -> None:
        self._destroyed.emit()
        for signal in (
            self._reloaded,
            self._destroyed,
            self._modified_changed,
            self._stopped_changing,
        ):
            signal.clear()

    def on_did_reload(self, callback: Callable[[], None]) -> Disposable:
        return self._reloaded.subscribe(callback)

    def on_did_destroy(self, callback: Callable[[], None]) -> Disposable:
        return self._destroyed.subscribe(callback)

    def on_did_change_modified(self, callback: Callable[[], None]) -> Disposable:
        return self._modified_changed.subscribe(callback)

    def on_did_stop_changing(self, callback: Callable[[], None]) -> Disposable:
        return self._stopped_changing.subscribe(callback)


class FileBufferProvider:
    """One ``FileBuffer`` per resolved path."""

    def __init__(self) -> None:
        self._buffers: dict[Path, FileBuffer] = {}

    def buffer_for_path(self, path: str) -> FileBuffer:
        resolved = Path(path).resolve()
        buffer = self._buffers.get(resolved)
        if buffer is None:
            buffer = self._buffers[resolved] = FileBuffer(resolved)
        return buffer

    async def load_buffer(self, path: str) -> FileBuffer:
        buffer = self.buffer_for_path(path)
        if not buffer.loaded or not buffer.is_modified():
            await buffer.load()
        return buffer

    def close(self, path: str) -> None:
        buffer = self._buffers.pop(Path(path).resolve(), None)
        if buffer is not None:
            buffer.destroy()


class LoggingNotifier:
    """Routes user-facing notifications to the ``diffview`` loggers.

    An optional ``sink`` receives ``(level, message, detail)`` for display.
    """

    def __init__(self, sink: Callable[[str, str, str | None], None] | None = None) -> None:
        self._sink = sink

    def _send(self, level: str, message: str, detail: str | None) -> None:
        if self._sink is not None:
            self._sink(level, message, detail)

    def success(self, message: str, detail: str | None = None) -> None:
        log.info("%s%s", message, f": {detail}" if detail else "")
        self._send("success", message, detail)

    def error(self, message: str, detail: str | None = None) -> None:
        log.error("%s%s", message, f": {detail}" if detail else "")
        self._send("error", message, detail)

    def info(self, message: str, detail: str | None = None) -> None:
        log.info("%s%s", message, f": {detail}" if detail else "")
        self._send("info", message, detail)

    def internal_error(self, error: BaseException) -> None:
        log.error("Internal error", exc_info=(type(error), error, error.__traceback__))
        self._send("error", "Internal error", str(error))


class UnconfiguredReviewService:
    """Review service used when no code-review backend is configured."""

    async def create_revision(
        self,
        path: str,
        lint_excuse: str | None,
    ) -> AsyncIterator[ProgressMessage]:
        raise WorkflowError(f"No code review service is configured for `{path}`")
        yield  # pragma: no cover

    async def update_revision(
        self,
        path: str,
        message: str,
        allow_untracked: bool,
        lint_excuse: str | None,
    ) -> AsyncIterator[ProgressMessage]:
        raise WorkflowError(f"No code review service is configured for `{path}`")
        yield  # pragma: no cover
