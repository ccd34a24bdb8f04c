"""Open document handles and the registry that owns them."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Coroutine

from dms_migration.core.debounce import Debouncer
from dms_migration.core.errors import ConflictError, NotFoundError
from dms_migration.core.fields import FieldKey, non_empty
from dms_migration.domain import Page, RevisionCandidate, SplitDocument

logger = logging.getLogger(__name__)


@dataclass
class DocumentSession:
    """Handle passed to every operation on one open split document.

    ``lock`` serialises mutations of the document. Background work started
    for the document (polling, debounced writes) is tracked here so closing
    the handle cancels all of it.
    """

    document: SplitDocument
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    tasks: set[asyncio.Task] = field(default_factory=set)
    debouncers: dict[str, Debouncer] = field(default_factory=dict)
    revision_candidates: dict[str, RevisionCandidate] = field(default_factory=dict)
    last_propagated: dict[FieldKey, Any] = field(default_factory=dict)
    submitting: set[str] = field(default_factory=set)
    poll_task: asyncio.Task | None = None
    poll_error: str | None = None
    closed: bool = False

    @property
    def name(self) -> str:
        return self.document.name

    def ensure_open(self) -> None:
        if self.closed:
            raise ConflictError(f"document '{self.name}' is closed")

    def page(self, page_key: str) -> Page:
        page = self.document.pages.get(page_key)
        if page is None:
            raise NotFoundError(f"page '{page_key}' of '{self.name}' not found")
        return page

    def merged_fields(self, page_key: str) -> dict[FieldKey, Any]:
        """Common fields overlaid with the page's own non-empty values."""

        merged = non_empty(self.document.common_fields)
        merged.update(non_empty(self.document.page_fields.get(page_key, {})))
        return merged

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        self.ensure_open()
        task = asyncio.get_running_loop().create_task(coro)
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    @property
    def background_errors(self) -> dict[str, str]:
        """Last failure of each debounced write that has not succeeded since."""

        return {key: debouncer.last_error for key, debouncer in self.debouncers.items() if debouncer.last_error}

    def debouncer(self, key: str, delay: float, callback: Callable[..., Any | Awaitable[Any]]) -> Debouncer:
        debouncer = self.debouncers.get(key)
        if debouncer is None:
            debouncer = Debouncer(delay, callback)
            self.debouncers[key] = debouncer
        return debouncer

    async def settle(self) -> None:
        """Wait for every pending debounced write."""

        for debouncer in list(self.debouncers.values()):
            await debouncer.wait()

    async def close(self) -> None:
        self.closed = True
        for debouncer in self.debouncers.values():
            debouncer.cancel()
        tasks = [task for task in self.tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self.tasks.clear()
        self.poll_task = None


class DocumentRegistry:
    """Keeps one session per open document name."""

    def __init__(self) -> None:
        self._sessions: dict[str, DocumentSession] = {}

    def open(self, doc_name: str) -> DocumentSession:
        session = self._sessions.get(doc_name)
        if session is None or session.closed:
            session = DocumentSession(document=SplitDocument(name=doc_name))
            self._sessions[doc_name] = session
        return session

    def get(self, doc_name: str) -> DocumentSession:
        session = self._sessions.get(doc_name)
        if session is None or session.closed:
            raise NotFoundError(f"document '{doc_name}' is not open")
        return session

    def names(self) -> list[str]:
        return sorted(name for name, session in self._sessions.items() if not session.closed)

    async def close(self, doc_name: str) -> None:
        session = self._sessions.pop(doc_name, None)
        if session is not None:
            await session.close()
            logger.info("closed document %s", doc_name)

    async def close_all(self) -> None:
        for name in list(self._sessions):
            await self.close(name)
