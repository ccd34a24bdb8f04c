"""Split job orchestration: start or resume, poll, skip and save progress."""
from __future__ import annotations

import asyncio
import logging

from dms_migration.application.documents import DocumentRegistry, DocumentSession
from dms_migration.application.metadata import MetadataPropagator
from dms_migration.core.errors import ConflictError, DmsError, InvalidTransition, NotFoundError, ValidationFailed
from dms_migration.core.fields import FieldKey, is_blank, non_empty
from dms_migration.core.lifecycle import is_complete, is_settled, is_skip_allowed, transition
from dms_migration.core.name_normalize import title_from_file_name
from dms_migration.domain import PageStatus, SavedMetadata
from dms_migration.infrastructure.repository import SplitJobService

logger = logging.getLogger(__name__)

DOCUMENT_MISSING = "The document does not exist. Please upload a new document."


def _page_number(page_key: str) -> int | None:
    _, _, suffix = page_key.rpartition("_")
    return int(suffix) if suffix.isdigit() else None


class SplitJobCoordinator:
    def __init__(
        self,
        split_service: SplitJobService,
        registry: DocumentRegistry,
        propagator: MetadataPropagator,
        *,
        poll_interval: float = 2.0,
        start_delay: float = 1.0,
        default_document_type: str = "Drawing",
    ) -> None:
        self._split_service = split_service
        self._registry = registry
        self._propagator = propagator
        self._poll_interval = poll_interval
        self._start_delay = start_delay
        self._default_document_type = default_document_type

    # ------------------------------------------------------------------
    # opening documents
    # ------------------------------------------------------------------
    async def ingest(self, file_name: str, content: bytes) -> DocumentSession:
        """Upload a source PDF; a document that already exists is resumed instead."""

        if not file_name.lower().endswith(".pdf"):
            raise ValidationFailed({"file": "only PDF drawings can be split"})
        try:
            doc_name = await self._split_service.upload_source(file_name, content)
            resumed = False
        except ConflictError as exc:
            logger.info("%s already uploaded, continuing it: %s", file_name, exc)
            doc_name = title_from_file_name(file_name)
            resumed = True
        session = await self.start_or_resume(doc_name, resumed=resumed)
        async with session.lock:
            common = session.document.common_fields
            if is_blank(common.get(FieldKey.DOCUMENT_TYPE)):
                common[FieldKey.DOCUMENT_TYPE] = self._default_document_type
        return session

    async def start_or_resume(self, doc_name: str, *, resumed: bool = False) -> DocumentSession:
        if resumed:
            names = await self._split_service.list_documents()
            if doc_name not in names:
                raise NotFoundError(DOCUMENT_MISSING)
            session = self._registry.open(doc_name)
            saved = await self._split_service.get_saved_metadata(doc_name)
            if saved is not None:
                await self._propagator.restore(session, saved)
            self.ensure_polling(session)
            return session

        session = self._registry.open(doc_name)
        if session.poll_task is None or session.poll_task.done():
            session.poll_task = session.spawn(self._split_then_poll(session))
        return session

    async def _split_then_poll(self, session: DocumentSession) -> None:
        await asyncio.sleep(self._start_delay)
        try:
            await self._split_service.start_split(session.name)
        except DmsError as exc:
            # polling reports the authoritative state either way
            logger.warning("split request for %s failed: %s", session.name, exc)
        finally:
            await self._poll_loop(session)

    def ensure_polling(self, session: DocumentSession) -> None:
        if session.poll_task is not None and not session.poll_task.done():
            return
        session.poll_task = session.spawn(self._poll_loop(session))

    # ------------------------------------------------------------------
    # polling
    # ------------------------------------------------------------------
    async def _poll_loop(self, session: DocumentSession) -> None:
        while not session.closed:
            await self.refresh(session)
            if is_settled(session.document):
                logger.info("split of %s settled with %d pages", session.name, len(session.document.pages))
                return
            await asyncio.sleep(self._poll_interval)

    async def refresh(self, session: DocumentSession) -> bool:
        """Fetch one status snapshot and install it; returns False when nothing was applied."""

        seen = session.document.version
        try:
            snapshot = await self._split_service.get_split_status(session.name)
        except NotFoundError as exc:
            # the service lost or never started the job
            logger.warning("no split status for %s, requesting split again: %s", session.name, exc)
            session.poll_error = str(exc)
            try:
                await self._split_service.start_split(session.name)
            except DmsError as restart_exc:
                logger.warning("split request for %s failed: %s", session.name, restart_exc)
            return False
        except DmsError as exc:
            logger.warning("status poll for %s failed, keeping last snapshot: %s", session.name, exc)
            session.poll_error = str(exc)
            return False

        async with session.lock:
            if session.closed:
                logger.debug("dropping snapshot for closed document %s", session.name)
                return False
            if session.document.version != seen:
                logger.debug("dropping stale snapshot for %s", session.name)
                return False
            session.document.pages = snapshot.pages
            session.document.total_pages = snapshot.total_pages
            session.poll_error = None
        return True

    # ------------------------------------------------------------------
    # page decisions
    # ------------------------------------------------------------------
    async def skip_page(self, session: DocumentSession, page_key: str) -> None:
        session.ensure_open()
        async with session.lock:
            page = session.page(page_key)
            if not is_skip_allowed(page, session.document.page_fields.get(page_key, {})):
                raise InvalidTransition(f"page {page_key} cannot be skipped")
            await self._split_service.update_page_status(session.name, page.number, PageStatus.IGNORE)
            transition(session.page(page_key), PageStatus.IGNORE)
            session.document.bump()

    async def reenter_page(self, session: DocumentSession, page_key: str) -> None:
        session.ensure_open()
        async with session.lock:
            page = session.page(page_key)
            if page.status is not PageStatus.IGNORE:
                raise InvalidTransition(f"page {page_key} is not skipped")
            await self._split_service.update_page_status(session.name, page.number, PageStatus.READY)
            transition(session.page(page_key), PageStatus.READY)
            session.document.bump()

    # ------------------------------------------------------------------
    # progress
    # ------------------------------------------------------------------
    async def save_progress(self, session: DocumentSession) -> SavedMetadata:
        """Persist non-empty values so the document can be continued later."""

        session.ensure_open()
        async with session.lock:
            document = session.document
            pages: dict[int, dict[FieldKey, object]] = {}
            for page_key, fields in document.page_fields.items():
                page = document.pages.get(page_key)
                number = page.number if page is not None else _page_number(page_key)
                values = non_empty(fields)
                if number is not None and values:
                    pages[number] = values
            saved = SavedMetadata(common=non_empty(document.common_fields), pages=pages)
        await self._split_service.save_metadata(session.name, saved)
        return saved

    async def delete(self, session: DocumentSession) -> None:
        """Remove the working document once every page is uploaded or skipped."""

        session.ensure_open()
        if not is_complete(session.document):
            raise ConflictError(f"document '{session.name}' still has pages to process")
        await self._split_service.delete_document(session.name)
        await self._registry.close(session.name)

    async def close(self, doc_name: str) -> None:
        await self._registry.close(doc_name)
