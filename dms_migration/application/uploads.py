"""Validation and commit of pages to the content repository."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from dms_migration.application.approvals import AUTOMATED_REQUEST_COMMENT, ApprovalWorkflow
from dms_migration.application.documents import DocumentSession
from dms_migration.application.folders import FolderAndMoveOrchestrator
from dms_migration.application.revisions import RevisionResolver
from dms_migration.application.split_jobs import SplitJobCoordinator
from dms_migration.core.errors import ConfirmationRequired, ConflictError, DmsError, InvalidTransition
from dms_migration.core.fields import FieldKey, is_drawing, term_label
from dms_migration.core.lifecycle import transition
from dms_migration.core.name_normalize import page_file_name
from dms_migration.core.terms import TermStore
from dms_migration.core.validation import DEFAULT_MIN_DATE, validate_document, validate_page
from dms_migration.domain import ApprovalAction, ApprovalState, ModerationStatus, PageStatus, UploadMode
from dms_migration.infrastructure.repository import ContentRepository, SplitJobService

logger = logging.getLogger(__name__)


class UploadGate:
    """Sole path through which pages reach the content repository."""

    def __init__(
        self,
        split_service: SplitJobService,
        repository: ContentRepository,
        terms: TermStore,
        resolver: RevisionResolver,
        approvals: ApprovalWorkflow,
        folders: FolderAndMoveOrchestrator,
        coordinator: SplitJobCoordinator,
        *,
        drawings_folder: str = "Drawings",
        min_date: date = DEFAULT_MIN_DATE,
    ) -> None:
        self._split_service = split_service
        self._repository = repository
        self._terms = terms
        self._resolver = resolver
        self._approvals = approvals
        self._folders = folders
        self._coordinator = coordinator
        self._drawings_folder = drawings_folder
        self._min_date = min_date

    async def submit(
        self,
        session: DocumentSession,
        page_key: str | None = None,
        *,
        confirmed: bool = False,
        mode: UploadMode = UploadMode.DRAFT,
    ) -> str | None:
        """Commit one page, or save the whole document when ``page_key`` is omitted.

        Returns the repository id of the committed page. Submitting a page
        that is already PROCESSED returns its existing id without a commit.
        """

        session.ensure_open()
        if page_key is None:
            validate_document(session.document.common_fields)
            await self._coordinator.save_progress(session)
            return None

        async with session.lock:
            page = session.page(page_key)
            if page.status is PageStatus.PROCESSED:
                return page.repository_id
            if page.status is not PageStatus.READY:
                raise InvalidTransition(f"page {page_key} is {page.status.value} and cannot be submitted")
            if page_key in session.submitting:
                raise ConflictError(f"page {page_key} is already being submitted")
            session.submitting.add(page_key)
            fields = session.merged_fields(page_key)
            page_number = page.number

        try:
            return await self._commit(session, page_key, page_number, fields, confirmed=confirmed, mode=mode)
        finally:
            session.submitting.discard(page_key)

    async def _commit(
        self,
        session: DocumentSession,
        page_key: str,
        page_number: int,
        fields: dict[FieldKey, Any],
        *,
        confirmed: bool,
        mode: UploadMode,
    ) -> str:
        validate_page(fields, min_date=self._min_date)
        candidate = await self._resolver.evaluate(fields)
        if candidate.match_found and not confirmed:
            raise ConfirmationRequired(candidate.overwrite_warning_text or "file already exists")

        site = self._terms.site(term_label(fields.get(FieldKey.SITE)))
        content = await self._split_service.get_page_content(session.name, page_key)
        title = str(fields[FieldKey.TITLE]).strip()
        file_name = page_file_name(title)

        folder: list[str] = []
        area = term_label(fields.get(FieldKey.DRAWING_AREA))
        if is_drawing(fields.get(FieldKey.DOCUMENT_TYPE)) and area:
            folder = [self._drawings_folder, area]

        if candidate.match_found:
            uploaded = await self._repository.upload_file(
                candidate.site_url or site.url,
                folder,
                file_name,
                content,
                target_item_id=candidate.item_id,
            )
        else:
            if folder:
                await self._folders.ensure_folder(site.url, folder, auto_approve=True)
            uploaded = await self._repository.upload_file(site.url, folder, file_name, content)

        site_url = candidate.site_url or site.url
        await self._repository.update_fields(site_url, uploaded.item_id, {**fields, FieldKey.TITLE: title})
        await self._apply_mode(site_url, site.name, uploaded.item_id, fields, mode)
        logger.info("committed %s/%s as %s", session.name, page_key, uploaded.item_id)

        await self._split_service.update_page_status(
            session.name, page_number, PageStatus.PROCESSED, repository_id=uploaded.item_id
        )
        async with session.lock:
            page = session.document.pages.get(page_key)
            if page is not None:
                if page.status is not PageStatus.PROCESSED:
                    transition(page, PageStatus.PROCESSED)
                page.repository_id = uploaded.item_id
            session.document.bump()
            session.revision_candidates.pop(page_key, None)

        if not session.closed:
            try:
                await self._coordinator.save_progress(session)
            except DmsError as exc:
                logger.warning("saving progress of %s after commit failed: %s", session.name, exc)
        return uploaded.item_id

    async def _apply_mode(
        self,
        site_url: str,
        site_name: str,
        item_id: str,
        fields: dict[FieldKey, Any],
        mode: UploadMode,
    ) -> None:
        if mode is UploadMode.DRAFT:
            return
        eligible = False
        if mode is UploadMode.PRE_APPROVE:
            eligible = await self._repository.can_auto_approve(site_url, site_name)
        state = ApprovalState(
            item_id=item_id,
            site_url=site_url,
            status=ModerationStatus.DRAFT,
            auto_approve_eligible=eligible,
            document_type=term_label(fields.get(FieldKey.DOCUMENT_TYPE)) or None,
            drawing_area=term_label(fields.get(FieldKey.DRAWING_AREA)) or None,
        )
        if mode is UploadMode.PRE_APPROVE and eligible:
            await self._approvals.transition(state, ApprovalAction.APPROVE)
        else:
            await self._approvals.transition(state, ApprovalAction.REQUEST_APPROVAL, comment=AUTOMATED_REQUEST_COMMENT)
