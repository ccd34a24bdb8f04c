"""Content approval state machine."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

from dms_migration.application.folders import FolderAndMoveOrchestrator
from dms_migration.core.errors import EditLockedError, InvalidTransition, ValidationFailed
from dms_migration.core.fields import is_drawing, term_label
from dms_migration.core.terms import TermStore
from dms_migration.domain import ApprovalAction, ApprovalState, FileVersion, ModerationStatus
from dms_migration.infrastructure.repository import ContentRepository

logger = logging.getLogger(__name__)

APPROVED_COMMENT = "Approved"
AUTO_APPROVED_COMMENT = "Approved (Auto)"
SCHEDULED_COMMENT = "Scheduled (Auto)"
NO_COMMENT = "<no comment>"
AUTOMATED_REQUEST_COMMENT = "For Approval (automated)"


def is_on_latest_approved_version(state: ApprovalState, versions: Sequence[FileVersion] = ()) -> bool:
    if state.edit_locked:
        return False
    if versions and versions[0].moderation_status is not None:
        return versions[0].moderation_status == ModerationStatus.APPROVED
    return state.status is ModerationStatus.APPROVED


class ApprovalWorkflow:
    """Moves repository items through Draft, Pending, Approved, Rejected and Scheduled."""

    def __init__(
        self,
        repository: ContentRepository,
        terms: TermStore,
        folders: FolderAndMoveOrchestrator,
        *,
        drawings_folder: str = "Drawings",
    ) -> None:
        self._repository = repository
        self._terms = terms
        self._folders = folders
        self._drawings_folder = drawings_folder

    async def load_state(self, site_name: str, item_id: str) -> ApprovalState:
        site = self._terms.site(site_name)
        item = await self._repository.get_item(site.url, item_id)
        eligible = await self._repository.can_auto_approve(site.url, site.name)
        return ApprovalState(
            item_id=item.item_id,
            site_url=site.url,
            status=item.moderation_status,
            auto_approve_eligible=eligible,
            comment=item.moderation_comment,
            file_ref=item.file_ref,
            folder=item.folder,
            document_type=item.document_type,
            drawing_area=item.drawing_area,
        )

    async def ensure_editable(self, state: ApprovalState) -> None:
        versions = await self._repository.list_item_versions(state.site_url, state.item_id)
        if not is_on_latest_approved_version(state, versions):
            raise EditLockedError(f"item {state.item_id} is not on its latest approved version")

    async def transition(
        self,
        state: ApprovalState,
        action: ApprovalAction | str,
        *,
        comment: str | None = None,
        minor_version: bool = False,
    ) -> ApprovalState:
        action = ApprovalAction(action)
        text = (comment or "").strip()

        if action is ApprovalAction.REQUEST_APPROVAL:
            self._require(state, action, ModerationStatus.DRAFT)
            if minor_version and not text:
                raise ValidationFailed({"comment": "is required when requesting approval of a minor version"})
            target, note = ModerationStatus.PENDING, text or NO_COMMENT
        elif action is ApprovalAction.APPROVE:
            if state.status is ModerationStatus.PENDING:
                note = APPROVED_COMMENT
            elif state.status is ModerationStatus.DRAFT and state.auto_approve_eligible:
                note = AUTO_APPROVED_COMMENT
            else:
                raise InvalidTransition(f"cannot approve an item that is {state.status.name.lower()}")
            target = ModerationStatus.APPROVED
        elif action is ApprovalAction.REJECT:
            self._require(state, action, ModerationStatus.PENDING)
            if not text:
                raise ValidationFailed({"reason": "a rejection reason is required"})
            target, note = ModerationStatus.REJECTED, text
        else:
            self._require(state, action, ModerationStatus.DRAFT)
            if not state.auto_approve_eligible:
                raise InvalidTransition("scheduling requires auto-approval rights")
            target, note = ModerationStatus.SCHEDULED, text or SCHEDULED_COMMENT

        await self._repository.set_moderation_status(state.site_url, state.item_id, target, note)
        logger.info("item %s moved from %s to %s", state.item_id, state.status.name, target.name)
        updated = replace(state, status=target, comment=note)
        if target is ModerationStatus.APPROVED:
            updated = await self._relocate(updated)
        return updated

    @staticmethod
    def _require(state: ApprovalState, action: ApprovalAction, expected: ModerationStatus) -> None:
        if state.status is not expected:
            raise InvalidTransition(
                f"cannot {action.value.replace('_', ' ')} an item that is {state.status.name.lower()}"
            )

    async def _relocate(self, state: ApprovalState) -> ApprovalState:
        """Move an approved drawing into its canonical area folder."""

        area = term_label(state.drawing_area)
        if not state.auto_approve_eligible or not is_drawing(state.document_type) or not area:
            return state
        segments = [self._drawings_folder, area]
        if state.folder and state.folder.rstrip("/").endswith("/".join(segments)):
            return state
        if not state.file_ref:
            return state

        await self._folders.ensure_folder(state.site_url, segments, auto_approve=True)
        destination = self._folders.folder_path(state.site_url, segments)
        result = await self._folders.move(state.site_url, state.file_ref, destination)
        if result.status == "stalled":
            return replace(state, move=result)
        file_name = state.file_ref.rsplit("/", 1)[-1]
        return replace(state, folder=destination, file_ref=f"{destination}/{file_name}", move=result)
