"""Domain entities for content approval."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

from .moves import MoveResult


class ModerationStatus(IntEnum):
    APPROVED = 0
    REJECTED = 1
    PENDING = 2
    DRAFT = 3
    SCHEDULED = 4


class ApprovalAction(str, Enum):
    REQUEST_APPROVAL = "request_approval"
    APPROVE = "approve"
    REJECT = "reject"
    SCHEDULE = "schedule"


class UploadMode(str, Enum):
    DRAFT = "draft"
    FOR_APPROVAL = "for_approval"
    PRE_APPROVE = "pre_approve"


@dataclass(slots=True)
class ApprovalState:
    item_id: str
    site_url: str
    status: ModerationStatus
    auto_approve_eligible: bool = False
    comment: str | None = None
    file_ref: str | None = None
    folder: str | None = None
    document_type: str | None = None
    drawing_area: str | None = None
    move: MoveResult | None = None

    @property
    def edit_locked(self) -> bool:
        return self.status in (ModerationStatus.PENDING, ModerationStatus.DRAFT)


@dataclass(slots=True)
class RepositoryItem:
    """Current state of an item in the content repository."""

    item_id: str
    file_ref: str
    folder: str
    moderation_status: ModerationStatus = ModerationStatus.DRAFT
    moderation_comment: str | None = None
    document_type: str | None = None
    drawing_area: str | None = None
    title: str | None = None


@dataclass(slots=True)
class UploadedItem:
    item_id: str
    file_ref: str
