"""Domain layer definitions."""

from .approvals import (
    ApprovalAction,
    ApprovalState,
    ModerationStatus,
    RepositoryItem,
    UploadedItem,
    UploadMode,
)
from .documents import Page, PageStatus, SavedMetadata, SplitDocument, SplitSnapshot, StatusCounts
from .moves import CopyJob, CopyJobLogEntry, CopyJobProgress, MoveResult
from .revisions import FileVersion, RevisionCandidate, SearchHit

__all__ = [
    "ApprovalAction",
    "ApprovalState",
    "CopyJob",
    "CopyJobLogEntry",
    "CopyJobProgress",
    "FileVersion",
    "ModerationStatus",
    "MoveResult",
    "Page",
    "PageStatus",
    "RepositoryItem",
    "RevisionCandidate",
    "SavedMetadata",
    "SearchHit",
    "SplitDocument",
    "SplitSnapshot",
    "StatusCounts",
    "UploadMode",
    "UploadedItem",
]
