"""Application services."""

from .approvals import ApprovalWorkflow, is_on_latest_approved_version
from .documents import DocumentRegistry, DocumentSession
from .folders import FolderAndMoveOrchestrator
from .metadata import MetadataPropagator, apply_autofill
from .revisions import RevisionResolver
from .services import Services, build_services, configure_services, get_services, reset_services
from .split_jobs import SplitJobCoordinator
from .uploads import UploadGate

__all__ = [
    "ApprovalWorkflow",
    "DocumentRegistry",
    "DocumentSession",
    "FolderAndMoveOrchestrator",
    "MetadataPropagator",
    "RevisionResolver",
    "Services",
    "SplitJobCoordinator",
    "UploadGate",
    "apply_autofill",
    "build_services",
    "configure_services",
    "get_services",
    "is_on_latest_approved_version",
    "reset_services",
]
