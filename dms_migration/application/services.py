"""Process-wide wiring of the application services."""
from __future__ import annotations

from dataclasses import dataclass

from dms_migration.application.approvals import ApprovalWorkflow
from dms_migration.application.documents import DocumentRegistry
from dms_migration.application.folders import FolderAndMoveOrchestrator
from dms_migration.application.metadata import MetadataPropagator
from dms_migration.application.revisions import RevisionResolver
from dms_migration.application.split_jobs import SplitJobCoordinator
from dms_migration.application.uploads import UploadGate
from dms_migration.core.revision import get_successor
from dms_migration.core.settings import Settings, get_settings
from dms_migration.core.terms import TermStore, load_term_store
from dms_migration.infrastructure.repository import ContentRepository, InMemoryRepository, SplitJobService


@dataclass
class Services:
    settings: Settings
    terms: TermStore
    split_service: SplitJobService
    repository: ContentRepository
    registry: DocumentRegistry
    propagator: MetadataPropagator
    resolver: RevisionResolver
    folders: FolderAndMoveOrchestrator
    approvals: ApprovalWorkflow
    coordinator: SplitJobCoordinator
    uploads: UploadGate


def build_services(
    settings: Settings,
    *,
    split_service: SplitJobService | None = None,
    repository: ContentRepository | None = None,
    terms: TermStore | None = None,
) -> Services:
    if split_service is None or repository is None:
        memory = InMemoryRepository(library=settings.document_library)
        split_service = split_service or memory
        repository = repository or memory
    terms = terms or load_term_store(settings.terms_file)

    registry = DocumentRegistry()
    propagator = MetadataPropagator(delay=settings.date_propagation_delay)
    resolver = RevisionResolver(
        repository,
        terms,
        row_limit=settings.search_row_limit,
        successor=get_successor(settings.revision_successor),
        delay=settings.revision_debounce_delay,
    )
    propagator.subscribe(resolver.schedule)
    folders = FolderAndMoveOrchestrator(
        repository,
        library=settings.document_library,
        poll_interval=settings.copy_job_poll_interval,
        timeout=settings.copy_job_timeout,
    )
    approvals = ApprovalWorkflow(repository, terms, folders, drawings_folder=settings.drawings_folder)
    coordinator = SplitJobCoordinator(
        split_service,
        registry,
        propagator,
        poll_interval=settings.split_poll_interval,
        start_delay=settings.split_start_delay,
        default_document_type=terms.value_for("document_type", "Drawing") or "Drawing",
    )
    uploads = UploadGate(
        split_service,
        repository,
        terms,
        resolver,
        approvals,
        folders,
        coordinator,
        drawings_folder=settings.drawings_folder,
        min_date=settings.min_drawing_date,
    )
    return Services(
        settings=settings,
        terms=terms,
        split_service=split_service,
        repository=repository,
        registry=registry,
        propagator=propagator,
        resolver=resolver,
        folders=folders,
        approvals=approvals,
        coordinator=coordinator,
        uploads=uploads,
    )


_services: Services | None = None


def configure_services(services: Services) -> None:
    """Install the services used by the HTTP routes."""

    global _services
    _services = services


def get_services() -> Services:
    """Return the singleton services for the process."""

    global _services
    if _services is None:
        _services = build_services(get_settings())
    return _services


def reset_services() -> None:
    """Drop the installed services (used in tests)."""

    global _services
    _services = None
