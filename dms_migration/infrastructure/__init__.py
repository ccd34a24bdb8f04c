"""Infrastructure layer exports."""

from .dms import DmsSplitClient
from .repository import ContentRepository, InMemoryRepository, SplitJobService
from .sharepoint import SharePointClient

__all__ = [
    "ContentRepository",
    "DmsSplitClient",
    "InMemoryRepository",
    "SharePointClient",
    "SplitJobService",
]
