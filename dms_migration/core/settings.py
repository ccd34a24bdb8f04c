"""Runtime configuration loaded from the environment."""
from __future__ import annotations

from datetime import date
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TERMS_FILE = Path(__file__).resolve().parents[1] / "config" / "terms.yaml"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DMS_", env_file=".env", extra="ignore")

    # SharePoint
    sharepoint_tenant: str | None = None
    hub_site_name: str = "DMS"
    related_hub_site_id: str = ""
    document_library: str = "Shared Documents"
    drawings_folder: str = "Drawings"

    # split / OCR job service
    dms_api_url: str | None = None

    access_token: str | None = None
    id_token: str | None = None
    http_timeout: float = 30.0

    # revision lookup
    search_row_limit: int = 50
    search_select_properties: list[str] = [
        "Title",
        "Path",
        "UniqueId",
        "SPSiteUrl",
        "Business",
        "Department",
        "Resort",
        "DrawingNumber",
        "DrawingArea",
        "RevisionNumber",
    ]
    revision_successor: str = "first_character"
    revision_debounce_delay: float = 0.3

    # split jobs and propagation
    split_poll_interval: float = 2.0
    split_start_delay: float = 1.0
    date_propagation_delay: float = 0.1
    min_drawing_date: date = date(2016, 1, 1)

    # moves
    copy_job_poll_interval: float = 1.0
    copy_job_timeout: float = 120.0

    terms_file: Path = DEFAULT_TERMS_FILE
    log_level: str = "INFO"
    cors_origins: str = ""

    @property
    def sharepoint_base_url(self) -> str | None:
        if not self.sharepoint_tenant:
            return None
        return f"https://{self.sharepoint_tenant}.sharepoint.com"


@lru_cache
def get_settings() -> Settings:
    return Settings()
