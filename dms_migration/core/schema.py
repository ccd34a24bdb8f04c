from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SuggestionValue(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str = ""
    pos: Any = None


class SplitPagePayload(BaseModel):
    """One page entry of the split job status document."""

    model_config = ConfigDict(extra="ignore")

    page: int
    status: str = "NEW"
    pdf: str | None = None
    img: str | None = None
    document_uri: str | None = None
    details: dict[str, Any] | None = None
    field_data: dict[str, Any] | None = None

    def suggestions(self) -> dict[str, list[str]]:
        found: dict[str, list[str]] = {}
        for category, blocks in (self.details or {}).items():
            if not isinstance(blocks, list) or not blocks or not isinstance(blocks[0], dict):
                continue
            values = blocks[0].get("values") or []
            texts = [SuggestionValue.model_validate(value).text for value in values if isinstance(value, dict)]
            found[category] = [text for text in texts if text]
        return found


class SplitStatusPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    page_count: int = 0
    pages: dict[str, SplitPagePayload] = Field(default_factory=dict)
    field_data: dict[str, Any] | None = None


class SavedPagePayload(BaseModel):
    page: int
    field_data: dict[str, Any] = Field(default_factory=dict)


class SavedMetadataPayload(BaseModel):
    """Progress document stored by the split service, keyed by display labels."""

    field_data: dict[str, Any] = Field(default_factory=dict)
    pages: list[SavedPagePayload] = Field(default_factory=list)


class CopyJobLogPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    event: str = Field(alias="Event")
    time: str | None = Field(default=None, alias="Time")
    message: str | None = Field(default=None, alias="Message")


class CopyJobProgressPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    job_state: int = Field(default=0, alias="JobState")
    logs: list[str] = Field(default_factory=list, alias="Logs")
