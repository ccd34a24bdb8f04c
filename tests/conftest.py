from __future__ import annotations

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from dms_migration.application import build_services, reset_services
from dms_migration.core.fields import FieldKey
from dms_migration.core.settings import Settings
from dms_migration.core.terms import Site, TermStore
from dms_migration.infrastructure import InMemoryRepository

SITE_URL = "https://contoso.sharepoint.com/sites/PalmResort"


@pytest.fixture(autouse=True)
def reset_state():
    reset_services()
    yield
    reset_services()


@pytest.fixture()
def terms() -> TermStore:
    return TermStore(
        terms={"document_type": {"Drawing": "Drawing|guid-drawing", "To be tagged": "To be tagged|guid-none"}},
        sites=(Site(name="Palm Resort", url=SITE_URL),),
    )


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        split_poll_interval=0.01,
        split_start_delay=0.0,
        date_propagation_delay=0.01,
        revision_debounce_delay=0.01,
        copy_job_poll_interval=0.0,
        copy_job_timeout=0.2,
        terms_file=tmp_path / "terms.yaml",
    )


@pytest.fixture()
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture()
def services(settings, repo, terms):
    return build_services(settings, split_service=repo, repository=repo, terms=terms)


@pytest.fixture()
def drawing_fields():
    def build(**overrides):
        fields = {
            FieldKey.TITLE: "RoofPlan",
            FieldKey.BUSINESS: "B1",
            FieldKey.DEPARTMENT: "D1",
            FieldKey.SITE: "Palm Resort",
            FieldKey.DOCUMENT_TYPE: "Drawing|guid-drawing",
            FieldKey.DRAWING_SET_NAME: "Set 1",
            FieldKey.DRAWING_NUMBER: "D-100",
            FieldKey.DRAWING_AREA: "A1",
            FieldKey.REVISION_NUMBER: "C",
            FieldKey.DRAWING_DATE: "2024-01-10",
            FieldKey.DRAWING_RECEIVED_DATE: "2024-02-01",
        }
        fields.update(overrides)
        return fields

    return build
