"""Term store and site directory snapshot.

The snapshot is read once per process from a YAML file shaped like::

    terms:
      business:
        Hotels: "Hotels|6f1c..."
    sites:
      - name: Palm Resort
        url: https://contoso.sharepoint.com/sites/PalmResort

Values keep the ``"label|guid"`` form the repository expects on write.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from dms_migration.core.errors import NotFoundError
from dms_migration.core.name_normalize import normalize

UNTAGGED_LABEL = "to be tagged"


@dataclass(frozen=True)
class Site:
    name: str
    url: str

    @property
    def server_relative_url(self) -> str:
        _, _, rest = self.url.partition("://")
        _, slash, path = rest.partition("/")
        return f"/{path}" if slash else "/"


@dataclass(frozen=True)
class TermStore:
    terms: dict[str, dict[str, str]] = field(default_factory=dict)
    sites: tuple[Site, ...] = ()

    def options(self, category: str) -> list[str]:
        entries = self.terms.get(category, {})
        return [label for label in entries if label.strip().lower() != UNTAGGED_LABEL]

    def value_for(self, category: str, label: str) -> str | None:
        return self.terms.get(category, {}).get(label)

    def find_site(self, name: str) -> Site | None:
        wanted = normalize(name)
        for site in self.sites:
            if normalize(site.name) == wanted:
                return site
        return None

    def site(self, name: str) -> Site:
        site = self.find_site(name)
        if site is None:
            raise NotFoundError(f"site '{name}' is not accessible")
        return site


def _parse(payload: Any) -> TermStore:
    if not isinstance(payload, dict):
        return TermStore()
    terms: dict[str, dict[str, str]] = {}
    for category, entries in (payload.get("terms") or {}).items():
        if isinstance(entries, dict):
            terms[str(category)] = {str(label): str(value) for label, value in entries.items()}
    sites = tuple(
        Site(name=str(entry["name"]), url=str(entry["url"]).rstrip("/"))
        for entry in payload.get("sites") or []
        if isinstance(entry, dict) and entry.get("name") and entry.get("url")
    )
    return TermStore(terms=terms, sites=sites)


def load_term_store(path: Path) -> TermStore:
    if not path.exists():
        return TermStore()
    with path.open("r", encoding="utf-8") as fp:
        return _parse(yaml.safe_load(fp))


__all__ = ["Site", "TermStore", "load_term_store"]
