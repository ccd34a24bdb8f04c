from __future__ import annotations

import re
import unicodedata

_SEPARATORS = re.compile(r"[-_ ]+")
_EXTENSION = re.compile(r"\.[A-Za-z0-9]{1,5}$")


def normalize(name: str) -> str:
    normalized = unicodedata.normalize("NFKC", name).strip().lower()
    return "".join(normalized.split())


def title_from_file_name(file_name: str) -> str:
    """Strip the extension and quotes from an uploaded file name."""

    stem = _EXTENSION.sub("", file_name.strip())
    return stem.replace('"', "").replace("'", "").strip()


def soft_sanitize(name: str) -> str:
    words = [word for word in _SEPARATORS.split(name.strip()) if word]
    return " ".join(word[:1].upper() + word[1:] for word in words)


def page_file_name(title: str) -> str:
    return f"{soft_sanitize(title)}.pdf"
