from __future__ import annotations

import pytest

from dms_migration.core.revision import (
    build_filter_expression,
    first_character_successor,
    get_successor,
    overwrite_warning,
    strict_alpha_successor,
)


@pytest.mark.parametrize(
    ("marker", "expected"),
    [("B", "C"), ("A1", "B"), ("3", "4"), (" b ", "c"), ("", None)],
)
def test_first_character_successor(marker, expected):
    assert first_character_successor(marker) == expected


def test_first_character_successor_does_not_wrap():
    assert first_character_successor("Z") == "["


@pytest.mark.parametrize(("marker", "expected"), [("B", "C"), ("A1", None), ("Z", None), ("3", None)])
def test_strict_alpha_successor(marker, expected):
    assert strict_alpha_successor(marker) == expected


def test_unknown_successor_name():
    assert get_successor("strict_alpha") is strict_alpha_successor
    with pytest.raises(ValueError):
        get_successor("numeric")


def test_filter_expression_joins_clauses_and_scope():
    expression = build_filter_expression({"Title": "Roof", "DrawingArea": "A1"}, hub_site_id="hub-1")
    assert expression == (
        'Title="Roof" DrawingArea="A1" contentclass:STS_ListItem_DocumentLibrary '
        "(RelatedHubSites:hub-1) (-SiteId:hub-1)"
    )


def test_overwrite_warning_text():
    warning = overwrite_warning(["D1", "A1", "D-100", "RoofPlan", "B"])
    assert warning == "This upload will add a version to file D1–A1–D-100–RoofPlan–B"
