"""Tests for pagination parameter handling and message formatting."""
from __future__ import annotations

import pytest

from bounce_service.api.pagination import get_pagination
from bounce_service.core import i18n


@pytest.mark.parametrize(
    ("page", "per_page", "expected"),
    [
        (None, None, (1, 20, 0)),
        ("3", "10", (3, 10, 20)),
        ("0", "0", (1, 20, 0)),
        ("-2", "-5", (1, 20, 0)),
        ("two", "many", (1, 20, 0)),
        ("2", "1000", (2, 50, 50)),
        ("1", "50", (1, 50, 0)),
    ],
)
def test_get_pagination(page, per_page, expected):
    pg = get_pagination(page, per_page, default=20, maximum=50)
    assert (pg.page, pg.per_page, pg.offset) == expected
    assert pg.limit == pg.per_page


def test_message_references_are_resolved():
    message = i18n.ts("globals.messages.errorFetching", name="{globals.terms.bounces}", error="timeout")
    assert message == "Error fetching bounces: timeout"


def test_unknown_message_key_falls_back_to_key():
    assert i18n.t("no.such.key") == "no.such.key"
