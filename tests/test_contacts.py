"""
test_contacts.py — Tests for the ordered emergency contact store.

Run with:
    pytest tests/test_contacts.py -v
"""

from __future__ import annotations

import pytest

from backend.app.core.errors import NotFoundError, ValidationError
from backend.app.safety.contacts import ContactStore, is_valid_contact


@pytest.mark.parametrize("value,expected", [
    ("a@b.com", True),
    ("first.last@sub.example.org", True),
    ("  padded@x.io  ", True),
    ("not-an-email", False),
    ("a@b", False),
    ("@b.com", False),
    ("", False),
    ("   ", False),
])
def test_validation(value, expected):
    assert is_valid_contact(value) is expected


def test_add_preserves_order_and_duplicates():
    store = ContactStore()
    store.add("a@b.com")
    store.add("c@d.com")
    store.add("a@b.com")
    assert store.list() == ("a@b.com", "c@d.com", "a@b.com")
    assert len(store) == 3


def test_add_rejects_invalid():
    store = ContactStore()
    with pytest.raises(ValidationError) as exc:
        store.add("not-an-email")
    assert exc.value.status_code == 422
    assert len(store) == 0


def test_remove_by_index():
    store = ContactStore()
    for c in ("a@b.com", "c@d.com", "e@f.com"):
        store.add(c)
    assert store.remove(1) == "c@d.com"
    assert store.list() == ("a@b.com", "e@f.com")


@pytest.mark.parametrize("index", [-1, 3, 99])
def test_remove_bad_index(index):
    store = ContactStore()
    for c in ("a@b.com", "c@d.com", "e@f.com"):
        store.add(c)
    with pytest.raises(NotFoundError):
        store.remove(index)
    assert len(store) == 3


def test_list_is_a_snapshot():
    store = ContactStore()
    store.add("a@b.com")
    snapshot = store.list()
    store.add("c@d.com")
    assert snapshot == ("a@b.com",)
    assert list(store) == ["a@b.com", "c@d.com"]
