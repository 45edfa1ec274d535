"""Tests for guest assignment storage."""

import pytest

from mystery_maker import storage


@pytest.fixture
def package_id():
    conv = storage.create_conversation("u1")
    return storage.create_package(conv["id"])["id"]


def test_upsert_creates_assignment_with_token(package_id):
    a = storage.upsert_assignment(package_id, "c1", "Ann", "ann@example.com")
    assert a["is_sent"] is False
    assert len(a["access_token"]) >= 24
    assert storage.get_assignments(package_id) == [a]


def test_upsert_replaces_guest_for_same_character(package_id):
    first = storage.upsert_assignment(package_id, "c1", "Ann", "ann@example.com")
    second = storage.upsert_assignment(package_id, "c1", "Bob", "bob@example.com")
    assert second["id"] == first["id"]
    assert second["access_token"] == first["access_token"]
    assert len(storage.get_assignments(package_id)) == 1
    assert storage.get_assignments(package_id)[0]["guest_name"] == "Bob"


def test_set_assignment_sent(package_id):
    a = storage.upsert_assignment(package_id, "c1", "Ann", "ann@example.com")
    sent = storage.set_assignment_sent(package_id, a["id"], True)
    assert sent["is_sent"] is True
    assert sent["sent_at"] is not None
    unsent = storage.set_assignment_sent(package_id, a["id"], False)
    assert unsent["sent_at"] is None
    assert storage.set_assignment_sent(package_id, "missing", True) is None


def test_find_assignment_by_token(package_id):
    a = storage.upsert_assignment(package_id, "c1", "Ann", "ann@example.com")
    assert storage.find_assignment_by_token(a["access_token"])["id"] == a["id"]
    assert storage.find_assignment_by_token("wrong") is None
    assert storage.find_assignment_by_token("") is None


def test_find_assignment_by_non_ascii_token(package_id):
    storage.upsert_assignment(package_id, "c1", "Ann", "ann@example.com")
    assert storage.find_assignment_by_token("café") is None
