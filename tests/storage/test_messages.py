"""Tests for message storage."""

import pytest

from mystery_maker import storage


def test_get_messages_empty():
    conv = storage.create_conversation("u1")
    assert storage.get_messages(conv["id"]) == []


def test_append_and_get_messages():
    conv = storage.create_conversation("u1")
    storage.append_message(conv["id"], "user", "A 1920s theme please")
    storage.append_message(conv["id"], "assistant", "How many players?")
    result = storage.get_messages(conv["id"])
    assert [m["role"] for m in result] == ["user", "assistant"]
    assert result[1]["content"] == "How many players?"
    assert result[0]["conversation_id"] == conv["id"]


def test_append_rejects_unknown_role():
    conv = storage.create_conversation("u1")
    with pytest.raises(ValueError, match="role"):
        storage.append_message(conv["id"], "narrator", "hi")


def test_append_touches_conversation():
    conv = storage.create_conversation("u1")
    storage.append_message(conv["id"], "user", "hi")
    assert storage.get_conversation(conv["id"])["updated_at"] >= conv["updated_at"]
