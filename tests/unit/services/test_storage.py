"""Unit tests for saved query persistence."""

import json
from unittest.mock import patch

import pytest

from orgpilot.core.types import ChatRole, ChatTurn
from orgpilot.services.storage import ChatHistoryStore, SavedQueryStore


@pytest.fixture
def store(tmp_path):
    return SavedQueryStore(tmp_path / "nested" / "saved.json")


class TestSavedQueryStore:
    def test_missing_file_is_empty(self, store):
        assert store.load() == []

    def test_add_is_newest_first(self, store):
        with patch("orgpilot.services.storage.time.time", side_effect=[1.0, 2.0]):
            store.add("first", "SELECT Id FROM Account")
            store.add("second", "SELECT Id FROM Contact")

        loaded = store.load()
        assert [q.name for q in loaded] == ["second", "first"]
        assert loaded[0].id == "2000"
        assert loaded[0].saved_at == 2000

    def test_delete(self, store):
        saved = store.add("q", "SELECT Id FROM Lead")

        assert store.delete(saved.id)
        assert store.load() == []
        assert not store.delete(saved.id)

    def test_corrupt_file_is_empty(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        assert store.load() == []

    def test_wrong_shape_is_empty(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps([{"id": "1"}]))
        assert store.load() == []


class TestChatHistoryStore:
    def test_append_and_reload(self, tmp_path):
        store = ChatHistoryStore(tmp_path / "chat.json")
        store.append(ChatTurn(role=ChatRole.USER, content="hi"), ChatTurn(role=ChatRole.MODEL, content="hello"))
        history = store.append(ChatTurn(role=ChatRole.USER, content="again"))

        assert [t.content for t in history] == ["hi", "hello", "again"]
        assert store.load() == history
        assert json.loads(store.path.read_text())[1] == {"role": "model", "content": "hello"}

    def test_clear(self, tmp_path):
        store = ChatHistoryStore(tmp_path / "chat.json")
        store.append(ChatTurn(role=ChatRole.USER, content="hi"))
        store.clear()

        assert store.load() == []
        store.clear()

    def test_corrupt_file_is_empty(self, tmp_path):
        path = tmp_path / "chat.json"
        path.write_text('[{"role": "robot"}]')
        assert ChatHistoryStore(path).load() == []
