"""Tests for the in-memory takeoff and snippet stores."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import Mock

from planchat.common.stores import (
    InMemorySnippetStore,
    InMemoryTakeoffStore,
    load_snippets_file,
    load_takeoff_file,
    snippet_text,
)


class TestInMemoryTakeoffStore:
    def test_missing_is_none(self):
        assert InMemoryTakeoffStore().load_latest_takeoff("p", "u") is None

    def test_latest_by_created_at(self):
        store = InMemoryTakeoffStore()
        now = datetime.now(timezone.utc)
        store.save_takeoff("p", "u", ["newer"], created_at=now)
        store.save_takeoff("p", "u", ["older"], created_at=now - timedelta(hours=1))
        assert store.load_latest_takeoff("p", "u") == ["newer"]

    def test_tie_goes_to_last_saved(self):
        store = InMemoryTakeoffStore()
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        store.save_takeoff("p", "u", ["first"], created_at=ts)
        store.save_takeoff("p", "u", ["second"], created_at=ts)
        assert store.load_latest_takeoff("p", "u") == ["second"]

    def test_scoped_by_user(self):
        store = InMemoryTakeoffStore()
        store.save_takeoff("p", "alice", ["a"])
        assert store.load_latest_takeoff("p", "bob") is None


class TestInMemorySnippetStore:
    SNIPPETS = [
        {"snippet_text": "Sheet notes: all doors to be solid core.", "page_number": 3},
        {"text": "Foundation plan with footing schedule.", "page_number": 1},
        {"snippet_text": "Door schedule continued.", "page_number": 3},
        {"snippet_text": "", "page_number": 2},
    ]

    def _store(self, embedding_service=None):
        store = InMemorySnippetStore(embedding_service=embedding_service)
        store.add_snippets("p", self.SNIPPETS)
        return store

    def test_empty_text_skipped(self):
        assert self._store().fetch_by_page("p", [2], 5) == []

    def test_has_snippets(self):
        store = self._store()
        assert store.has_snippets("p")
        assert not store.has_snippets("other")
        store.add_snippets("blank", [{"snippet_text": "", "page_number": 1}])
        assert not store.has_snippets("blank")

    def test_fetch_by_page_ordered(self):
        records = self._store().fetch_by_page("p", [3, 1], 5)
        assert [r["page_number"] for r in records] == [1, 3, 3]
        assert snippet_text(records[1]).startswith("Sheet notes")

    def test_fetch_by_page_limit(self):
        assert len(self._store().fetch_by_page("p", [1, 3], 2)) == 2

    def test_keyword_similarity(self):
        store = self._store()
        assert not store.uses_embeddings

        records = store.search_by_similarity("p", "What size are the footings?", 5)

        assert snippet_text(records[0]).startswith("Foundation plan")
        assert records[0]["similarity"] > 0

    def test_unknown_plan_or_blank_query(self):
        store = self._store()
        assert store.search_by_similarity("other", "doors", 5) == []
        assert store.search_by_similarity("p", "   ", 5) == []

    def test_embedding_similarity(self):
        embedding = Mock(is_available=True)
        embedding.embed.return_value = [[1.0, 0.0], [0.0, 1.0], [0.6, 0.8]]
        embedding.embed_single.return_value = [0.0, 1.0]
        embedding.batch_cosine_similarity.return_value = [0.0, 1.0, 0.8]
        store = self._store(embedding)

        records = store.search_by_similarity("p", "footings", 5)

        assert store.uses_embeddings
        embedding.embed.assert_called_once()
        assert [r["page_number"] for r in records] == [1, 3]
        assert records[0]["similarity"] == pytest.approx(1.0)


class TestFileLoaders:
    def test_load_takeoff_file(self, tmp_path):
        path = tmp_path / "takeoff.json"
        path.write_text(json.dumps({"items": [{"category": "Roofing"}]}))
        store = InMemoryTakeoffStore()

        load_takeoff_file(store, path, "p", "u")

        assert store.load_latest_takeoff("p", "u") == {"items": [{"category": "Roofing"}]}

    @pytest.mark.parametrize("data", [
        [{"snippet_text": "a", "page_number": 1}, "junk"],
        {"chunks": [{"snippet_text": "a", "page_number": 1}]},
    ])
    def test_load_snippets_file(self, tmp_path, data):
        path = tmp_path / "chunks.json"
        path.write_text(json.dumps(data))
        store = InMemorySnippetStore()

        assert load_snippets_file(store, path, "p") == 1
        assert len(store.fetch_by_page("p", [1], 5)) == 1

    def test_load_snippets_file_rejects_scalar(self, tmp_path):
        path = tmp_path / "chunks.json"
        path.write_text("42")
        assert load_snippets_file(InMemorySnippetStore(), path, "p") == 0
