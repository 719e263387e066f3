"""
Plan Data Stores

Read paths into the takeoff and blueprint snippet data for a plan.
The retrieval engine only reads through these interfaces; it never writes.

Raw snippet records are dicts shaped like the extraction output:
    {"snippet_text": str, "page_number": int | None, "metadata": {...}}
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from .embedding_service import EmbeddingService

logger = logging.getLogger("planchat.common.stores")


class TakeoffStore(Protocol):
    """Latest persisted takeoff per plan/user"""

    def load_latest_takeoff(self, plan_id: str, user_id: str) -> Any:
        """Return the raw items blob of the newest takeoff, or None."""
        ...


class SnippetStore(Protocol):
    """Blueprint text snippets per plan"""

    def fetch_by_page(self, plan_id: str, pages: Sequence[int], limit: int) -> List[Dict[str, Any]]:
        ...

    def search_by_similarity(self, plan_id: str, query_text: str, limit: int) -> List[Dict[str, Any]]:
        ...

    def has_snippets(self, plan_id: str) -> bool:
        """Whether any text has been extracted for the plan."""
        ...


def snippet_text(record: Dict[str, Any]) -> str:
    return record.get("snippet_text") or record.get("text") or ""


class InMemoryTakeoffStore:
    """
    Keeps every saved takeoff snapshot and serves the newest one.

    Snapshots are keyed by (plan_id, user_id); older ones are retained but
    never returned by load_latest_takeoff.
    """

    def __init__(self):
        self._snapshots: Dict[Tuple[str, str], List[Tuple[datetime, int, Any]]] = {}
        self._sequence = 0

    def save_takeoff(
        self,
        plan_id: str,
        user_id: str,
        items: Any,
        created_at: Optional[datetime] = None,
    ) -> None:
        created_at = created_at or datetime.now(timezone.utc)
        self._sequence += 1
        self._snapshots.setdefault((plan_id, user_id), []).append(
            (created_at, self._sequence, items)
        )

    def load_latest_takeoff(self, plan_id: str, user_id: str) -> Any:
        snapshots = self._snapshots.get((plan_id, user_id))
        if not snapshots:
            return None
        # Ties on created_at go to the most recently saved snapshot
        return max(snapshots, key=lambda s: (s[0], s[1]))[2]


class InMemorySnippetStore:
    """
    Snippet store with page lookup and similarity search.

    Similarity search embeds snippets with the EmbeddingService when one is
    provided and available; otherwise snippets are ranked by fuzzy keyword
    score against the query.
    """

    def __init__(self, embedding_service: Optional[EmbeddingService] = None):
        self._embedding = embedding_service
        self._snippets: Dict[str, List[Dict[str, Any]]] = {}
        self._vectors: Dict[str, List[List[float]]] = {}

    @property
    def uses_embeddings(self) -> bool:
        return self._embedding is not None and self._embedding.is_available

    def add_snippets(self, plan_id: str, snippets: Sequence[Dict[str, Any]]) -> None:
        records = [dict(s) for s in snippets if snippet_text(s)]
        self._snippets.setdefault(plan_id, []).extend(records)
        if self.uses_embeddings and records:
            vectors = self._embedding.embed([snippet_text(r) for r in records])
            self._vectors.setdefault(plan_id, []).extend(vectors)

    def has_snippets(self, plan_id: str) -> bool:
        return bool(self._snippets.get(plan_id))

    def fetch_by_page(self, plan_id: str, pages: Sequence[int], limit: int) -> List[Dict[str, Any]]:
        wanted = {int(p) for p in pages}
        if not wanted:
            return []
        matched = [
            (record.get("page_number"), i, record)
            for i, record in enumerate(self._snippets.get(plan_id, []))
            if record.get("page_number") in wanted
        ]
        matched.sort(key=lambda m: (m[0], m[1]))
        return [record for _, _, record in matched[:limit]]

    def search_by_similarity(self, plan_id: str, query_text: str, limit: int) -> List[Dict[str, Any]]:
        records = self._snippets.get(plan_id, [])
        query = (query_text or "").strip()
        if not records or not query:
            return []

        if self.uses_embeddings:
            query_vec = self._embedding.embed_single(query)
            scores = self._embedding.batch_cosine_similarity(query_vec, self._vectors[plan_id])
        else:
            scores = self._keyword_scores(query, records)

        ranked = sorted(
            ((s, i) for i, s in enumerate(scores) if s > 0),
            key=lambda pair: (-pair[0], pair[1]),
        )
        return [dict(records[i], similarity=s) for s, i in ranked[:limit]]

    @staticmethod
    def _keyword_scores(query: str, records: List[Dict[str, Any]]) -> List[float]:
        from ..retriever import fuzzy

        keywords = [w for w in fuzzy.normalize(query).split() if len(w) > 3]
        return [fuzzy.score(snippet_text(r), keywords) for r in records]


def _read_json(path: Path) -> Any:
    with open(path) as f:
        return json.load(f)


def load_takeoff_file(store: InMemoryTakeoffStore, path: Path, plan_id: str, user_id: str) -> None:
    """Load a takeoff export (any accepted blob shape) into the store."""
    store.save_takeoff(plan_id, user_id, _read_json(Path(path)))


def load_snippets_file(store: InMemorySnippetStore, path: Path, plan_id: str) -> int:
    """Load a JSON list of snippet records (or {"chunks": [...]}) into the store."""
    data = _read_json(Path(path))
    if isinstance(data, dict):
        data = data.get("chunks") or data.get("snippets") or []
    if not isinstance(data, list):
        logger.warning("Snippet file %s does not contain a list", path)
        return 0
    records = [r for r in data if isinstance(r, dict)]
    store.add_snippets(plan_id, records)
    return len(records)
