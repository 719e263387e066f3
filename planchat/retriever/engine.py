"""
Retrieval Engine

Deterministic retrieval for plan chat questions. Given a Classification,
loads the latest takeoff snapshot and blueprint snippets for a plan, filters
and ranks them with the fuzzy matcher, and aggregates totals and breakdowns
into a bounded RetrievalResult.

No generative call happens here: the fuzzy matcher is the only judgment
applied to which data is selected.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..common.config import RetrievalConfig
from ..common.schemas import (
    BlueprintSnippet,
    Breakdowns,
    CategoryBreakdown,
    Classification,
    CostTotal,
    LevelBreakdown,
    MissingCategory,
    MissingMeasurement,
    MissingScopeReport,
    QuantityTotal,
    QuestionType,
    RelatedItem,
    RetrievalResult,
    TAKEOFF_TYPES,
    TakeoffItem,
    Totals,
)
from ..common.stores import SnippetStore, TakeoffStore, snippet_text
from . import fuzzy
from .takeoff import normalize_takeoff_items

logger = logging.getLogger("planchat.retriever.engine")

# Loosely phrased OTHER questions that should still surface takeoff context
GENERAL_SCOPE_PHRASES = ("project", "what kind", "tell me about")

NO_ITEMS_SCOPE = "No matching items found in takeoff"
DEFAULT_UNIT = "units"

# Trade groups checked when looking for scope the takeoff does not cover
EXPECTED_SCOPE_KEYWORDS = (
    "concrete", "steel", "framing", "drywall", "roofing", "electrical", "plumbing",
    "hvac", "insulation", "windows", "doors", "finishes", "exterior", "sitework",
)
EVIDENCE_PREVIEW_CHARS = 150
MAX_EVIDENCE_PER_CATEGORY = 2


@dataclass(frozen=True)
class PlanScope:
    """Which plan (and whose takeoff) a question is asked against"""
    plan_id: str
    user_id: str
    job_id: Optional[str] = None


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


def _page_number(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return int(value)


class RetrievalEngine:
    """
    Builds RetrievalResults from the takeoff and snippet stores.

    Pipeline:
    1. Load the latest takeoff snapshot (empty on absence)
    2. Filter items by pages, fuzzy targets, and levels
    3. Aggregate totals and breakdowns over the filtered items
    4. Fetch blueprint snippets by page or by similarity when needed
    """

    def __init__(
        self,
        takeoff_store: TakeoffStore,
        snippet_store: SnippetStore,
        config: Optional[RetrievalConfig] = None,
    ):
        """
        Initialize retrieval engine.

        Args:
            takeoff_store: Read path to the latest takeoff per plan/user
            snippet_store: Read path to blueprint snippets per plan
            config: Thresholds and caps (defaults if omitted)
        """
        self._takeoffs = takeoff_store
        self._snippets = snippet_store
        self._config = config or RetrievalConfig()

    def retrieve(
        self,
        scope: PlanScope,
        question: str,
        classification: Classification,
    ) -> RetrievalResult:
        """
        Retrieve and aggregate the data relevant to a classified question.

        Never raises for absent data: missing takeoffs or snippets produce
        empty fields in the result.
        """
        all_items = self._load_items(scope)
        question_type = classification.question_type

        scope_description = ""
        matched: List[TakeoffItem] = []
        totals = None
        breakdowns = None

        if self._should_process_takeoff(question, classification):
            matched = self.filter_items(all_items, classification)
            totals = self._build_totals(matched)
            breakdowns = self._build_breakdowns(matched)
            scope_description = self._describe_items(matched)

        related_items = [self._project(item) for item in matched[: self._config.max_related_items]]

        snippets: Optional[List[BlueprintSnippet]] = None
        needs_snippets = (
            question_type in (QuestionType.PAGE_CONTENT, QuestionType.BLUEPRINT_CONTEXT, QuestionType.TAKEOFF_ANALYZE)
            or (question_type == QuestionType.COMBINED and not related_items)
        ) and not classification.strict_takeoff_only
        if needs_snippets:
            snippets = self._fetch_snippets(scope, question, classification)
            if not scope_description and snippets:
                scope_description = (
                    f"Found {len(snippets)} relevant blueprint "
                    f"{_plural(len(snippets), 'snippet', 'snippets')}"
                )

        if not scope_description:
            scope_description = NO_ITEMS_SCOPE

        missing_scope = None
        if question_type == QuestionType.TAKEOFF_ANALYZE:
            missing_scope = analyze_missing_scope(all_items, snippets or [])

        logger.info(
            "Retrieved plan=%s type=%s items=%d matched=%d snippets=%d",
            scope.plan_id,
            question_type.value,
            len(all_items),
            len(matched),
            len(snippets or []),
        )

        return RetrievalResult(
            question=question,
            classification=classification,
            scope_description=scope_description,
            totals=totals,
            breakdowns=breakdowns,
            related_items=related_items,
            blueprint_snippets=snippets,
            missing_scope=missing_scope,
            plan_has_data=bool(all_items) or bool(snippets) or self._plan_has_text(scope),
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load_items(self, scope: PlanScope) -> List[TakeoffItem]:
        try:
            raw = self._takeoffs.load_latest_takeoff(scope.plan_id, scope.user_id)
        except Exception as e:
            logger.warning("Takeoff load failed for plan %s: %s", scope.plan_id, e)
            return []
        return normalize_takeoff_items(raw)

    def _plan_has_text(self, scope: PlanScope) -> bool:
        try:
            return bool(self._snippets.has_snippets(scope.plan_id))
        except Exception as e:
            logger.warning("Snippet presence check failed for plan %s: %s", scope.plan_id, e)
            return False

    def _fetch_snippets(
        self,
        scope: PlanScope,
        question: str,
        classification: Classification,
    ) -> List[BlueprintSnippet]:
        limit = self._config.snippet_limit
        try:
            if classification.pages:
                records = self._snippets.fetch_by_page(scope.plan_id, classification.pages, limit)
            else:
                records = self._snippets.search_by_similarity(scope.plan_id, question, limit)
        except Exception as e:
            logger.warning("Snippet retrieval failed for plan %s: %s", scope.plan_id, e)
            return []

        return [self._to_snippet(r) for r in (records or [])[:limit] if snippet_text(r)]

    @staticmethod
    def _to_snippet(record: Dict[str, Any]) -> BlueprintSnippet:
        metadata = record.get("metadata") or {}
        sheet_name = record.get("sheet_name")
        if isinstance(metadata, dict):
            sheet_name = sheet_name or metadata.get("sheet_title") or metadata.get("sheet_id") or metadata.get("sheet_name")
        page = record.get("page_number")
        return BlueprintSnippet(
            text=snippet_text(record),
            page_number=_page_number(page),
            sheet_name=str(sheet_name) if sheet_name else None,
        )

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    @staticmethod
    def _should_process_takeoff(question: str, classification: Classification) -> bool:
        question_type = classification.question_type
        if question_type in TAKEOFF_TYPES or question_type == QuestionType.TAKEOFF_ANALYZE:
            return True
        if question_type == QuestionType.OTHER:
            lowered = (question or "").lower()
            return any(phrase in lowered for phrase in GENERAL_SCOPE_PHRASES)
        return False

    def filter_items(
        self,
        items: List[TakeoffItem],
        classification: Classification,
    ) -> List[TakeoffItem]:
        """Apply the page, target, and level filters in that order."""
        filtered = items

        if classification.pages:
            filtered = [item for item in filtered if self._on_pages(item, classification.pages)]

        if classification.targets:
            filtered = self._rank_by_targets(
                filtered,
                classification.targets,
                similarity_threshold=self._config.similarity_threshold,
                cutoff=self._config.primary_threshold,
            )
            if not filtered and items:
                # Recall valve: rescore the whole snapshot, not the page-filtered subset
                filtered = self._rank_by_targets(
                    items,
                    classification.targets,
                    similarity_threshold=self._config.lenient_threshold,
                    cutoff=self._config.lenient_threshold,
                )[: self._config.lenient_limit]

        if classification.levels:
            levels = [level.lower() for level in classification.levels if level]
            filtered = [
                item for item in filtered
                if any(level in (item.location or "").lower() for level in levels)
            ]

        return filtered

    @staticmethod
    def _on_pages(item: TakeoffItem, pages: Sequence[int]) -> bool:
        if item.page_number is not None and item.page_number in pages:
            return True
        if item.page_reference:
            reference = item.page_reference.lower()
            return any(f"page {page}" in reference for page in pages)
        return False

    @staticmethod
    def _rank_by_targets(
        items: List[TakeoffItem],
        targets: List[str],
        similarity_threshold: float,
        cutoff: float,
    ) -> List[TakeoffItem]:
        scored: List[Tuple[float, TakeoffItem]] = [
            (fuzzy.score(item.search_text, targets, similarity_threshold), item) for item in items
        ]
        kept = [(s, item) for s, item in scored if s > cutoff]
        kept.sort(key=lambda pair: pair[0], reverse=True)
        return [item for _, item in kept]

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    @staticmethod
    def _most_common_unit(items: List[TakeoffItem]) -> str:
        counts = Counter(item.unit for item in items if item.unit)
        if not counts:
            return DEFAULT_UNIT
        # Counter.most_common keeps first-seen order among equal counts
        return counts.most_common(1)[0][0]

    def _build_totals(self, items: List[TakeoffItem]) -> Optional[Totals]:
        total_quantity = sum(item.quantity for item in items if item.quantity is not None)
        total_cost = sum(item.total_cost for item in items if item.total_cost is not None)

        quantity = None
        cost = None
        if total_quantity > 0:
            quantity = QuantityTotal(value=total_quantity, unit=self._most_common_unit(items))
        if total_cost > 0:
            cost = CostTotal(value=total_cost, currency="USD")

        if quantity is None and cost is None:
            return None
        return Totals(quantity=quantity, cost=cost)

    @staticmethod
    def _group(items: List[TakeoffItem], key) -> List[Tuple[str, float, float, str]]:
        groups: Dict[str, Dict[str, Any]] = {}
        for item in items:
            name = key(item)
            if not name:
                continue
            group = groups.setdefault(name, {"quantity": 0.0, "cost": 0.0, "unit": None})
            group["quantity"] += item.quantity or 0.0
            group["cost"] += item.total_cost or 0.0
            if group["unit"] is None and item.unit:
                group["unit"] = item.unit
        rows = [
            (name, g["quantity"], g["cost"], g["unit"] or DEFAULT_UNIT)
            for name, g in groups.items()
        ]
        rows.sort(key=lambda row: row[1], reverse=True)
        return rows

    def _build_breakdowns(self, items: List[TakeoffItem]) -> Optional[Breakdowns]:
        if not items:
            return None
        cap = self._config.max_breakdown_entries

        by_category = [
            CategoryBreakdown(category=name, quantity=qty, unit=unit, cost=cost if cost > 0 else None)
            for name, qty, cost, unit in self._group(items, lambda i: i.category or "Uncategorized")[:cap]
        ]
        by_level = [
            LevelBreakdown(level=name, quantity=qty, unit=unit, cost=cost if cost > 0 else None)
            for name, qty, cost, unit in self._group(items, lambda i: i.location)[:cap]
        ]
        return Breakdowns(by_category=by_category or None, by_level=by_level or None)

    @staticmethod
    def _describe_items(items: List[TakeoffItem]) -> str:
        if not items:
            return NO_ITEMS_SCOPE
        categories = {item.category for item in items if item.category}
        description = f"Found {len(items)} {_plural(len(items), 'item', 'items')}"
        if categories:
            description += (
                f" across {len(categories)} "
                f"{_plural(len(categories), 'category', 'categories')}"
            )
        return description

    @staticmethod
    def _project(item: TakeoffItem) -> RelatedItem:
        return RelatedItem(
            id=item.id,
            name=item.label,
            category=item.category or "Uncategorized",
            level=item.location,
            page_number=item.page_number,
            quantity=item.quantity,
            unit=item.unit,
            cost_total=item.total_cost,
        )


def _needed_measurements(unit: str) -> Tuple[List[str], str]:
    unit = unit.lower()
    if "sq" in unit or "sf" in unit or "area" in unit:
        return ["length", "width", "or area"], "Measure the length and width (or find the area) from the plans."
    if "lf" in unit or "linear" in unit or "ln" in unit:
        return ["length"], "Measure the linear length from the plans."
    if "cu" in unit or "cy" in unit or "volume" in unit:
        return ["length", "width", "height"], "Measure length, width, and height (or depth) from the plans."
    if "ea" in unit or "each" in unit or "unit" in unit:
        return ["count"], "Count the number of items from the plans."
    return ["quantity"], "Find the quantity or dimensions needed from the plans."


def analyze_missing_scope(
    items: List[TakeoffItem],
    snippets: List[BlueprintSnippet],
) -> MissingScopeReport:
    """
    Compare the drawings against the takeoff.

    A standard trade counts as missing when snippet text mentions it and no
    takeoff item category or name matches it. Items without a quantity are
    reported with the measurements their unit implies; items without a unit
    are reported as needing one.
    """
    missing_categories = []
    for category in EXPECTED_SCOPE_KEYWORDS:
        if any(fuzzy.score(f"{item.category} {item.name or ''}", [category]) >= 0.8 for item in items):
            continue
        evidence = [
            s.text[:EVIDENCE_PREVIEW_CHARS]
            for s in snippets
            if fuzzy.score(s.text, [category]) >= 0.8
        ]
        if evidence:
            missing_categories.append(
                MissingCategory(category=category, evidence=evidence[:MAX_EVIDENCE_PER_CATEGORY])
            )

    missing_measurements = []
    for item in items:
        if item.quantity and item.unit:
            continue
        if item.quantity:
            needed, guidance = ["unit"], "Confirm the unit of measure for this item."
        else:
            needed, guidance = _needed_measurements(item.unit or "")
        if item.page_number:
            guidance += f" Check page {item.page_number}."
        missing_measurements.append(
            MissingMeasurement(item=item.label, needed_measurements=needed, guidance=guidance)
        )

    recommendations = []
    if missing_categories:
        recommendations.append(
            f"{len(missing_categories)} trade(s) mentioned in the plans but not in the takeoff: "
            + ", ".join(c.category for c in missing_categories)
        )
    if missing_measurements:
        recommendations.append(
            f"{len(missing_measurements)} item(s) are missing quantity measurements."
        )

    return MissingScopeReport(
        missing_categories=missing_categories,
        missing_measurements=missing_measurements,
        recommendations=recommendations,
    )
