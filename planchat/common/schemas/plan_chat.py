"""
Plan Chat Schemas

Core principle: the answer may only state what the retrieval result carries.
Every object handed from the retrieval engine to the answer generator is a
bounded, serializable summary, never the raw takeoff or snippet corpus.
"""

from typing import Any, Dict, List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


# ============================================================================
# Enums
# ============================================================================

class QuestionType(str, Enum):
    """Intent of a plan chat question"""
    TAKEOFF_QUANTITY = "TAKEOFF_QUANTITY"  # "How many LF of baseboard?"
    TAKEOFF_COST = "TAKEOFF_COST"  # "What does the roofing cost?"
    PAGE_CONTENT = "PAGE_CONTENT"  # "What's on page 5?"
    BLUEPRINT_CONTEXT = "BLUEPRINT_CONTEXT"  # "What do the notes say about fire rating?"
    COMBINED = "COMBINED"  # Needs takeoff numbers and drawing context
    TAKEOFF_MODIFY = "TAKEOFF_MODIFY"  # "Add 2 fire extinguishers"
    TAKEOFF_ANALYZE = "TAKEOFF_ANALYZE"  # "What's missing from my takeoff?"
    OTHER = "OTHER"  # Catch-all


class ModificationIntent(str, Enum):
    """Requested change to the takeoff (signaled only, never applied here)"""
    ADD = "add"
    REMOVE = "remove"
    UPDATE = "update"
    ANALYZE_MISSING = "analyze_missing"


TAKEOFF_TYPES = {
    QuestionType.TAKEOFF_QUANTITY,
    QuestionType.TAKEOFF_COST,
    QuestionType.COMBINED,
}

MODIFY_TYPES = {
    QuestionType.TAKEOFF_MODIFY,
    QuestionType.TAKEOFF_ANALYZE,
}


# ============================================================================
# Classification
# ============================================================================

class Classification(BaseModel):
    """Structured intent derived from a free-text question"""
    question_type: QuestionType = QuestionType.OTHER
    targets: List[str] = Field(default_factory=list)
    levels: Optional[List[str]] = None
    pages: Optional[List[int]] = None
    strict_takeoff_only: bool = False
    modification_intent: Optional[ModificationIntent] = None

    @model_validator(mode="after")
    def _intent_only_for_modify(self) -> "Classification":
        if self.question_type not in MODIFY_TYPES:
            self.modification_intent = None
        return self

    @classmethod
    def default(cls) -> "Classification":
        """Safe classification used whenever the classifier cannot decide"""
        return cls(question_type=QuestionType.OTHER, targets=[], strict_takeoff_only=False)

    @property
    def is_takeoff_question(self) -> bool:
        return self.question_type in (QuestionType.TAKEOFF_QUANTITY, QuestionType.TAKEOFF_COST)


# ============================================================================
# Source data
# ============================================================================

class TakeoffItem(BaseModel):
    """One normalized takeoff line item"""
    id: str
    category: str = "Uncategorized"
    subcategory: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    unit_cost: Optional[float] = None
    total_cost: Optional[float] = None
    location: Optional[str] = None
    page_number: Optional[int] = None
    page_reference: Optional[str] = None
    notes: Optional[str] = None

    @property
    def search_text(self) -> str:
        """Text scored against question targets"""
        parts = [self.category, self.subcategory, self.name, self.description, self.location]
        return " ".join(p for p in parts if p)

    @property
    def label(self) -> str:
        return self.name or self.description or "Item"


class BlueprintSnippet(BaseModel):
    """Text fragment extracted from a drawing page"""
    text: str
    page_number: Optional[int] = None
    sheet_name: Optional[str] = None


# ============================================================================
# Retrieval result
# ============================================================================

class QuantityTotal(BaseModel):
    value: float
    unit: str


class CostTotal(BaseModel):
    value: float
    currency: str = "USD"


class Totals(BaseModel):
    quantity: Optional[QuantityTotal] = None
    cost: Optional[CostTotal] = None


class CategoryBreakdown(BaseModel):
    category: str
    quantity: float
    unit: str
    cost: Optional[float] = None


class LevelBreakdown(BaseModel):
    level: str
    quantity: float
    unit: str
    cost: Optional[float] = None


class Breakdowns(BaseModel):
    by_category: Optional[List[CategoryBreakdown]] = None
    by_level: Optional[List[LevelBreakdown]] = None


class RelatedItem(BaseModel):
    """Field projection of a matched takeoff item"""
    id: str
    name: str
    category: str
    level: Optional[str] = None
    page_number: Optional[int] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    cost_total: Optional[float] = None


class MissingCategory(BaseModel):
    category: str
    evidence: List[str] = Field(default_factory=list)


class MissingMeasurement(BaseModel):
    item: str
    needed_measurements: List[str]
    guidance: str = ""


class MissingScopeReport(BaseModel):
    """Scope gaps between the drawings and the takeoff"""
    missing_categories: List[MissingCategory] = Field(default_factory=list)
    missing_measurements: List[MissingMeasurement] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.missing_categories and not self.missing_measurements


class RetrievalResult(BaseModel):
    """Bounded summary handed from the retrieval engine to the answer generator"""
    question: str
    classification: Classification
    scope_description: str = ""
    totals: Optional[Totals] = None
    breakdowns: Optional[Breakdowns] = None
    related_items: List[RelatedItem] = Field(default_factory=list)
    blueprint_snippets: Optional[List[BlueprintSnippet]] = None
    missing_scope: Optional[MissingScopeReport] = None
    plan_has_data: bool = False

    @field_validator("related_items")
    @classmethod
    def _cap_related_items(cls, v: List[RelatedItem]) -> List[RelatedItem]:
        return v[:50]

    @field_validator("blueprint_snippets")
    @classmethod
    def _cap_snippets(cls, v: Optional[List[BlueprintSnippet]]) -> Optional[List[BlueprintSnippet]]:
        return v[:5] if v is not None else None

    @property
    def snippets(self) -> List[BlueprintSnippet]:
        return self.blueprint_snippets or []

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
