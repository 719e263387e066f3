"""
Plan Chat Schemas

Classification, normalized source data, and the bounded retrieval result.
"""

from .plan_chat import (
    QuestionType,
    ModificationIntent,
    TAKEOFF_TYPES,
    MODIFY_TYPES,
    Classification,
    TakeoffItem,
    BlueprintSnippet,
    QuantityTotal,
    CostTotal,
    Totals,
    CategoryBreakdown,
    LevelBreakdown,
    Breakdowns,
    RelatedItem,
    MissingCategory,
    MissingMeasurement,
    MissingScopeReport,
    RetrievalResult,
)

__all__ = [
    "QuestionType",
    "ModificationIntent",
    "TAKEOFF_TYPES",
    "MODIFY_TYPES",
    "Classification",
    "TakeoffItem",
    "BlueprintSnippet",
    "QuantityTotal",
    "CostTotal",
    "Totals",
    "CategoryBreakdown",
    "LevelBreakdown",
    "Breakdowns",
    "RelatedItem",
    "MissingCategory",
    "MissingMeasurement",
    "MissingScopeReport",
    "RetrievalResult",
]
