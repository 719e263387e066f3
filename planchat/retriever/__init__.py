"""
Retriever - Grounded Plan Question Answering

Answers questions about a construction plan from its takeoff and blueprint
snippets, never from model knowledge.

Key Components:
- QuestionClassifier: Maps a question to a structured Classification
- RetrievalEngine: Deterministic filtering and aggregation of plan data
- AnswerGenerator: LLM answer bounded by the retrieval result

Pipeline:
1. Classify the question (intent, targets, levels, pages)
2. Filter takeoff items with the fuzzy matcher and fetch snippets
3. Aggregate totals and breakdowns into a bounded RetrievalResult
4. Generate the answer, falling back to a deterministic one if needed
"""

from .classifier import QuestionClassifier
from .engine import PlanScope, RetrievalEngine
from .synthesizer import AnswerGenerator, NO_DATA_MESSAGE, NO_MATCH_MESSAGE
from .pipeline import PlanChatAnswer, PlanChatPipeline

__all__ = [
    "QuestionClassifier",
    "PlanScope",
    "RetrievalEngine",
    "AnswerGenerator",
    "NO_DATA_MESSAGE",
    "NO_MATCH_MESSAGE",
    "PlanChatAnswer",
    "PlanChatPipeline",
]
