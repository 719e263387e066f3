"""
Question Classifier

Turns a free-text plan question into a Classification using an LLM oracle.
Classification failure is never fatal: any oracle error or malformed output
degrades to the default OTHER classification, which only lowers retrieval
precision downstream.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from ..common.errors import ClassificationError
from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json
from ..common.schemas import Classification, ModificationIntent, QuestionType

logger = logging.getLogger("planchat.retriever.classifier")


CLASSIFIER_SYSTEM_PROMPT = """You are a classifier for an estimator assistant.

Your ONLY job is to classify the user's question about a construction plan.
Return a JSON object with:
- question_type: one of "TAKEOFF_QUANTITY", "TAKEOFF_COST", "PAGE_CONTENT", "BLUEPRINT_CONTEXT", "COMBINED", "TAKEOFF_MODIFY", "TAKEOFF_ANALYZE", "OTHER"
- targets: array of relevant item/material/trade words (e.g., ["door", "window", "concrete"])
- levels: array of levels/floors mentioned (optional, e.g., ["first floor", "basement"])
- pages: array of page numbers mentioned (optional, e.g., [1, 3, 5])
- strict_takeoff_only: boolean (true if the question must ONLY be answered with takeoff data, such as total cost questions)
- modification_intent: one of "add", "remove", "update", "analyze_missing" (only for TAKEOFF_MODIFY or TAKEOFF_ANALYZE)

Question types:
- TAKEOFF_QUANTITY: Questions about quantities, amounts, "how much", "how many"
- TAKEOFF_COST: Questions about costs, prices, "how much does it cost", "what's the price"
- PAGE_CONTENT: Questions asking about specific pages ("what's on page 5", "show me page 3")
- BLUEPRINT_CONTEXT: Questions about blueprint notes, specifications, requirements
- COMBINED: Questions that need both takeoff data and blueprint context
- TAKEOFF_MODIFY: Requests to add, remove, or change takeoff items ("add 2 fire extinguishers")
- TAKEOFF_ANALYZE: Requests to find missing scope or gaps in the takeoff ("what am I missing?")
- OTHER: General questions that don't fit the above categories

Do not answer the question. Do not explain. Return JSON only."""


@dataclass
class ClassificationOutcome:
    """Result of one oracle round trip: a classification or the reason it failed"""
    classification: Optional[Classification] = None
    error: Optional[ClassificationError] = None

    @property
    def ok(self) -> bool:
        return self.classification is not None


class QuestionClassifier:
    """
    Classifies plan chat questions.

    Responsibilities:
    1. Ask the oracle for a JSON classification (low temperature, capped output)
    2. Parse and coerce the output into the closed Classification shape
    3. Convert every failure into the safe default classification
    """

    def __init__(
        self,
        llm_client: LLMClient,
        max_tokens: int = 200,
        temperature: float = 0.1,
    ):
        """
        Initialize classifier.

        Args:
            llm_client: Oracle used for classification (provider injected)
            max_tokens: Output cap for the classification call
            temperature: Sampling temperature, kept low for reproducibility
        """
        self._llm = llm_client
        self._max_tokens = max_tokens
        self._temperature = temperature

    def classify(self, question: str) -> Classification:
        """
        Classify a question. Never raises.

        Args:
            question: Raw user question

        Returns:
            Classification (default OTHER classification on any failure)
        """
        outcome = self._try_classify(question)
        if not outcome.ok:
            logger.warning("Classification failed, using default: %s", outcome.error)
            return Classification.default()

        logger.debug("Classification: %s", outcome.classification.model_dump_json())
        return outcome.classification

    def _try_classify(self, question: str) -> ClassificationOutcome:
        if not question or not question.strip():
            return ClassificationOutcome(error=ClassificationError("Empty question"))

        try:
            raw = self._llm.generate(
                question.strip(),
                system=CLASSIFIER_SYSTEM_PROMPT,
                max_tokens=self._max_tokens,
                json_mode=True,
                temperature=self._temperature,
            )
        except Exception as e:
            return ClassificationOutcome(
                error=ClassificationError(
                    f"Classifier oracle failed: {e}",
                    details={"error_type": type(e).__name__},
                )
            )

        if not raw or not raw.strip():
            return ClassificationOutcome(error=ClassificationError("Classifier returned empty response"))

        data = parse_llm_json(raw)
        if not data:
            return ClassificationOutcome(
                error=ClassificationError(
                    "Classifier returned malformed JSON",
                    details={"raw_content": raw[:200]},
                )
            )

        try:
            classification = coerce_classification(data)
        except Exception as e:
            return ClassificationOutcome(
                error=ClassificationError(
                    f"Classifier output could not be coerced: {e}",
                    details={"error_type": type(e).__name__},
                )
            )
        return ClassificationOutcome(classification=classification)


def _coerce_question_type(value: Any) -> QuestionType:
    if isinstance(value, str):
        try:
            return QuestionType(value.strip().upper())
        except ValueError:
            pass
    return QuestionType.OTHER


def _coerce_strings(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    return [v.strip() for v in value if isinstance(v, str) and v.strip()]


def _coerce_pages(value: Any) -> Optional[List[int]]:
    if not isinstance(value, list):
        return None
    pages = []
    for v in value:
        if isinstance(v, bool):
            continue
        try:
            pages.append(int(v))
        except (TypeError, ValueError, OverflowError):
            continue
    return pages


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _coerce_intent(value: Any) -> Optional[ModificationIntent]:
    if isinstance(value, str):
        try:
            return ModificationIntent(value.strip().lower())
        except ValueError:
            return None
    return None


def coerce_classification(data: Union[dict, Any]) -> Classification:
    """Coerce parsed oracle output into a valid Classification."""
    if not isinstance(data, dict):
        return Classification.default()

    return Classification(
        question_type=_coerce_question_type(data.get("question_type")),
        targets=_coerce_strings(data.get("targets")) or [],
        levels=_coerce_strings(data.get("levels")),
        pages=_coerce_pages(data.get("pages")),
        strict_takeoff_only=_coerce_bool(data.get("strict_takeoff_only", False)),
        modification_intent=_coerce_intent(data.get("modification_intent")),
    )
