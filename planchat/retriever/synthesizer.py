"""
Answer Generator

LLM-based answer synthesis from a RetrievalResult.

Key principle: the answer is bounded by the retrieval result.
- Takeoff questions → strict prompt, numbers only from totals/breakdowns/items
- Modify/analyze requests → describe proposed changes, never claim they were applied
- Everything else → summarize blueprint snippets without dumping raw text

If the model returns nothing usable, a deterministic answer is synthesized
from the retrieval result itself. Oracle failures are not swallowed.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from ..common.config import AnswerConfig
from ..common.errors import AnswerGenerationError, LLMUnavailableError
from ..common.llm_client import LLMClient
from ..common.schemas import MODIFY_TYPES, QuestionType, RelatedItem, RetrievalResult

logger = logging.getLogger("planchat.retriever.synthesizer")


TAKEOFF_MODE_SYSTEM_PROMPT = """You are the estimator assistant for a construction plan.

You are given:
- The user's question.
- A precomputed summary of the relevant takeoff quantities and/or costs.

You MUST:
- ONLY use the totals, breakdowns, and items given to you.
- NEVER invent new quantities or costs.
- NEVER refer to blueprint snippets.
- Be concise, friendly, and practical, like a helpful estimator teammate.

If the data shows no matching items, say so clearly. Do not make up numbers."""

BLUEPRINT_MODE_SYSTEM_PROMPT = """You are the estimator assistant for a construction plan.

You are given:
- The user's question.
- A small set of blueprint text snippets (with page/sheet info).
- An optional takeoff summary.

Your job is to summarize or explain what the snippets indicate.
Do NOT dump raw snippet text.
Do NOT exaggerate or invent details.
Be concise, friendly, and grounded in the data."""

MODIFY_MODE_SYSTEM_PROMPT = """You are the estimator assistant for a construction plan.

The user wants to change their takeoff or find scope it is missing.

You are given:
- The user's question.
- The current takeoff items that relate to the request.
- Optional blueprint snippets and a missing scope report.

You MUST:
- Describe the changes you would propose, item by item, with quantities and units.
- NEVER claim that a change has been applied; the user confirms changes separately.
- Base missing scope ONLY on the missing scope report and snippets provided.
- Be concise and practical."""

NO_DATA_MESSAGE = (
    "I don't see any extracted text or takeoff data for this plan yet. "
    "The plan may need to be processed first. You can trigger text extraction from the plan settings."
)

NO_MATCH_MESSAGE = (
    "I couldn't find relevant information to answer that question. "
    "Try rephrasing or asking about specific items or pages."
)

FALLBACK_COST_ITEMS = 5
FALLBACK_CATEGORY_LINES = 5
FALLBACK_ITEMIZE_LIMIT = 10


def _plural(count: int, word: str) -> str:
    return word if count == 1 else f"{word}s"


def _fmt_number(value: Optional[float]) -> str:
    if value is None:
        return "?"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def _fmt_money(value: float) -> str:
    return f"${value:,.2f}"


def select_system_prompt(result: RetrievalResult) -> str:
    """Pick the system prompt variant for the classified intent."""
    classification = result.classification
    if classification.question_type in MODIFY_TYPES:
        return MODIFY_MODE_SYSTEM_PROMPT
    if classification.is_takeoff_question or classification.strict_takeoff_only:
        return TAKEOFF_MODE_SYSTEM_PROMPT
    return BLUEPRINT_MODE_SYSTEM_PROMPT


def build_answer_payload(result: RetrievalResult, config: Optional[AnswerConfig] = None) -> Dict[str, Any]:
    """
    Build the compact data summary the model is allowed to use.

    Never the full result: breakdowns, items, and snippets are capped and
    snippet text is truncated.
    """
    config = config or AnswerConfig()
    payload: Dict[str, Any] = {"scope": result.scope_description}

    if result.totals is not None:
        payload["totals"] = result.totals.model_dump(mode="json", exclude_none=True)

    if result.breakdowns is not None:
        breakdowns = {}
        cap = config.payload_breakdown_limit
        if result.breakdowns.by_category:
            breakdowns["by_category"] = [
                b.model_dump(mode="json", exclude_none=True) for b in result.breakdowns.by_category[:cap]
            ]
        if result.breakdowns.by_level:
            breakdowns["by_level"] = [
                b.model_dump(mode="json", exclude_none=True) for b in result.breakdowns.by_level[:cap]
            ]
        if breakdowns:
            payload["breakdowns"] = breakdowns

    items = result.related_items
    if items:
        limit = config.payload_item_limit
        payload["items"] = [
            {
                "name": item.name,
                "category": item.category,
                "quantity": item.quantity,
                "unit": item.unit,
                "cost": item.cost_total,
                "level": item.level,
                "page": item.page_number,
            }
            for item in items[:limit]
        ]
        if len(items) > limit:
            payload["items_note"] = f"...and {len(items) - limit} more items"

    if result.snippets:
        preview = config.snippet_preview_chars
        payload["blueprint_snippets"] = [
            {
                "text": s.text[:preview] + "..." if len(s.text) > preview else s.text,
                "page": s.page_number,
                "sheet": s.sheet_name,
            }
            for s in result.snippets[:5]
        ]

    if result.missing_scope is not None:
        payload["missing_scope"] = result.missing_scope.model_dump(mode="json")

    return payload


def build_user_content(result: RetrievalResult, config: Optional[AnswerConfig] = None) -> str:
    payload = build_answer_payload(result, config)
    return "\n\n".join([
        f"User question:\n{result.question}",
        "Data you must use:",
        json.dumps(payload, indent=2, default=str),
    ])


class AnswerGenerator:
    """
    Generates the user-facing answer for a RetrievalResult.

    Falls back to a deterministic answer if the model output is empty or
    too short. Raises AnswerGenerationError if the model call fails.
    """

    def __init__(self, llm_client: LLMClient, config: Optional[AnswerConfig] = None):
        """
        Initialize answer generator.

        Args:
            llm_client: Generation oracle
            config: Answer limits (token budget, history turns, payload caps)
        """
        self._llm = llm_client
        self._config = config or AnswerConfig()

    def build_messages(
        self,
        result: RetrievalResult,
        recent_messages: Optional[List[Dict[str, str]]] = None,
    ) -> List[Dict[str, str]]:
        """System prompt, the last few conversation turns, then the data turn."""
        messages = [{"role": "system", "content": select_system_prompt(result)}]

        history = [
            m for m in (recent_messages or [])
            if m.get("role") in ("user", "assistant") and m.get("content")
        ]
        turns = self._config.history_turns
        for msg in (history[-turns:] if turns > 0 else []):
            messages.append({"role": msg["role"], "content": msg["content"]})

        messages.append({"role": "user", "content": build_user_content(result, self._config)})
        return messages

    def generate(
        self,
        result: RetrievalResult,
        recent_messages: Optional[List[Dict[str, str]]] = None,
    ) -> str:
        """
        Generate an answer grounded in the retrieval result.

        Args:
            result: Output of the retrieval engine
            recent_messages: Prior conversation turns ({"role", "content"})

        Returns:
            Non-empty answer text

        Raises:
            LLMUnavailableError: No LLM provider is configured
            AnswerGenerationError: The model call failed
        """
        messages = self.build_messages(result, recent_messages)

        try:
            raw = self._llm.chat(messages, max_tokens=self._config.max_tokens)
        except LLMUnavailableError:
            raise
        except Exception as e:
            logger.error("Answer generation failed: %s", e, exc_info=True)
            raise AnswerGenerationError(
                f"Answer generation failed: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        answer = (raw or "").strip()
        if len(answer) < self._config.min_answer_length:
            logger.info(
                "Model answer empty or too short (%d chars), using fallback",
                len(answer),
            )
            answer = fallback_answer(result)

        return answer


def _item_line(item: RelatedItem, with_cost: bool = False) -> str:
    line = f"- {item.name}: {_fmt_number(item.quantity)} {item.unit or ''}".rstrip()
    if with_cost and item.cost_total is not None:
        line += f" — {_fmt_money(item.cost_total)}"
    return line


def _cost_answer(result: RetrievalResult) -> Optional[str]:
    totals = result.totals
    if totals is None or totals.cost is None or totals.cost.value <= 0:
        return None

    lines = [f"The total cost is {_fmt_money(totals.cost.value)}."]
    costed = [item for item in result.related_items if item.cost_total]
    if costed:
        lines.append("")
        lines.extend(_item_line(item, with_cost=True) for item in costed[:FALLBACK_COST_ITEMS])
        if len(costed) > FALLBACK_COST_ITEMS:
            lines.append(f"...and {len(costed) - FALLBACK_COST_ITEMS} more")
    return "\n".join(lines)


def _quantity_answer(result: RetrievalResult) -> Optional[str]:
    totals = result.totals
    if totals is None or totals.quantity is None or totals.quantity.value <= 0:
        return None

    lines = [f"The total quantity is {_fmt_number(totals.quantity.value)} {totals.quantity.unit}."]
    categories = (result.breakdowns.by_category if result.breakdowns else None) or []
    if categories:
        lines.append("")
        lines.append("By category:")
        lines.extend(
            f"- {b.category}: {_fmt_number(b.quantity)} {b.unit}"
            for b in categories[:FALLBACK_CATEGORY_LINES]
        )
    return "\n".join(lines)


def _items_answer(result: RetrievalResult) -> str:
    items = result.related_items
    text = f"I found {len(items)} matching {_plural(len(items), 'item')} in the takeoff. {result.scope_description}."
    if len(items) <= FALLBACK_ITEMIZE_LIMIT:
        text += "\n\n" + "\n".join(_item_line(item, with_cost=True) for item in items)
    return text


def _snippets_answer(result: RetrievalResult) -> str:
    snippets = result.snippets
    pages = []
    for s in snippets:
        if s.page_number is not None and s.page_number not in pages:
            pages.append(s.page_number)

    text = f"I found {len(snippets)} relevant blueprint {_plural(len(snippets), 'snippet')}"
    if pages:
        text += f" on {_plural(len(pages), 'page')} {', '.join(str(p) for p in pages)}"
    text += "."
    if "blueprint" not in result.scope_description.lower():
        text += f" {result.scope_description}."
    return text


def fallback_answer(result: RetrievalResult) -> str:
    """Deterministic answer synthesized from the retrieval result alone."""
    question_type = result.classification.question_type

    if question_type == QuestionType.TAKEOFF_COST:
        answer = _cost_answer(result)
        if answer:
            return answer

    if question_type == QuestionType.TAKEOFF_QUANTITY:
        answer = _quantity_answer(result)
        if answer:
            return answer

    if result.related_items:
        return _items_answer(result)

    if result.snippets:
        return _snippets_answer(result)

    return NO_MATCH_MESSAGE if result.plan_has_data else NO_DATA_MESSAGE
