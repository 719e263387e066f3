"""End-to-end pipeline scenarios with mocked oracles."""

import json

import pytest
from unittest.mock import Mock, patch

from planchat.common.config import PlanChatConfig
from planchat.common.errors import AnswerGenerationError
from planchat.common.schemas import QuestionType
from planchat.common.stores import InMemorySnippetStore, InMemoryTakeoffStore
from planchat.retriever import NO_DATA_MESSAGE, NO_MATCH_MESSAGE, PlanChatPipeline, PlanScope
from planchat.retriever.synthesizer import TAKEOFF_MODE_SYSTEM_PROMPT


SCOPE = PlanScope(plan_id="plan-1", user_id="user-1", job_id="job-7")

TAKEOFF = {
    "takeoffs": [
        {"category": "Roofing", "name": "Asphalt Shingles", "quantity": "120 SF", "unit": "SF", "total_cost": 600},
        {"category": "Framing", "name": "2x4 Studs", "quantity": 50, "unit": "LF"},
    ]
}


def _llm(classification, answer="Yep, looks like 120 SF of roofing."):
    llm = Mock()
    llm.generate.return_value = json.dumps(classification) if isinstance(classification, dict) else classification
    llm.chat.return_value = answer
    return llm


def _pipeline(llm, takeoff=None, snippets=None):
    takeoffs = InMemoryTakeoffStore()
    if takeoff is not None:
        takeoffs.save_takeoff(SCOPE.plan_id, SCOPE.user_id, takeoff)
    snippet_store = InMemorySnippetStore()
    if snippets:
        snippet_store.add_snippets(SCOPE.plan_id, snippets)
    return PlanChatPipeline(PlanChatConfig(), llm_client=llm, takeoff_store=takeoffs, snippet_store=snippet_store)


class TestPlanChatPipeline:
    def test_quantity_question(self):
        llm = _llm({"question_type": "TAKEOFF_QUANTITY", "targets": ["roofing"], "strict_takeoff_only": True})
        pipeline = _pipeline(llm, TAKEOFF)

        response = pipeline.ask(SCOPE, "How much roofing is there?")

        assert response.answer == "Yep, looks like 120 SF of roofing."
        assert response.classification.question_type == QuestionType.TAKEOFF_QUANTITY
        assert response.result.totals.quantity.value == pytest.approx(120)

        messages = llm.chat.call_args.args[0]
        assert messages[0]["content"] == TAKEOFF_MODE_SYSTEM_PROMPT
        payload_text = messages[-1]["content"]
        assert '"value": 120.0' in payload_text
        assert "2x4 Studs" not in payload_text

    def test_answer_question_returns_text(self):
        llm = _llm({"question_type": "TAKEOFF_COST", "targets": ["roofing"]}, answer="")
        pipeline = _pipeline(llm, TAKEOFF)

        answer = pipeline.answer_question(SCOPE, "What does the roofing cost?")

        assert answer.startswith("The total cost is $600.00.")

    def test_classifier_failure_still_answers(self):
        llm = _llm("not json at all", answer="")
        pipeline = _pipeline(llm, TAKEOFF)

        response = pipeline.ask(SCOPE, "Hmm?")

        assert response.classification.question_type == QuestionType.OTHER
        assert response.answer == NO_MATCH_MESSAGE

    def test_empty_plan_gets_no_data_message(self):
        llm = _llm({"question_type": "BLUEPRINT_CONTEXT"}, answer="")
        response = _pipeline(llm).ask(SCOPE, "What do the notes say about fire rating?")

        assert response.result.related_items == []
        assert response.result.scope_description == "No matching items found in takeoff"
        assert response.answer == NO_DATA_MESSAGE

    def test_text_only_plan_gets_no_match_message(self):
        snippets = [{"snippet_text": "Foundation plan with footing schedule.", "page_number": 1}]
        llm = _llm({"question_type": "TAKEOFF_QUANTITY", "targets": ["roofing"]}, answer="")
        response = _pipeline(llm, snippets=snippets).ask(SCOPE, "How much roofing?")

        assert response.result.snippets == []
        assert response.answer == NO_MATCH_MESSAGE

    def test_page_question_uses_snippets(self):
        snippets = [{"snippet_text": "Roof plan: slope 4:12, ice shield at eaves.", "page_number": 4}]
        llm = _llm({"question_type": "PAGE_CONTENT", "pages": [4]}, answer="")
        response = _pipeline(llm, snippets=snippets).ask(SCOPE, "What's on page 4?")

        assert response.answer == "I found 1 relevant blueprint snippet on page 4."

    def test_recent_messages_forwarded(self):
        llm = _llm({"question_type": "OTHER"})
        history = [{"role": "user", "content": "Earlier question"}]
        _pipeline(llm, TAKEOFF).ask(SCOPE, "And now?", history)

        messages = llm.chat.call_args.args[0]
        assert messages[1] == {"role": "user", "content": "Earlier question"}

    def test_generation_failure_propagates(self):
        llm = _llm({"question_type": "TAKEOFF_QUANTITY"})
        llm.chat.side_effect = TimeoutError("timeout")
        with pytest.raises(AnswerGenerationError):
            _pipeline(llm, TAKEOFF).answer_question(SCOPE, "How much roofing?")

    def test_config_limits_wired(self):
        config = PlanChatConfig()
        config.llm.classifier_max_tokens = 150
        config.answer.max_tokens = 321
        llm = _llm({"question_type": "OTHER"})

        PlanChatPipeline(config, llm_client=llm).answer_question(SCOPE, "Hello")

        assert llm.generate.call_args.kwargs["max_tokens"] == 150
        assert llm.chat.call_args.kwargs["max_tokens"] == 321

    def test_llm_client_built_from_config(self):
        config = PlanChatConfig()
        with patch("planchat.retriever.pipeline.LLMClient") as client_cls:
            pipeline = PlanChatPipeline(config)

        client_cls.from_config.assert_called_once_with(config.llm)
        assert pipeline.llm_client is client_cls.from_config.return_value
