"""
Plan Chat Pipeline

Composes classification, retrieval, and answer generation for one question:

    classify → retrieve → answer

Single-threaded and request-scoped. Nothing here mutates shared state, so
questions against the same plan may run concurrently.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..common.config import PlanChatConfig, load_config
from ..common.llm_client import LLMClient
from ..common.schemas import Classification, RetrievalResult
from ..common.stores import InMemorySnippetStore, InMemoryTakeoffStore, SnippetStore, TakeoffStore
from .classifier import QuestionClassifier
from .engine import PlanScope, RetrievalEngine
from .synthesizer import AnswerGenerator

logger = logging.getLogger("planchat.retriever.pipeline")


@dataclass
class PlanChatAnswer:
    """Answer text plus the intermediate results it was built from"""
    answer: str
    classification: Classification
    result: RetrievalResult


class PlanChatPipeline:
    """
    Question answering over one plan's takeoff and blueprint snippets.

    The same LLM client serves as classification and generation oracle
    unless separate components are injected.
    """

    def __init__(
        self,
        config: Optional[PlanChatConfig] = None,
        llm_client: Optional[LLMClient] = None,
        takeoff_store: Optional[TakeoffStore] = None,
        snippet_store: Optional[SnippetStore] = None,
    ):
        """
        Initialize pipeline.

        Args:
            config: Plan chat configuration (load_config() if omitted)
            llm_client: Oracle for classification and answers (built from config.llm if omitted)
            takeoff_store: Takeoff read path (empty in-memory store if omitted)
            snippet_store: Snippet read path (empty in-memory store if omitted)
        """
        self.config = config or load_config()
        self.llm_client = llm_client or LLMClient.from_config(self.config.llm)

        self.classifier = QuestionClassifier(
            self.llm_client,
            max_tokens=self.config.llm.classifier_max_tokens,
            temperature=self.config.llm.classifier_temperature,
        )
        self.engine = RetrievalEngine(
            takeoff_store if takeoff_store is not None else InMemoryTakeoffStore(),
            snippet_store if snippet_store is not None else InMemorySnippetStore(),
            config=self.config.retrieval,
        )
        self.generator = AnswerGenerator(self.llm_client, config=self.config.answer)

    def ask(
        self,
        scope: PlanScope,
        question: str,
        recent_messages: Optional[List[Dict[str, str]]] = None,
    ) -> PlanChatAnswer:
        """
        Answer a question and keep the classification and retrieval result.

        Raises:
            AnswerGenerationError: The answer model call failed
            LLMUnavailableError: No LLM provider is configured
        """
        classification = self.classifier.classify(question)
        result = self.engine.retrieve(scope, question, classification)
        answer = self.generator.generate(result, recent_messages)

        logger.info(
            "Answered plan=%s type=%s related=%d snippets=%d",
            scope.plan_id,
            classification.question_type.value,
            len(result.related_items),
            len(result.snippets),
        )
        return PlanChatAnswer(answer=answer, classification=classification, result=result)

    def answer_question(
        self,
        scope: PlanScope,
        question: str,
        recent_messages: Optional[List[Dict[str, str]]] = None,
    ) -> str:
        """Answer a question about a plan. Returns the answer text only."""
        return self.ask(scope, question, recent_messages).answer
