"""
Plan Chat Common Module

Shared infrastructure for the retriever: configuration, LLM access,
embeddings, and plan data stores.
"""

from .config import PlanChatConfig, load_config
from .embedding_service import EmbeddingService
from .errors import PlanChatError, LLMUnavailableError, AnswerGenerationError
from .llm_client import LLMClient
from .stores import InMemoryTakeoffStore, InMemorySnippetStore

__all__ = [
    "PlanChatConfig",
    "load_config",
    "EmbeddingService",
    "PlanChatError",
    "LLMUnavailableError",
    "AnswerGenerationError",
    "LLMClient",
    "InMemoryTakeoffStore",
    "InMemorySnippetStore",
]
