"""
Plan Chat

Grounded question answering over construction plan takeoffs and blueprint text.

Philosophy:
- Answers only state what the retrieved plan data supports
- Retrieval is deterministic; the LLM only classifies and phrases
- Classification failure lowers precision, never blocks an answer
- Generation failure is surfaced, never hidden behind a made-up answer

Usage:
    from planchat.common import load_config, InMemoryTakeoffStore, InMemorySnippetStore
    from planchat.common.schemas import Classification, RetrievalResult
    from planchat.retriever import PlanChatPipeline, PlanScope
"""

__version__ = "0.1.0"
