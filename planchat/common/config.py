"""
Configuration Management for Plan Chat

Loads configuration from ~/.planchat/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("planchat.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".planchat"
CONFIG_PATH = CONFIG_DIR / "config.json"

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_GOOGLE_MODEL = "gemini-2.0-flash"
DEFAULT_EMBEDDING_MODEL = "BAAI/bge-small-en-v1.5"


@dataclass
class LLMConfig:
    """LLM provider configuration shared by the classifier and answer generator"""
    provider: str = "openai"
    anthropic_api_key: str = ""
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL
    openai_api_key: str = ""
    openai_model: str = DEFAULT_OPENAI_MODEL
    google_api_key: str = ""
    google_model: str = DEFAULT_GOOGLE_MODEL
    classifier_max_tokens: int = 200
    classifier_temperature: float = 0.1
    timeout: float = 30.0

    @property
    def model_name(self) -> str:
        """Model requested from the active provider"""
        return {
            "anthropic": self.anthropic_model,
            "openai": self.openai_model,
            "google": self.google_model,
        }.get(self.provider, "")

    @property
    def api_key(self) -> str:
        return {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
            "google": self.google_api_key,
        }.get(self.provider, "")


@dataclass
class EmbeddingConfig:
    """Embedding model configuration for snippet similarity search"""
    mode: str = "femb"  # fastembed (on-device)
    model: str = DEFAULT_EMBEDDING_MODEL


@dataclass
class RetrievalConfig:
    """Deterministic retrieval thresholds and caps"""
    primary_threshold: float = 0.4
    lenient_threshold: float = 0.3
    lenient_limit: int = 20
    max_related_items: int = 50
    max_breakdown_entries: int = 10
    snippet_limit: int = 5
    # Minimum edit-distance similarity the scorer counts in the primary pass.
    # "framing" vs "roofing" is 0.43, so a floor at primary_threshold (0.4)
    # would let Framing pass a roofing filter.
    similarity_threshold: float = 0.6


@dataclass
class AnswerConfig:
    """Answer generation limits"""
    max_tokens: int = 600
    history_turns: int = 3
    min_answer_length: int = 5
    snippet_preview_chars: int = 300
    payload_item_limit: int = 10
    payload_breakdown_limit: int = 5


@dataclass
class PlanChatConfig:
    """Main Plan Chat configuration"""
    llm: LLMConfig = field(default_factory=LLMConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    answer: AnswerConfig = field(default_factory=AnswerConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "openai"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", DEFAULT_ANTHROPIC_MODEL),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", DEFAULT_OPENAI_MODEL),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", DEFAULT_GOOGLE_MODEL),
        classifier_max_tokens=llm_data.get("classifier_max_tokens", 200),
        classifier_temperature=llm_data.get("classifier_temperature", 0.1),
        timeout=llm_data.get("timeout", 30.0),
    )


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        mode=embedding_data.get("mode", "femb"),
        model=embedding_data.get("model", DEFAULT_EMBEDDING_MODEL),
    )


def _parse_retrieval_config(data: dict) -> RetrievalConfig:
    """Parse retrieval section from config dict"""
    retrieval_data = data.get("retrieval", {})
    return RetrievalConfig(
        primary_threshold=retrieval_data.get("primary_threshold", 0.4),
        lenient_threshold=retrieval_data.get("lenient_threshold", 0.3),
        lenient_limit=retrieval_data.get("lenient_limit", 20),
        max_related_items=retrieval_data.get("max_related_items", 50),
        max_breakdown_entries=retrieval_data.get("max_breakdown_entries", 10),
        snippet_limit=retrieval_data.get("snippet_limit", 5),
        similarity_threshold=retrieval_data.get("similarity_threshold", 0.6),
    )


def _parse_answer_config(data: dict) -> AnswerConfig:
    """Parse answer section from config dict"""
    answer_data = data.get("answer", {})
    return AnswerConfig(
        max_tokens=answer_data.get("max_tokens", 600),
        history_turns=answer_data.get("history_turns", 3),
        min_answer_length=answer_data.get("min_answer_length", 5),
        snippet_preview_chars=answer_data.get("snippet_preview_chars", 300),
        payload_item_limit=answer_data.get("payload_item_limit", 10),
        payload_breakdown_limit=answer_data.get("payload_breakdown_limit", 5),
    )


def load_config() -> PlanChatConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.planchat/config.json)
    3. Default values
    """
    config = PlanChatConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.llm = _parse_llm_config(data)
            config.embedding = _parse_embedding_config(data)
            config.retrieval = _parse_retrieval_config(data)
            config.answer = _parse_answer_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    # LLM env var overrides (track env-sourced keys so they are never saved)
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "PLANCHAT_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("PLANCHAT_MAX_TOKENS"):
        config.answer.max_tokens = int(os.getenv("PLANCHAT_MAX_TOKENS"))
    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")

    return config


def save_config(config: PlanChatConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "classifier_max_tokens": config.llm.classifier_max_tokens,
        "classifier_temperature": config.llm.classifier_temperature,
        "timeout": config.llm.timeout,
    }
    for key in ("anthropic_api_key", "openai_api_key", "google_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "llm": llm_section,
        "embedding": {
            "mode": config.embedding.mode,
            "model": config.embedding.model,
        },
        "retrieval": {
            "primary_threshold": config.retrieval.primary_threshold,
            "lenient_threshold": config.retrieval.lenient_threshold,
            "lenient_limit": config.retrieval.lenient_limit,
            "max_related_items": config.retrieval.max_related_items,
            "max_breakdown_entries": config.retrieval.max_breakdown_entries,
            "snippet_limit": config.retrieval.snippet_limit,
            "similarity_threshold": config.retrieval.similarity_threshold,
        },
        "answer": {
            "max_tokens": config.answer.max_tokens,
            "history_turns": config.answer.history_turns,
            "min_answer_length": config.answer.min_answer_length,
            "snippet_preview_chars": config.answer.snippet_preview_chars,
            "payload_item_limit": config.answer.payload_item_limit,
            "payload_breakdown_limit": config.answer.payload_breakdown_limit,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)
