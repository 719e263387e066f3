"""Tests for configuration loading -- LLM, retrieval, and answer sections."""

import json
import os
import pytest
from unittest.mock import patch


class TestConfigDefaults:
    def test_llm_config_defaults(self):
        from planchat.common.config import LLMConfig
        cfg = LLMConfig()
        assert cfg.provider == "openai"
        assert cfg.openai_model == "gpt-4o-mini"
        assert cfg.openai_api_key == ""
        assert cfg.classifier_max_tokens == 200
        assert cfg.classifier_temperature == pytest.approx(0.1)

    def test_model_name_follows_provider(self):
        from planchat.common.config import LLMConfig
        cfg = LLMConfig(provider="anthropic", anthropic_model="claude-test", openai_model="gpt-test")
        assert cfg.model_name == "claude-test"
        cfg.provider = "openai"
        assert cfg.model_name == "gpt-test"

    def test_api_key_follows_provider(self):
        from planchat.common.config import LLMConfig
        cfg = LLMConfig(provider="google", google_api_key="gem", openai_api_key="sk")
        assert cfg.api_key == "gem"

    def test_unknown_provider_has_no_model(self):
        from planchat.common.config import LLMConfig
        assert LLMConfig(provider="unsupported_xyz").model_name == ""

    def test_retrieval_config_defaults(self):
        from planchat.common.config import RetrievalConfig
        cfg = RetrievalConfig()
        assert cfg.primary_threshold == pytest.approx(0.4)
        assert cfg.lenient_threshold == pytest.approx(0.3)
        assert cfg.lenient_limit == 20
        assert cfg.max_related_items == 50
        assert cfg.max_breakdown_entries == 10
        assert cfg.snippet_limit == 5
        assert cfg.similarity_threshold == pytest.approx(0.6)

    def test_answer_config_defaults(self):
        from planchat.common.config import AnswerConfig
        cfg = AnswerConfig()
        assert cfg.max_tokens == 600
        assert cfg.history_turns == 3
        assert cfg.snippet_preview_chars == 300
        assert cfg.payload_item_limit == 10
        assert cfg.payload_breakdown_limit == 5

    def test_plan_chat_config_sections(self):
        from planchat.common.config import (
            PlanChatConfig, LLMConfig, EmbeddingConfig, RetrievalConfig, AnswerConfig,
        )
        cfg = PlanChatConfig()
        assert isinstance(cfg.llm, LLMConfig)
        assert isinstance(cfg.embedding, EmbeddingConfig)
        assert isinstance(cfg.retrieval, RetrievalConfig)
        assert isinstance(cfg.answer, AnswerConfig)


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        from planchat.common.config import load_config
        with patch("planchat.common.config.CONFIG_PATH", tmp_path / "missing.json"), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()

        assert cfg.llm.provider == "openai"
        assert cfg.retrieval.primary_threshold == pytest.approx(0.4)

    def test_load_config_sections(self, tmp_path):
        from planchat.common.config import load_config
        config_data = {
            "llm": {
                "provider": "anthropic",
                "anthropic_api_key": "sk-ant-test",
                "anthropic_model": "claude-test",
            },
            "retrieval": {"primary_threshold": 0.5, "lenient_limit": 7},
            "answer": {"max_tokens": 300, "history_turns": 1},
        }
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps(config_data))

        with patch("planchat.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()

        assert cfg.llm.provider == "anthropic"
        assert cfg.llm.anthropic_api_key == "sk-ant-test"
        assert cfg.llm.model_name == "claude-test"
        assert cfg.retrieval.primary_threshold == pytest.approx(0.5)
        assert cfg.retrieval.lenient_limit == 7
        assert cfg.retrieval.lenient_threshold == pytest.approx(0.3)
        assert cfg.answer.max_tokens == 300
        assert cfg.answer.history_turns == 1

    def test_invalid_json_logs_warning(self, tmp_path, caplog):
        import logging
        from planchat.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with caplog.at_level(logging.WARNING, logger="planchat.common.config"), \
             patch("planchat.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()

        assert cfg.llm.provider == "openai"
        assert "Failed to load config file" in caplog.text

    def test_env_var_overrides_llm_config(self, tmp_path):
        from planchat.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"llm": {"provider": "anthropic"}}))

        env = {"OPENAI_API_KEY": "sk-env", "PLANCHAT_LLM_PROVIDER": "openai", "OPENAI_MODEL": "gpt-4o"}
        with patch("planchat.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, env, clear=True):
            cfg = load_config()

        assert cfg.llm.openai_api_key == "sk-env"
        assert cfg.llm.provider == "openai"
        assert cfg.llm.model_name == "gpt-4o"

    def test_gemini_api_key_env_var(self, tmp_path):
        """GEMINI_API_KEY should also set google_api_key."""
        from planchat.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")

        with patch("planchat.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {"GEMINI_API_KEY": "gem-key"}, clear=True):
            cfg = load_config()

        assert cfg.llm.google_api_key == "gem-key"

    def test_max_tokens_and_embedding_env_vars(self, tmp_path):
        from planchat.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")

        env = {"PLANCHAT_MAX_TOKENS": "250", "EMBEDDING_MODEL": "BAAI/bge-base-en-v1.5"}
        with patch("planchat.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, env, clear=True):
            cfg = load_config()

        assert cfg.answer.max_tokens == 250
        assert cfg.embedding.model == "BAAI/bge-base-en-v1.5"


class TestSaveConfig:
    def test_save_config_omits_env_keys(self, tmp_path):
        from planchat.common.config import load_config, save_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{}")

        env = {"OPENAI_API_KEY": "sk-from-env"}
        with patch("planchat.common.config.CONFIG_PATH", config_file), \
             patch("planchat.common.config.CONFIG_DIR", tmp_path), \
             patch.dict(os.environ, env, clear=True):
            cfg = load_config()
            save_config(cfg)

        saved = json.loads(config_file.read_text())
        assert saved["llm"]["openai_api_key"] == ""

    def test_save_config_keeps_file_keys(self, tmp_path):
        from planchat.common.config import load_config, save_config
        config_data = {"llm": {"provider": "openai", "openai_api_key": "sk-file"}}
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps(config_data))

        with patch("planchat.common.config.CONFIG_PATH", config_file), \
             patch("planchat.common.config.CONFIG_DIR", tmp_path), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()
            save_config(cfg)

        saved = json.loads(config_file.read_text())
        assert saved["llm"]["openai_api_key"] == "sk-file"
        assert set(saved) == {"llm", "embedding", "retrieval", "answer"}

    def test_save_then_load_preserves_thresholds(self, tmp_path):
        from planchat.common.config import PlanChatConfig, load_config, save_config
        config_file = tmp_path / "config.json"
        cfg = PlanChatConfig()
        cfg.retrieval.primary_threshold = 0.55
        cfg.retrieval.similarity_threshold = 0.7

        with patch("planchat.common.config.CONFIG_PATH", config_file), \
             patch("planchat.common.config.CONFIG_DIR", tmp_path), \
             patch.dict(os.environ, {}, clear=True):
            save_config(cfg)
            loaded = load_config()

        assert loaded.retrieval.primary_threshold == pytest.approx(0.55)
        assert loaded.retrieval.similarity_threshold == pytest.approx(0.7)

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_save_config_sets_private_permissions(self, tmp_path):
        from planchat.common.config import PlanChatConfig, save_config
        config_file = tmp_path / "config.json"

        with patch("planchat.common.config.CONFIG_PATH", config_file), \
             patch("planchat.common.config.CONFIG_DIR", tmp_path):
            save_config(PlanChatConfig())

        assert config_file.stat().st_mode & 0o777 == 0o600


class TestParseSections:
    def test_parse_llm_config_empty(self):
        from planchat.common.config import _parse_llm_config
        cfg = _parse_llm_config({})
        assert cfg.provider == "openai"
        assert cfg.timeout == pytest.approx(30.0)

    def test_parse_retrieval_config_partial(self):
        from planchat.common.config import _parse_retrieval_config
        cfg = _parse_retrieval_config({"retrieval": {"snippet_limit": 3}})
        assert cfg.snippet_limit == 3
        assert cfg.max_related_items == 50
