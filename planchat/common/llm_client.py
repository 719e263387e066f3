"""
Provider-agnostic LLM client for Plan Chat.

Supports Anthropic, OpenAI, and Google Gemini behind the two oracle calls the
pipeline needs: one-shot generation (optionally JSON mode) for the classifier
and multi-turn chat for the answer generator.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Dict, List, Optional

from .errors import LLMUnavailableError

logger = logging.getLogger("planchat.common.llm_client")

JSON_ONLY_INSTRUCTION = "Respond with a single valid JSON object only. No markdown, no explanation."


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        self.provider = (provider or "openai").lower()
        self.model = model
        self.timeout = timeout
        self._client = None
        self._google_models = {}

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=anthropic_api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import OpenAI

                self._client = OpenAI(api_key=openai_api_key)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        if self.provider == "google":
            if not google_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import google.generativeai as genai

                genai.configure(api_key=google_api_key)
                self._client = genai  # Store the module, not a model instance
            except ImportError:
                logger.warning("google-generativeai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Gemini client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @classmethod
    def from_config(cls, llm_config) -> "LLMClient":
        """Build a client for the provider selected in an LLMConfig."""
        return cls(
            provider=llm_config.provider,
            model=llm_config.model_name,
            anthropic_api_key=llm_config.anthropic_api_key or None,
            openai_api_key=llm_config.openai_api_key or None,
            google_api_key=llm_config.google_api_key or None,
            timeout=llm_config.timeout,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def _require_client(self) -> None:
        if not self.is_available:
            raise LLMUnavailableError(
                "LLM client is not available",
                details={"provider": self.provider},
            )

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 512,
        json_mode: bool = False,
        temperature: Optional[float] = None,
    ) -> str:
        """Single-turn generation. Used as the classification oracle."""
        self._require_client()

        if self.provider == "anthropic":
            system_text = system or ""
            if json_mode:
                system_text = f"{system_text}\n\n{JSON_ONLY_INSTRUCTION}".strip()
            kwargs = {}
            if temperature is not None:
                kwargs["temperature"] = temperature
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=system_text,
                messages=[{"role": "user", "content": prompt}],
                timeout=self.timeout,
                **kwargs,
            )
            return response.content[0].text.strip()

        if self.provider == "openai":
            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            messages.append({"role": "user", "content": prompt})
            kwargs = {}
            if json_mode:
                kwargs["response_format"] = {"type": "json_object"}
            if temperature is not None:
                kwargs["temperature"] = temperature
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=messages,
                timeout=self.timeout,
                **kwargs,
            )
            return (response.choices[0].message.content or "").strip()

        if self.provider == "google":
            model = self._google_model(system)
            generation_config = {"max_output_tokens": max_tokens}
            if json_mode:
                generation_config["response_mime_type"] = "application/json"
            if temperature is not None:
                generation_config["temperature"] = temperature
            response = model.generate_content(
                prompt,
                generation_config=generation_config,
                request_options={"timeout": self.timeout},
            )
            return response.text.strip()

        raise LLMUnavailableError(f"Unsupported LLM provider: {self.provider}")

    def chat(
        self,
        messages: List[Dict[str, str]],
        *,
        max_tokens: int = 600,
        model: Optional[str] = None,
    ) -> str:
        """Multi-turn generation over role-tagged messages.

        A leading ``system`` message is routed to the provider's system
        instruction slot. Used as the answer generation oracle.
        """
        self._require_client()

        system = None
        turns = list(messages)
        if turns and turns[0].get("role") == "system":
            system = turns[0].get("content", "")
            turns = turns[1:]
        model_name = model or self.model

        if self.provider == "anthropic":
            response = self._client.messages.create(
                model=model_name,
                max_tokens=max_tokens,
                system=system or "",
                messages=[{"role": m["role"], "content": m["content"]} for m in turns],
                timeout=self.timeout,
            )
            if not response.content:
                return ""
            return (response.content[0].text or "").strip()

        if self.provider == "openai":
            payload = []
            if system:
                payload.append({"role": "system", "content": system})
            payload.extend({"role": m["role"], "content": m["content"]} for m in turns)
            response = self._client.chat.completions.create(
                model=model_name,
                max_tokens=max_tokens,
                messages=payload,
                timeout=self.timeout,
            )
            return (response.choices[0].message.content or "").strip()

        if self.provider == "google":
            gemini = self._google_model(system, model_name)
            contents = [
                {
                    "role": "model" if m["role"] == "assistant" else "user",
                    "parts": [m["content"]],
                }
                for m in turns
            ]
            response = gemini.generate_content(
                contents,
                generation_config={"max_output_tokens": max_tokens},
                request_options={"timeout": self.timeout},
            )
            return (response.text or "").strip()

        raise LLMUnavailableError(f"Unsupported LLM provider: {self.provider}")

    def _google_model(self, system: Optional[str], model_name: Optional[str] = None):
        """Gemini models bind the system instruction at construction; cache them."""
        name = model_name or self.model
        cache_key = hashlib.md5(f"{name}|{system or ''}".encode()).hexdigest()
        if cache_key not in self._google_models:
            kwargs = {"model_name": name}
            if system:
                kwargs["system_instruction"] = system
            self._google_models[cache_key] = self._client.GenerativeModel(**kwargs)
        return self._google_models[cache_key]
