"""
Provider-agnostic LLM client used as a reasoning backend.

Supports Anthropic, OpenAI, and Google Gemini with a shared text-completion
interface. Provider SDK failures are translated into the pipeline's error
taxonomy so that callers never depend on vendor exception types.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Optional

from .errors import ConfigurationError, TransientBackendError

logger = logging.getLogger("hub.common.llm_client")

SUPPORTED_PROVIDERS = ("anthropic", "openai", "google")


def classify_backend_failure(exc: Exception) -> str:
    """Map a vendor exception onto timeout / rate_limited / http_error.

    Vendor SDKs are imported lazily, so classification goes by exception
    class name across the whole MRO.
    """
    names = " ".join(cls.__name__ for cls in type(exc).__mro__).lower()
    if isinstance(exc, TimeoutError) or "timeout" in names or "deadlineexceeded" in names:
        return "timeout"
    if "ratelimit" in names or "resourceexhausted" in names or "toomanyrequests" in names:
        return "rate_limited"
    status = getattr(exc, "status_code", None) or getattr(exc, "code", None)
    if status == 429:
        return "rate_limited"
    return "http_error"


class LLMClient:
    """Unified text completion client across LLM providers."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = "",
        anthropic_api_key: Optional[str] = None,
        openai_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "").lower()
        self.model = model
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

    @property
    def is_available(self) -> bool:
        return self._client is not None

    @property
    def name(self) -> str:
        return f"{self.provider}:{self.model}" if self.model else self.provider

    def complete(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 800,
        timeout: float = 20.0,
    ) -> str:
        """Return the raw completion text for ``prompt``.

        Raises:
            ConfigurationError: the provider is not configured.
            TransientBackendError: the call failed (timeout, HTTP, rate limit).
        """
        if not self.is_available:
            raise ConfigurationError(f"LLM backend {self.name} is not configured")

        try:
            return self._call(prompt, system=system, max_tokens=max_tokens, timeout=timeout)
        except (ConfigurationError, TransientBackendError):
            raise
        except Exception as e:
            kind = classify_backend_failure(e)
            raise TransientBackendError(f"{self.name} call failed: {e}", kind=kind) from e

    def _call(self, prompt: str, *, system: Optional[str], max_tokens: int, timeout: float) -> str:
        if self.provider == "anthropic":
            kwargs = {
                "model": self.model,
                "max_tokens": max_tokens,
                "messages": [{"role": "user", "content": prompt}],
                "timeout": timeout,
            }
            if system:
                kwargs["system"] = system
            response = self._client.messages.create(**kwargs)
            return response.content[0].text.strip()

        if self.provider == "openai":
            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            messages.append({"role": "user", "content": prompt})
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=messages,
                temperature=0.3,
                timeout=timeout,
            )
            return (response.choices[0].message.content or "").strip()

        if self.provider == "google":
            cache_key = hashlib.md5((system or "").encode()).hexdigest()
            if cache_key not in self._google_models:
                kwargs = {"model_name": self.model}
                if system:
                    kwargs["system_instruction"] = system
                self._google_models[cache_key] = self._client.GenerativeModel(**kwargs)
            model = self._google_models[cache_key]
            response = model.generate_content(
                prompt,
                generation_config={"max_output_tokens": max_tokens},
                request_options={"timeout": timeout},
            )
            return response.text.strip()

        raise ConfigurationError(f"Unsupported LLM provider: {self.provider}")
