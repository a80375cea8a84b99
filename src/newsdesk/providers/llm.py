"""Chat-completion adapter over OpenAI and Gemini.

Which backend answers is decided by the ``AIProviderConfig`` handed in at
construction; nothing is read from module state. Gemini walks its model list
until one responds (a missing model or exhausted quota moves on to the next),
then falls back to OpenAI when an OpenAI key is configured.
"""

from typing import List, Optional, Sequence

import openai
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from openai import OpenAI

from newsdesk.core.config import AIProviderConfig
from newsdesk.core.logger import logger
from newsdesk.core.retry import with_retries
from newsdesk.models.datatypes import ChatMessage
from newsdesk.providers.base import LLMProvider

OPENAI_MAX_TOKENS = 4096

# Missing model, exhausted quota
_GEMINI_SKIPPABLE_CODES = (404, 429)
_OPENAI_TRANSIENT = (openai.APIConnectionError, openai.APITimeoutError, openai.RateLimitError)


class LLMError(RuntimeError):
    """No configured backend produced a completion."""


class AIProvider(LLMProvider):
    """OpenAI / Gemini implementation of LLMProvider."""

    def __init__(self, config: AIProviderConfig) -> None:
        """
        Args:
            config (AIProviderConfig): Provider choice, credentials and sampling settings.
        """
        self.config = config
        self._openai_client: Optional[OpenAI] = None
        self._gemini_client: Optional[genai.Client] = None

    def complete(self, messages: Sequence[ChatMessage]) -> str:
        """
        Generate a completion with the configured provider.

        Args:
            messages (Sequence[ChatMessage]): Conversation, system prompt first.

        Returns:
            str: Generated text, stripped.

        Raises:
            LLMError: If no provider is configured or every model failed.
        """
        if self.config.provider == "gemini" and self.config.gemini_api_key:
            try:
                return self._complete_gemini(messages)
            except LLMError as exc:
                if not self.config.openai_api_key:
                    raise
                logger.warning(f"{exc}. Falling back to OpenAI {self.config.openai_model}")

        if not self.config.openai_api_key:
            raise LLMError(f"No API key configured for provider {self.config.provider!r}")
        return self._complete_openai(messages)

    # ── OpenAI ────────────────────────────────────────────────────────────────

    def _client(self) -> OpenAI:
        if self._openai_client is None:
            self._openai_client = OpenAI(api_key=self.config.openai_api_key)
        return self._openai_client

    @with_retries(max_retries=2, initial_delay=2, exceptions=_OPENAI_TRANSIENT)
    def _complete_openai(self, messages: Sequence[ChatMessage]) -> str:
        logger.info(f"OpenAI completion with {self.config.openai_model}")
        response = self._client().chat.completions.create(
            model=self.config.openai_model,
            messages=[{"role": m.role, "content": m.content} for m in messages],
            temperature=self.config.temperature,
            max_tokens=min(self.config.max_tokens, OPENAI_MAX_TOKENS),
        )
        return (response.choices[0].message.content or "").strip()

    # ── Gemini ────────────────────────────────────────────────────────────────

    def _gemini(self) -> genai.Client:
        if self._gemini_client is None:
            self._gemini_client = genai.Client(api_key=self.config.gemini_api_key)
        return self._gemini_client

    def _complete_gemini(self, messages: Sequence[ChatMessage]) -> str:
        prompt = "\n\n".join(m.content for m in messages)

        failures: List[str] = []
        for model_name in self.config.gemini_models:
            try:
                text = self._generate_gemini(model_name, prompt)
            except genai_errors.ClientError as exc:
                if exc.code not in _GEMINI_SKIPPABLE_CODES:
                    raise LLMError(f"Gemini model {model_name} rejected the request: {exc}") from exc
                logger.warning(f"Gemini model {model_name} unavailable: {exc}")
                failures.append(model_name)
                continue
            logger.info(f"Gemini completion with {model_name}")
            return text.strip()

        raise LLMError(f"All Gemini models failed ({', '.join(failures) or 'none configured'})")

    def _generate_gemini(self, model_name: str, prompt: str) -> str:
        response = self._gemini().models.generate_content(
            model=model_name,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                temperature=self.config.temperature,
                max_output_tokens=self.config.max_tokens,
            ),
        )
        return response.text or ""
