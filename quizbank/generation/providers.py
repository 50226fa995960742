"""
Question providers backed by hosted language models.

Two providers, tried in order by QuestionGenerator:
- OpenAIQuestionProvider: chat-completions REST API over httpx
- GeminiQuestionProvider: Google Generative AI SDK

Hardening:
- A provider without a credential reports is_configured=False and is never called
- Every call is bounded by a timeout
- All transport, API and parse errors surface as GenerationFailure
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
from loguru import logger

from quizbank.errors import GenerationFailure, MalformedGeneratorOutput

from .prompts import build_question_prompt, get_system_prompt
from .schemas import RawQuestion, parse_raw_questions


class QuestionProvider(Protocol):
    """A source of raw questions for one objective."""

    name: str

    @property
    def is_configured(self) -> bool: ...

    def generate(self, objective_text: str, difficulty: float, count: int) -> list[RawQuestion]: ...


class OpenAIQuestionProvider:
    """OpenAI-compatible chat-completions provider."""

    name = "openai"

    def __init__(
        self,
        api_key: str | None,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 20.0,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        client: httpx.Client | None = None,
    ):
        """
        Initialize the provider.

        Args:
            api_key: OpenAI API key (provider is disabled when empty)
            model: Chat model name
            base_url: API base URL
            timeout_seconds: Request timeout in seconds
            temperature: Sampling temperature
            max_tokens: Maximum tokens in the completion
            client: Pre-built httpx client (tests inject a MockTransport here)
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> httpx.Client:
        """Lazy-load the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=httpx.Timeout(self.timeout_seconds))
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()

    def generate(self, objective_text: str, difficulty: float, count: int) -> list[RawQuestion]:
        if not self.is_configured:
            raise GenerationFailure(self.name, "API key not configured")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": get_system_prompt()},
                {"role": "user", "content": build_question_prompt(objective_text, difficulty, count)},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

        try:
            response = self.client.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise GenerationFailure(self.name, f"timed out after {self.timeout_seconds}s") from e
        except httpx.HTTPStatusError as e:
            raise GenerationFailure(self.name, f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise GenerationFailure(self.name, f"request error: {e}") from e
        except ValueError as e:
            raise MalformedGeneratorOutput(self.name, "response body is not JSON") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedGeneratorOutput(self.name, "unexpected completion envelope") from e

        logger.debug("OpenAI response: {} chars", len(content or ""))
        return parse_raw_questions(content or "", self.name)


class GeminiQuestionProvider:
    """Google Gemini provider using the google-generativeai SDK."""

    name = "gemini"

    def __init__(
        self,
        api_key: str | None,
        model_name: str = "gemini-2.0-flash",
        timeout_seconds: float = 20.0,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        model: Any | None = None,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._model = model

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) or self._model is not None

    @property
    def model(self) -> Any:
        """Lazy-load Gemini model."""
        if self._model is None:
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(
                model_name=self.model_name,
                system_instruction=get_system_prompt(),
            )
        return self._model

    def generate(self, objective_text: str, difficulty: float, count: int) -> list[RawQuestion]:
        if not self.is_configured:
            raise GenerationFailure(self.name, "API key not configured")

        prompt = build_question_prompt(objective_text, difficulty, count)
        try:
            response = self.model.generate_content(
                prompt,
                generation_config={
                    "temperature": self.temperature,
                    "max_output_tokens": self.max_tokens,
                    "response_mime_type": "application/json",
                },
                request_options={"timeout": self.timeout_seconds},
            )
            text = response.text
        except Exception as e:  # SDK raises google.api_core errors, ValueError on blocked output
            raise GenerationFailure(self.name, f"{type(e).__name__}: {e}") from e

        logger.debug("Gemini response: {} chars", len(text or ""))
        return parse_raw_questions(text or "", self.name)
