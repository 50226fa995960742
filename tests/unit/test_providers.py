"""
Tests for the hosted-model question providers.

OpenAI calls go through httpx.MockTransport; Gemini gets a fake model
object, so no test touches the network.
"""

import json
from types import SimpleNamespace

import httpx
import pytest

from quizbank.errors import GenerationFailure, MalformedGeneratorOutput
from quizbank.generation.providers import GeminiQuestionProvider, OpenAIQuestionProvider

QUESTIONS = [
    {
        "question": "What is a variable?",
        "correct_answer": "A symbol that stands for a value",
        "distractors": ["A fixed number", "An operation", "An equals sign"],
        "explanation": "Variables represent unknown or changing values.",
    }
]


def completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def make_openai(handler, api_key="sk-test") -> OpenAIQuestionProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return OpenAIQuestionProvider(
        api_key=api_key,
        model="gpt-4o-mini",
        base_url="https://api.test/v1/",
        timeout_seconds=2.0,
        client=client,
    )


class TestOpenAIQuestionProvider:
    """Tests for OpenAIQuestionProvider."""

    def test_successful_generation(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion(json.dumps(QUESTIONS)))

        questions = make_openai(handler).generate("Understand variables", 0.3, 1)

        assert len(questions) == 1
        assert questions[0].correct_answer == "A symbol that stands for a value"
        assert seen["url"] == "https://api.test/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["model"] == "gpt-4o-mini"
        assert "beginner" in seen["body"]["messages"][1]["content"]

    def test_not_configured_without_key(self):
        def handler(request):
            raise AssertionError("no request expected")

        provider = make_openai(handler, api_key=None)

        assert provider.is_configured is False
        with pytest.raises(GenerationFailure):
            provider.generate("Objective", 0.5, 3)

    def test_timeout_is_generation_failure(self):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(GenerationFailure, match="timed out"):
            make_openai(handler).generate("Objective", 0.5, 3)

    def test_http_error_is_generation_failure(self):
        def handler(request):
            return httpx.Response(500, json={"error": {"message": "boom"}})

        with pytest.raises(GenerationFailure, match="HTTP 500"):
            make_openai(handler).generate("Objective", 0.5, 3)

    def test_connection_error_is_generation_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GenerationFailure, match="request error"):
            make_openai(handler).generate("Objective", 0.5, 3)

    def test_non_json_body_is_malformed(self):
        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        with pytest.raises(MalformedGeneratorOutput):
            make_openai(handler).generate("Objective", 0.5, 3)

    def test_unexpected_envelope_is_malformed(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        with pytest.raises(MalformedGeneratorOutput, match="envelope"):
            make_openai(handler).generate("Objective", 0.5, 3)

    def test_unparseable_content_is_malformed(self):
        def handler(request):
            return httpx.Response(200, json=completion("I cannot help with that."))

        with pytest.raises(MalformedGeneratorOutput):
            make_openai(handler).generate("Objective", 0.5, 3)


class FakeGeminiModel:
    """Stand-in for google.generativeai.GenerativeModel."""

    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def generate_content(self, prompt, generation_config=None, request_options=None):
        self.calls.append(
            {"prompt": prompt, "config": generation_config, "options": request_options}
        )
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


class TestGeminiQuestionProvider:
    """Tests for GeminiQuestionProvider."""

    def test_successful_generation(self):
        model = FakeGeminiModel(text=json.dumps(QUESTIONS))
        provider = GeminiQuestionProvider(api_key=None, timeout_seconds=3.0, model=model)

        questions = provider.generate("Understand variables", 0.8, 1)

        assert len(questions) == 1
        call = model.calls[0]
        assert "advanced" in call["prompt"]
        assert call["config"]["response_mime_type"] == "application/json"
        assert call["options"] == {"timeout": 3.0}

    def test_not_configured_without_key_or_model(self):
        provider = GeminiQuestionProvider(api_key=None)
        assert provider.is_configured is False
        with pytest.raises(GenerationFailure):
            provider.generate("Objective", 0.5, 3)

    def test_sdk_error_is_generation_failure(self):
        model = FakeGeminiModel(error=RuntimeError("quota exceeded"))
        provider = GeminiQuestionProvider(api_key="key", model=model)

        with pytest.raises(GenerationFailure, match="quota exceeded"):
            provider.generate("Objective", 0.5, 3)

    def test_bad_json_is_malformed(self):
        provider = GeminiQuestionProvider(api_key="key", model=FakeGeminiModel(text="[{]"))

        with pytest.raises(MalformedGeneratorOutput):
            provider.generate("Objective", 0.5, 3)
