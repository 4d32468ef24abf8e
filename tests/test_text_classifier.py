"""Tests for snapbook.services.text_classifier: LLM parsing with keyword fallback."""

import asyncio
import json

import httpx
import pytest
from pydantic import ValidationError
from unittest.mock import AsyncMock, MagicMock

from snapbook.config import TestingConfig
from snapbook.core.exceptions import ExternalDependencyDegradedError
from snapbook.models.enums import RAGStatus
from snapbook.services.llm_provider import Completion, LLMProvider, LLMProviderError
from snapbook.services.text_classifier import (
    FallbackClassifier,
    LLMTextClassifier,
    ParsedSnap,
    ResilientTextClassifier,
    TextClassifier,
    build_text_classifier,
)


def _llm(content="", error=None):
    provider = MagicMock()
    if error is not None:
        provider.generate_completion = AsyncMock(side_effect=error)
    else:
        provider.generate_completion = AsyncMock(
            return_value=Completion(content=content, model="qwen2.5:7b", provider="ollama")
        )
    return provider


class SlowClassifier(TextClassifier):
    async def classify(self, raw_text, card_title):
        await asyncio.sleep(5)
        return ParsedSnap(done="never")


class BrokenClassifier(TextClassifier):
    async def classify(self, raw_text, card_title):
        raise ExternalDependencyDegradedError("connection refused")


# ---------------------------------------------------------------------------
# Keyword fallback
# ---------------------------------------------------------------------------


class TestFallbackClassifier:
    def test_completion_and_planning_words(self):
        text = "Completed login page, starting API tomorrow"
        parsed = FallbackClassifier().parse(text)
        assert parsed.done == text
        assert parsed.to_do == text
        assert parsed.blockers == ""
        assert parsed.suggested_rag is RAGStatus.GREEN

    def test_blocked_is_red(self):
        parsed = FallbackClassifier().parse("Blocked on database credentials")
        assert parsed.blockers == "Blocked on database credentials"
        assert parsed.done == ""
        assert parsed.suggested_rag is RAGStatus.RED

    def test_waiting_is_amber(self):
        parsed = FallbackClassifier().parse("Waiting for design review")
        assert parsed.blockers == "Waiting for design review"
        assert parsed.suggested_rag is RAGStatus.AMBER

    def test_unrecognised_text_counts_as_done(self):
        parsed = FallbackClassifier().parse("Refactored the session store")
        assert parsed.done == "Refactored the session store"
        assert parsed.to_do == ""
        assert parsed.suggested_rag is RAGStatus.GREEN

    def test_matching_is_case_insensitive(self):
        parsed = FallbackClassifier().parse("STUCK on flaky CI")
        assert parsed.suggested_rag is RAGStatus.RED

    @pytest.mark.asyncio
    async def test_classify_ignores_card_title(self):
        parsed = await FallbackClassifier().classify("Finished the webhook", "Payment webhook")
        assert parsed.done == "Finished the webhook"


# ---------------------------------------------------------------------------
# LLM classifier (provider mocked)
# ---------------------------------------------------------------------------


class TestLLMTextClassifier:
    @pytest.mark.asyncio
    async def test_parses_json_surrounded_by_prose(self):
        content = (
            'Sure! Here it is:\n{"done":"Completed login page","toDo":"Start API",'
            '"blockers":"","suggestedRAG":"green"}\nHope that helps.'
        )
        classifier = LLMTextClassifier(_llm(content), TestingConfig())
        parsed = await classifier.classify("Completed login page, starting API tomorrow", "Login page")
        assert parsed.done == "Completed login page"
        assert parsed.to_do == "Start API"
        assert parsed.blockers == ""
        assert parsed.suggested_rag is RAGStatus.GREEN

    @pytest.mark.asyncio
    async def test_passes_configured_limits(self):
        settings = TestingConfig(classifier_max_tokens=123, classifier_temperature=0.2)
        provider = _llm('{"done":"x","toDo":"","blockers":"","suggestedRAG":"amber"}')
        await LLMTextClassifier(provider, settings).classify("x", "Card")
        kwargs = provider.generate_completion.call_args.kwargs
        assert kwargs["max_tokens"] == 123
        assert kwargs["temperature"] == 0.2
        assert "Card: Card" in kwargs["prompt"]

    def test_rag_mapping_is_case_insensitive(self):
        classifier = LLMTextClassifier(_llm(), TestingConfig())
        parsed = classifier.parse_response('{"done":"","toDo":"","blockers":"db down","suggestedRAG":"RED"}')
        assert parsed.suggested_rag is RAGStatus.RED

    def test_unknown_rag_defaults_to_amber(self):
        classifier = LLMTextClassifier(_llm(), TestingConfig())
        parsed = classifier.parse_response('{"done":"a","toDo":"b","blockers":"","suggestedRAG":"purple"}')
        assert parsed.suggested_rag is RAGStatus.AMBER

    def test_missing_json_is_degraded(self):
        classifier = LLMTextClassifier(_llm(), TestingConfig())
        with pytest.raises(ExternalDependencyDegradedError):
            classifier.parse_response("I could not parse that.")

    def test_malformed_json_is_degraded(self):
        classifier = LLMTextClassifier(_llm(), TestingConfig())
        with pytest.raises(ExternalDependencyDegradedError):
            classifier.parse_response('{"done": "oops",}')

    @pytest.mark.asyncio
    async def test_empty_completion_is_degraded(self):
        classifier = LLMTextClassifier(_llm(), TestingConfig())
        with pytest.raises(ExternalDependencyDegradedError):
            await classifier.classify("Worked on it", "Card")

    @pytest.mark.asyncio
    async def test_provider_failure_is_degraded(self):
        classifier = LLMTextClassifier(_llm(error=LLMProviderError("timeout")), TestingConfig())
        with pytest.raises(ExternalDependencyDegradedError):
            await classifier.classify("anything", "Card")


# ---------------------------------------------------------------------------
# Resilient wrapper
# ---------------------------------------------------------------------------


class TestResilientTextClassifier:
    @pytest.mark.asyncio
    async def test_returns_primary_result(self):
        content = '{"done":"Shipped it","toDo":"","blockers":"","suggestedRAG":"green"}'
        primary = LLMTextClassifier(_llm(content), TestingConfig())
        parsed = await ResilientTextClassifier(primary, timeout=1.0).classify("Shipped it", "Card")
        assert parsed.done == "Shipped it"

    @pytest.mark.asyncio
    async def test_timeout_uses_fallback(self):
        classifier = ResilientTextClassifier(SlowClassifier(), timeout=0.05)
        parsed = await asyncio.wait_for(classifier.classify("Blocked on VPN", "Card"), timeout=2)
        assert parsed.blockers == "Blocked on VPN"
        assert parsed.suggested_rag is RAGStatus.RED

    @pytest.mark.asyncio
    async def test_degraded_primary_uses_fallback(self):
        classifier = ResilientTextClassifier(BrokenClassifier(), timeout=1.0)
        parsed = await classifier.classify("Finished the export", "Card")
        assert parsed.done == "Finished the export"

    @pytest.mark.asyncio
    async def test_unexpected_error_uses_fallback(self):
        primary = LLMTextClassifier(_llm(error=RuntimeError("boom")), TestingConfig())
        parsed = await ResilientTextClassifier(primary, timeout=1.0).classify("Done with tests", "Card")
        assert parsed.done == "Done with tests"


class TestBuildTextClassifier:
    def test_ai_disabled_uses_keyword_parser(self):
        assert isinstance(build_text_classifier(TestingConfig(enable_ai_parsing=False)), FallbackClassifier)

    def test_ai_enabled_wraps_llm(self):
        settings = TestingConfig(enable_ai_parsing=True, classifier_timeout_seconds=5)
        classifier = build_text_classifier(settings)
        assert isinstance(classifier, ResilientTextClassifier)
        assert isinstance(classifier.primary, LLMTextClassifier)
        assert classifier.timeout == 5


# ---------------------------------------------------------------------------
# LLM provider (Ollama transport mocked)
# ---------------------------------------------------------------------------

def _route_ollama(monkeypatch, handler):
    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        "snapbook.services.llm_provider.httpx.AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )


class TestLLMProvider:
    def test_unknown_provider_rejected_by_settings(self):
        with pytest.raises(ValidationError, match="llm_provider"):
            TestingConfig(llm_provider="bard")

    def test_model_follows_provider(self):
        assert LLMProvider(TestingConfig(llm_provider="ollama")).model == "qwen2.5:7b"
        assert LLMProvider(TestingConfig(llm_provider="openai", openai_model="gpt-4o")).model == "gpt-4o"

    @pytest.mark.asyncio
    async def test_ollama_completion(self, monkeypatch):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"response": '{"done":"x"}', "eval_count": 7, "prompt_eval_count": 3})

        _route_ollama(monkeypatch, handler)
        provider = LLMProvider(TestingConfig(llm_provider="ollama", ollama_base_url="http://ollama:11434/"))

        completion = await provider.generate_completion("Parse this", system_prompt="Be terse", max_tokens=50)

        assert completion.content == '{"done":"x"}'
        assert completion.tokens_used == 10
        assert completion.provider == "ollama"
        assert seen["url"] == "http://ollama:11434/api/generate"
        assert seen["body"]["system"] == "Be terse"
        assert seen["body"]["options"]["num_predict"] == 50

    @pytest.mark.asyncio
    async def test_ollama_http_error_is_provider_error(self, monkeypatch):
        _route_ollama(monkeypatch, lambda request: httpx.Response(503, text="loading model"))
        provider = LLMProvider(TestingConfig(llm_provider="ollama"))
        with pytest.raises(LLMProviderError, match="Ollama request failed"):
            await provider.generate_completion("Parse this")
