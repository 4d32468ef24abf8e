"""
Turns free-text standup notes into structured snap fields.

The LLM-backed classifier is always wrapped in ``ResilientTextClassifier`` so
that snap creation degrades to the keyword parser instead of failing.
"""
from abc import ABC, abstractmethod
from typing import Optional
import asyncio
import json
import re

from pydantic import BaseModel

from ..config import Settings
from ..core.exceptions import ExternalDependencyDegradedError
from ..models.enums import RAGStatus
from .llm_provider import LLMProvider, LLMProviderError
from ..utils.logging import get_logger

logger = get_logger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*?\}")

COMPLETION_WORDS = ("completed", "finished", "done")
PLANNING_WORDS = ("working on", "next", "will", "tomorrow")
BLOCKER_WORDS = ("blocked", "waiting", "issue", "problem")
RED_WORDS = ("blocked", "critical", "stuck")
AMBER_WORDS = ("issue", "delay", "waiting")


class ParsedSnap(BaseModel):
    done: str = ""
    to_do: str = ""
    blockers: str = ""
    suggested_rag: RAGStatus = RAGStatus.AMBER


class TextClassifier(ABC):
    @abstractmethod
    async def classify(self, raw_text: str, card_title: str) -> ParsedSnap:
        """Split ``raw_text`` into done / to-do / blockers and suggest a RAG."""


class FallbackClassifier(TextClassifier):
    """Deterministic keyword parser used whenever the LLM is unavailable."""

    async def classify(self, raw_text: str, card_title: str) -> ParsedSnap:
        return self.parse(raw_text)

    def parse(self, raw_text: str) -> ParsedSnap:
        lower = raw_text.lower()

        done = raw_text if _contains_any(lower, COMPLETION_WORDS) else ""
        to_do = raw_text if _contains_any(lower, PLANNING_WORDS) else ""
        blockers = raw_text if _contains_any(lower, BLOCKER_WORDS) else ""

        # Nothing recognised: treat the whole note as progress
        if not done and not to_do and not blockers:
            done = raw_text

        if _contains_any(lower, RED_WORDS):
            rag = RAGStatus.RED
        elif _contains_any(lower, AMBER_WORDS):
            rag = RAGStatus.AMBER
        else:
            rag = RAGStatus.GREEN

        return ParsedSnap(done=done, to_do=to_do, blockers=blockers, suggested_rag=rag)


class LLMTextClassifier(TextClassifier):
    """Asks the configured LLM for a JSON object with the snap fields."""

    def __init__(self, llm_provider: LLMProvider, settings: Settings) -> None:
        self.llm_provider = llm_provider
        self.settings = settings

    def build_prompt(self, raw_text: str, card_title: str) -> str:
        return f"""Parse this standup update into JSON format.

Card: {card_title}
Update: {raw_text}

Return ONLY this JSON structure:
{{"done":"completed work","toDo":"next tasks","blockers":"issues or empty string","suggestedRAG":"green or amber or red"}}

Rules:
- done: What was finished/completed
- toDo: What will be done next
- blockers: Problems or "" if none
- suggestedRAG: green=on track, amber=minor issues, red=major problems"""

    async def classify(self, raw_text: str, card_title: str) -> ParsedSnap:
        try:
            response = await self.llm_provider.generate_completion(
                prompt=self.build_prompt(raw_text, card_title),
                max_tokens=self.settings.classifier_max_tokens,
                temperature=self.settings.classifier_temperature,
                timeout=self.settings.classifier_timeout_seconds
            )
        except LLMProviderError as e:
            raise ExternalDependencyDegradedError(str(e)) from e

        return self.parse_response(response.content)

    def parse_response(self, content: str) -> ParsedSnap:
        match = _JSON_OBJECT.search(content or "")
        if not match:
            raise ExternalDependencyDegradedError("Classifier returned no JSON object")

        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ExternalDependencyDegradedError(f"Classifier returned malformed JSON: {e}") from e

        if not isinstance(parsed, dict):
            raise ExternalDependencyDegradedError("Classifier returned a non-object payload")

        return ParsedSnap(
            done=_text(parsed.get("done")),
            to_do=_text(parsed.get("toDo") or parsed.get("todo")),
            blockers=_text(parsed.get("blockers")),
            suggested_rag=RAGStatus.parse(parsed.get("suggestedRAG")),
        )


class ResilientTextClassifier(TextClassifier):
    """Primary classifier bounded by a timeout, with the keyword parser as fallback."""

    def __init__(
        self,
        primary: TextClassifier,
        fallback: Optional[FallbackClassifier] = None,
        timeout: float = 30.0,
    ) -> None:
        self.primary = primary
        self.fallback = fallback or FallbackClassifier()
        self.timeout = timeout

    async def classify(self, raw_text: str, card_title: str) -> ParsedSnap:
        try:
            return await asyncio.wait_for(self.primary.classify(raw_text, card_title), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Classifier timed out after %.1fs, using keyword fallback", self.timeout)
        except ExternalDependencyDegradedError as e:
            logger.warning("Classifier degraded (%s), using keyword fallback", e.message)
        except Exception:
            logger.warning("Classifier failed unexpectedly, using keyword fallback", exc_info=True)
        return await self.fallback.classify(raw_text, card_title)


def build_text_classifier(settings: Settings) -> TextClassifier:
    if not settings.enable_ai_parsing:
        return FallbackClassifier()
    primary = LLMTextClassifier(LLMProvider(settings), settings)
    return ResilientTextClassifier(primary, FallbackClassifier(), timeout=settings.classifier_timeout_seconds)


def _contains_any(text: str, words) -> bool:
    return any(word in text for word in words)


def _text(value) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)
