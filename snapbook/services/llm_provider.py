"""
LLM Provider - text completion against a local Ollama server or any
OpenAI-compatible endpoint (OpenAI, Groq, Together, vLLM, ...)

Only the snap classifier talks to it. Every transport, HTTP or decoding
failure surfaces as ``LLMProviderError`` so the caller can fall back.
"""
from typing import List, Optional

import httpx
from dotenv import load_dotenv
from pydantic import BaseModel

from ..config import Settings, settings as default_settings
from ..utils.logging import get_logger

# The openai SDK reads OPENAI_ORG_ID / OPENAI_PROJECT_ID straight from the environment
load_dotenv()

logger = get_logger(__name__)


class LLMProviderError(Exception):
    pass


class Completion(BaseModel):
    content: str
    tokens_used: int = 0
    model: str
    provider: str


class LLMProvider:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.provider = self.settings.llm_provider
        self._openai_client = None
        logger.info("Snap classifier LLM: %s (%s)", self.provider, self.model)

    @property
    def model(self) -> str:
        return self.settings.ollama_model if self.provider == "ollama" else self.settings.openai_model

    async def generate_completion(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 500,
        temperature: float = 0.1,
        timeout: float = 30.0
    ) -> Completion:
        if self.provider == "ollama":
            return await self._ollama_completion(prompt, system_prompt, max_tokens, temperature, timeout)
        return await self._openai_completion(prompt, system_prompt, max_tokens, temperature, timeout)

    async def _ollama_completion(
        self,
        prompt: str,
        system_prompt: Optional[str],
        max_tokens: int,
        temperature: float,
        timeout: float
    ) -> Completion:
        url = f"{self.settings.ollama_base_url.rstrip('/')}/api/generate"
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            # Ask Ollama for a JSON object; the classifier still tolerates surrounding prose
            "format": "json",
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        if system_prompt:
            payload["system"] = system_prompt

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Ollama request to %s failed: %s", url, e)
            raise LLMProviderError(f"Ollama request failed: {e}") from e

        return Completion(
            content=data.get("response", ""),
            tokens_used=data.get("eval_count", 0) + data.get("prompt_eval_count", 0),
            model=self.model,
            provider="ollama",
        )

    async def _openai_completion(
        self,
        prompt: str,
        system_prompt: Optional[str],
        max_tokens: int,
        temperature: float,
        timeout: float
    ) -> Completion:
        from openai import AsyncOpenAI, OpenAIError

        if self._openai_client is None:
            self._openai_client = AsyncOpenAI(
                api_key=self.settings.openai_api_key,
                base_url=self.settings.openai_api_base,
                max_retries=0,
            )

        messages: List[dict] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self._openai_client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                timeout=timeout,
            )
        except OpenAIError as e:
            logger.warning("OpenAI-compatible request failed: %s", e)
            raise LLMProviderError(f"LLM request failed: {e}") from e

        if not response.choices:
            raise LLMProviderError("LLM returned no choices")

        return Completion(
            content=response.choices[0].message.content or "",
            tokens_used=response.usage.total_tokens if response.usage else 0,
            model=response.model,
            provider="openai",
        )
