"""
LLM provider abstraction supporting OpenAI, Anthropic, and Google.
Backs the AI draft-reply generator used by the inbox poll.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional
from openai import OpenAI
from anthropic import Anthropic
import google.generativeai as genai

from config import settings
from integrations.base import DraftGenerator
from observability import trace_logger


DRAFT_SYSTEM_PROMPT = (
    "You write concise professional email drafts for a single-agent real estate "
    "CRM. Output plain text only."
)


class LLMProvider(ABC):
    """Single-turn text completion against one configured model."""

    name = "llm"

    def __init__(self):
        self.model = settings.llm_model

    def generate(
        self,
        prompt: str,
        system_prompt: str,
        temperature: float,
        max_tokens: int
    ) -> str:
        """Complete ``prompt``; provider errors are logged and re-raised."""
        try:
            return self._complete(prompt, system_prompt, temperature, max_tokens)
        except Exception as e:
            trace_logger.error_occurred(
                error_type="llm_generation_error",
                error_message=str(e),
                context={"provider": self.name, "model": self.model}
            )
            raise

    @abstractmethod
    def _complete(
        self,
        prompt: str,
        system_prompt: str,
        temperature: float,
        max_tokens: int
    ) -> str:
        pass


class OpenAIProvider(LLMProvider):

    name = "openai"

    def __init__(self):
        super().__init__()
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY not configured")
        self.client = OpenAI(api_key=settings.openai_api_key)

    def _complete(self, prompt, system_prompt, temperature, max_tokens):
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens
        )
        return response.choices[0].message.content or ""


class AnthropicProvider(LLMProvider):

    name = "anthropic"

    def __init__(self):
        super().__init__()
        if not settings.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY not configured")
        self.client = Anthropic(api_key=settings.anthropic_api_key)

    def _complete(self, prompt, system_prompt, temperature, max_tokens):
        response = self.client.messages.create(
            model=self.model,
            system=system_prompt,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens
        )
        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )


class GoogleProvider(LLMProvider):

    name = "google"

    def __init__(self):
        super().__init__()
        if not settings.google_api_key:
            raise ValueError("GOOGLE_API_KEY not configured")
        genai.configure(api_key=settings.google_api_key)

    def _complete(self, prompt, system_prompt, temperature, max_tokens):
        model = genai.GenerativeModel(self.model, system_instruction=system_prompt)
        response = model.generate_content(
            prompt,
            generation_config=genai.types.GenerationConfig(
                temperature=temperature,
                max_output_tokens=max_tokens
            )
        )
        return response.text


PROVIDERS = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "google": GoogleProvider,
}


def get_llm_provider() -> LLMProvider:
    """Provider selected by ``LLM_PROVIDER``."""
    provider_class = PROVIDERS.get(settings.llm_provider)
    if provider_class is None:
        raise ValueError(f"Unknown LLM provider: {settings.llm_provider}")
    return provider_class()


class LLMDraftGenerator(DraftGenerator):
    """Draft replies generated by the configured LLM provider."""

    def __init__(self, provider: Optional[LLMProvider] = None):
        self._provider = provider

    @property
    def provider(self) -> LLMProvider:
        # built lazily so a missing API key only fails draft generation
        if self._provider is None:
            self._provider = get_llm_provider()
        return self._provider

    async def generate_draft(self, prompt: str) -> str:
        draft = await asyncio.to_thread(
            self.provider.generate,
            prompt,
            DRAFT_SYSTEM_PROMPT,
            settings.llm_temperature,
            settings.llm_max_tokens
        )
        draft = (draft or "").strip()
        if not draft:
            raise RuntimeError("LLM response did not include draft content")
        return draft
