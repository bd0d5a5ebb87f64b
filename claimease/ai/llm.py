# claimease/ai/llm.py
"""
Chat model access for the support assistant.

Each provider wraps one LangChain chat model. The configured provider is
tried first; any other provider that has credentials is kept as a backup.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, List

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from claimease.core.config import settings
from claimease.core.exceptions import LLMConnectionError
from claimease.core.logging import get_logger

logger = get_logger(__name__)

# Chat model clients are blocking
_executor = ThreadPoolExecutor(max_workers=4)


class ChatProvider(ABC):
    """One chat model backend, built on first use."""

    name: str = ""

    def __init__(self):
        self._model: Optional[BaseChatModel] = None

    @property
    @abstractmethod
    def configured(self) -> bool:
        """Whether credentials for this backend are present."""

    @abstractmethod
    def _build(self) -> BaseChatModel:
        pass

    @property
    def model(self) -> BaseChatModel:
        if self._model is None:
            try:
                self._model = self._build()
            except Exception as e:
                raise LLMConnectionError(self.name, str(e))
            logger.info(f"Chat model ready: {self.name}")
        return self._model

    def ask(self, messages: List[BaseMessage]) -> str:
        response = self.model.invoke(messages)
        content = getattr(response, "content", response)
        return content if isinstance(content, str) else str(content)


class GroqProvider(ChatProvider):
    name = "groq"

    @property
    def configured(self) -> bool:
        return bool(settings.GROQ_API_KEY)

    def _build(self) -> BaseChatModel:
        from langchain_groq import ChatGroq
        return ChatGroq(
            model_name=settings.GROQ_MODEL,
            api_key=settings.GROQ_API_KEY,
            temperature=settings.LLM_TEMPERATURE,
            max_tokens=settings.LLM_MAX_TOKENS,
        )


class GoogleProvider(ChatProvider):
    name = "google"

    @property
    def configured(self) -> bool:
        return bool(settings.GOOGLE_API_KEY)

    def _build(self) -> BaseChatModel:
        from langchain_google_genai import ChatGoogleGenerativeAI
        return ChatGoogleGenerativeAI(
            model=settings.GOOGLE_MODEL,
            google_api_key=settings.GOOGLE_API_KEY,
            temperature=settings.LLM_TEMPERATURE,
            max_output_tokens=settings.LLM_MAX_TOKENS,
        )


class OllamaProvider(ChatProvider):
    """Local models; no key, only a model name."""

    name = "ollama"

    @property
    def configured(self) -> bool:
        return bool(settings.OLLAMA_MODEL)

    def _build(self) -> BaseChatModel:
        from langchain_ollama import ChatOllama
        return ChatOllama(model=settings.OLLAMA_MODEL, temperature=settings.LLM_TEMPERATURE)


PROVIDERS = {
    GroqProvider.name: GroqProvider,
    GoogleProvider.name: GoogleProvider,
    OllamaProvider.name: OllamaProvider,
}


class LLMService:
    """Ask the configured chat model, falling back to the other configured ones."""

    def __init__(self, providers: Optional[List[ChatProvider]] = None):
        self.providers = providers if providers is not None else self._configured_providers()

    @staticmethod
    def _configured_providers() -> List[ChatProvider]:
        primary = settings.LLM_PROVIDER.lower()
        if primary not in PROVIDERS:
            raise ValueError(f"Unknown LLM provider: {primary}")

        ordered = [primary] + [name for name in PROVIDERS if name != primary]
        providers = [PROVIDERS[name]() for name in ordered]
        return [p for p in providers if p.configured]

    @property
    def provider_name(self) -> Optional[str]:
        return self.providers[0].name if self.providers else None

    def invoke_sync(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        if not self.providers:
            raise LLMConnectionError(settings.LLM_PROVIDER, "No chat model is configured")

        messages: List[BaseMessage] = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))

        last_error = ""
        for provider in self.providers:
            start = time.perf_counter()
            try:
                answer = provider.ask(messages)
            except Exception as e:
                last_error = str(e)
                logger.warning("Chat model call failed", provider=provider.name, error=last_error)
                continue
            logger.log_performance("llm_invoke", (time.perf_counter() - start) * 1000, provider=provider.name)
            return answer

        raise LLMConnectionError(self.provider_name, last_error)

    async def invoke(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(_executor, lambda: self.invoke_sync(prompt, system_prompt))


_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
