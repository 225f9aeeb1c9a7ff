from __future__ import annotations

from schoolconnect.llm.client import LLMClient
from schoolconnect.llm.gemini import GeminiClient
from schoolconnect.llm.mock import MockLLMClient
from schoolconnect.settings import settings


def get_llm_client(provider: str) -> LLMClient:
    p = (provider or "").strip().lower()
    if p in ("mock", "dev"):
        return MockLLMClient()
    if p in ("gemini", "google"):
        return GeminiClient(api_key=settings.gemini_api_key, base_url=settings.gemini_base_url)

    # Unknown providers fall back to mock to keep the system usable in dev.
    return MockLLMClient()
