from __future__ import annotations

from abc import ABC, abstractmethod

from schoolconnect.llm.types import LLMRequest, LLMResponse


class LLMError(RuntimeError):
    """The provider call failed."""


class LLMUnavailable(LLMError):
    """Missing credentials or exhausted quota; retrying later may help."""


class LLMClient(ABC):
    @abstractmethod
    async def generate(self, req: LLMRequest) -> LLMResponse:
        raise NotImplementedError
