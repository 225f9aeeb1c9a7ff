from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class LLMMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class LLMRequest(BaseModel):
    messages: list[LLMMessage]
    model: str

    temperature: float = 0.7
    top_p: float = 1.0
    max_output_tokens: int = 4096

    # Free-form hints; the mock client reads "task" to pick a canned reply.
    metadata: dict[str, Any] = Field(default_factory=dict)


class LLMResponse(BaseModel):
    text: str
    raw: Optional[dict[str, Any]] = None

    # Optional usage info (provider-dependent)
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
