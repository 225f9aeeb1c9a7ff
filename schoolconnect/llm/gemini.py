from __future__ import annotations

from typing import Any, Optional

import httpx

from schoolconnect.llm.client import LLMClient, LLMError, LLMUnavailable
from schoolconnect.llm.types import LLMRequest, LLMResponse

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiClient(LLMClient):
    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, timeout: float = 60.0) -> None:
        self.api_key = api_key
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout

    async def generate(self, req: LLMRequest) -> LLMResponse:
        if not self.api_key:
            raise LLMUnavailable("Gemini API key is not set")

        url = f"{self.base_url}/models/{req.model}:generateContent"
        system = "\n\n".join(m.content for m in req.messages if m.role == "system")
        payload: dict[str, Any] = {
            "contents": [
                {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
                for m in req.messages
                if m.role != "system"
            ],
            "generationConfig": {
                "temperature": req.temperature,
                "topP": req.top_p,
                "maxOutputTokens": req.max_output_tokens,
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.post(url, json=payload, params={"key": self.api_key})

        if r.status_code in (401, 403, 429):
            raise LLMUnavailable(f"Gemini rejected the request (API key or quota): HTTP {r.status_code}")
        if r.status_code >= 400:
            raise LLMError(f"Gemini request failed: HTTP {r.status_code}: {r.text[:200]}")
        data = r.json()

        text = ""
        for candidate in data.get("candidates", []) or []:
            for part in (candidate.get("content") or {}).get("parts", []) or []:
                text += part.get("text", "")
            if text:
                break
        if not text:
            raise LLMError("Gemini returned no text")

        usage = data.get("usageMetadata") or {}
        return LLMResponse(
            text=text,
            raw=data,
            input_tokens=usage.get("promptTokenCount"),
            output_tokens=usage.get("candidatesTokenCount"),
            total_tokens=usage.get("totalTokenCount"),
        )
