from __future__ import annotations

import json

from schoolconnect.llm.client import LLMClient
from schoolconnect.llm.types import LLMRequest, LLMResponse


class MockLLMClient(LLMClient):
    """Deterministic mock LLM for local development.

    Replies in the JSON shape the quiz generator asks for, chosen by
    ``req.metadata["task"]`` ("quiz" or "suggestions").
    """

    async def generate(self, req: LLMRequest) -> LLMResponse:
        meta = req.metadata
        topic = str(meta.get("topic", "General knowledge"))
        if meta.get("task") == "suggestions":
            payload = [f"(mock) {topic} part {i}" for i in range(1, 6)]
            return LLMResponse(text=json.dumps(payload), raw={"provider": "mock"})

        types = meta.get("question_types") or ["multiple_choice"]
        count = int(meta.get("question_count", 3))
        difficulty = meta.get("difficulty", "medium")
        questions = []
        for i in range(count):
            qtype = types[i % len(types)]
            question = {
                "type": qtype,
                "question": f"(mock) Question {i + 1} about {topic}",
                "explanation": "(mock) Explanation.",
                "points": 1,
                "difficulty": difficulty,
            }
            if qtype == "multiple_choice":
                question["options"] = ["Option A", "Option B", "Option C", "Option D"]
                question["correctAnswer"] = 0
            elif qtype == "true_false":
                question["correctAnswer"] = True
            else:
                question["correctAnswer"] = topic
            questions.append(question)

        payload = {
            "title": f"{topic} Quiz",
            "description": f"(mock) A quiz covering {topic}",
            "questions": questions,
        }
        return LLMResponse(text="```json\n" + json.dumps(payload) + "\n```", raw={"provider": "mock"})
