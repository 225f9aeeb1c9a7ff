"""
AI-assisted quiz drafting.

The model is asked for a JSON quiz; the reply is unfenced, parsed and
checked before it is handed back to the teacher as an unsaved draft.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from schoolconnect.errors import SchoolConnectError, ServiceUnavailable
from schoolconnect.llm.client import LLMClient, LLMUnavailable
from schoolconnect.llm.types import LLMMessage, LLMRequest
from schoolconnect.models import GenerateQuizRequest
from schoolconnect.models.quiz import GeneratedQuestion, GeneratedQuiz
from schoolconnect.settings import settings

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

TYPE_PHRASES = {
    "multiple_choice": "multiple choice questions with 4 options",
    "true_false": "true/false questions",
    "short_answer": "short answer questions",
}

SYSTEM_PROMPT = "You write accurate, age-appropriate school quizzes and reply with JSON only."

QUIZ_PROMPT = """Generate a quiz with the following specifications:

Topic: {topic}
Difficulty Level: {difficulty}
Number of Questions: {count}
Question Types: {types}
{extra}
Return a JSON object in exactly this shape:

{{
  "title": "Quiz title based on the topic",
  "description": "Brief description of what the quiz covers",
  "questions": [
    {{"type": "multiple_choice", "question": "...", "options": ["A", "B", "C", "D"],
      "correctAnswer": 0, "explanation": "...", "points": 1, "difficulty": "easy"}},
    {{"type": "true_false", "question": "...", "correctAnswer": true,
      "explanation": "...", "points": 2, "difficulty": "medium"}},
    {{"type": "short_answer", "question": "...", "correctAnswer": "expected answer",
      "explanation": "...", "points": 3, "difficulty": "hard"}}
  ]
}}

Rules:
1. Multiple choice: exactly 4 options, correctAnswer is the index (0-3).
2. True/false: correctAnswer is a boolean.
3. Short answer: correctAnswer is a short string.
4. Points: easy=1, medium=2, hard=3.
5. Provide a clear explanation for every question.

Return ONLY the JSON, no additional text."""

SUGGESTIONS_PROMPT = """Generate 5 specific quiz topic suggestions related to "{topic}".
Each suggestion should be more specific than the original topic, suitable for
educational assessment, and clear.

Return only a JSON array of strings:
["Topic 1", "Topic 2", "Topic 3", "Topic 4", "Topic 5"]"""


class QuizStructureError(ValueError):
    """The model returned parseable JSON that is not a usable quiz."""


def strip_fences(text: str) -> str:
    return FENCE_RE.sub("", text.strip()).strip()


def parse_generated_quiz(text: str) -> GeneratedQuiz:
    """Raises json.JSONDecodeError for non-JSON and QuizStructureError for a bad shape."""
    data = json.loads(strip_fences(text))
    if not isinstance(data, dict) or not data.get("title") or not isinstance(data.get("questions"), list):
        raise QuizStructureError("Invalid quiz structure generated")

    questions: list[GeneratedQuestion] = []
    for index, raw in enumerate(data["questions"]):
        if not isinstance(raw, dict) or not raw.get("type") or not raw.get("question") or "correctAnswer" not in raw:
            raise QuizStructureError(f"Invalid question structure at index {index}")
        if raw["type"] == "multiple_choice" and len(raw.get("options") or []) != 4:
            raise QuizStructureError(f"Multiple choice question at index {index} must have exactly 4 options")
        try:
            questions.append(GeneratedQuestion.model_validate(raw))
        except ValidationError as e:
            raise QuizStructureError(f"Invalid question structure at index {index}") from e

    total = sum(q.points for q in questions)
    return GeneratedQuiz(
        title=str(data["title"]),
        description=str(data.get("description") or ""),
        questions=questions,
        total_points=total,
        estimated_time_minutes=max(len(questions) * 2, 1),
    )


def fallback_quiz(req: GenerateQuizRequest) -> GeneratedQuiz:
    """Placeholder draft used when the model's reply is not JSON at all."""
    questions: list[GeneratedQuestion] = []
    if "multiple_choice" in req.question_types:
        for _ in range(min(req.question_count, 5)):
            questions.append(
                GeneratedQuestion(
                    type="multiple_choice",
                    question=f"Which of the following is related to {req.topic}?",
                    options=["Option A", "Option B", "Option C", "Option D"],
                    correct_answer=0,
                    explanation="This is the correct answer based on the topic.",
                    points=1,
                    difficulty=req.difficulty,
                )
            )
    return GeneratedQuiz(
        title=f"{req.topic} Quiz",
        description=f"A quiz covering key concepts in {req.topic}",
        questions=questions,
        total_points=sum(q.points for q in questions),
        estimated_time_minutes=len(questions) * 2,
    )


def fallback_suggestions(topic: str) -> list[str]:
    return [
        f"Basic concepts in {topic}",
        f"Advanced {topic} principles",
        f"{topic} applications",
        f"{topic} terminology",
        f"{topic} problem solving",
    ]


class QuizGenerator:
    def __init__(self, llm: LLMClient, model: str | None = None) -> None:
        self.llm = llm
        self.model = model or settings.llm_model

    def _request(self, prompt: str, metadata: dict[str, Any]) -> LLMRequest:
        return LLMRequest(
            messages=[LLMMessage(role="system", content=SYSTEM_PROMPT), LLMMessage(role="user", content=prompt)],
            model=self.model,
            temperature=settings.llm_temperature,
            top_p=settings.llm_top_p,
            max_output_tokens=settings.llm_max_output_tokens,
            metadata=metadata,
        )

    async def generate(self, req: GenerateQuizRequest) -> GeneratedQuiz:
        extra = ""
        if req.grade_level:
            extra += f"Grade Level: {req.grade_level}\n"
        if req.curriculum:
            extra += f"Curriculum: {req.curriculum}\n"
        prompt = QUIZ_PROMPT.format(
            topic=req.topic,
            difficulty=req.difficulty,
            count=req.question_count,
            types=", ".join(TYPE_PHRASES[t] for t in req.question_types),
            extra=extra,
        )
        metadata = {
            "task": "quiz",
            "topic": req.topic,
            "difficulty": req.difficulty,
            "question_count": req.question_count,
            "question_types": list(req.question_types),
        }

        try:
            response = await self.llm.generate(self._request(prompt, metadata))
        except LLMUnavailable as e:
            logger.warning("Quiz generation unavailable: %s", e)
            raise ServiceUnavailable("AI service temporarily unavailable. Please try again later.") from e
        except Exception as e:
            logger.exception("Quiz generation call failed")
            raise SchoolConnectError("Failed to generate quiz. Please try again.") from e

        try:
            quiz = parse_generated_quiz(response.text)
        except json.JSONDecodeError:
            logger.warning("AI generated invalid JSON, creating fallback quiz for topic %r", req.topic)
            return fallback_quiz(req)
        except QuizStructureError as e:
            logger.error("Generated quiz rejected: %s", e)
            raise SchoolConnectError("Failed to generate quiz. Please try again.") from e

        logger.info("Generated quiz %r with %d questions", quiz.title, len(quiz.questions))
        return quiz

    async def suggest_topics(self, topic: str) -> list[str]:
        prompt = SUGGESTIONS_PROMPT.format(topic=topic)
        try:
            response = await self.llm.generate(self._request(prompt, {"task": "suggestions", "topic": topic}))
            suggestions = json.loads(strip_fences(response.text))
            if isinstance(suggestions, list) and suggestions:
                return [str(s) for s in suggestions[:5]]
            logger.warning("Invalid suggestions format; using fallback list")
        except Exception as e:
            logger.warning("Topic suggestions failed (%s); using fallback list", e)
        return fallback_suggestions(topic)
