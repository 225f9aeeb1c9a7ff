"""
Response grading.

Grading is pure and total: every (question, answer) pair yields a result,
and anything that cannot be read as an answer to that question type is
simply incorrect.
"""

from __future__ import annotations

from typing import NamedTuple, Optional

from schoolconnect.models.attempt import Answer, AnswerValue, BooleanAnswer, ChoiceAnswer, TextAnswer
from schoolconnect.models.quiz import Question, QuestionType


class GradeResult(NamedTuple):
    is_correct: bool
    points_earned: int


INCORRECT = GradeResult(False, 0)


def coerce_answer(question_type: str, raw: AnswerValue) -> Optional[Answer]:
    """Read a raw client answer as the typed answer for ``question_type``, or None."""
    if raw is None:
        return None
    if question_type == QuestionType.multiple_choice:
        # bool is an int subclass; True must not select option 1
        if isinstance(raw, int) and not isinstance(raw, bool):
            return ChoiceAnswer(index=raw)
        return None
    if question_type == QuestionType.true_false:
        return BooleanAnswer(value=raw) if isinstance(raw, bool) else None
    if question_type == QuestionType.short_answer:
        if isinstance(raw, str):
            return TextAnswer(text=raw)
        if isinstance(raw, int) and not isinstance(raw, bool):
            return TextAnswer(text=str(raw))
    return None


def normalize_text(value: str) -> str:
    return value.strip().casefold()


def short_answer_matches(submitted: str, expected: str) -> bool:
    """Equal after trim + case-fold, or either contains the other. Empty never matches."""
    got = normalize_text(submitted)
    want = normalize_text(expected)
    if not got or not want:
        return False
    return got == want or want in got or got in want


def is_correct(question: Question, answer: Optional[Answer]) -> bool:
    if answer is None:
        return False
    key = question.correct_answer
    if isinstance(answer, ChoiceAnswer):
        return not isinstance(key, bool) and isinstance(key, int) and answer.index == key
    if isinstance(answer, BooleanAnswer):
        return isinstance(key, bool) and answer.value is key
    if isinstance(answer, TextAnswer):
        return isinstance(key, str) and short_answer_matches(answer.text, key)
    return False


def grade_response(question: Optional[Question], raw: AnswerValue) -> GradeResult:
    """Grade one submitted answer against its authoritative question."""
    if question is None:
        return INCORRECT
    answer = coerce_answer(question.type, raw)
    if is_correct(question, answer):
        return GradeResult(True, question.points)
    return INCORRECT
