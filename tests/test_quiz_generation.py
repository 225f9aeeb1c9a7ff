import json

import pytest

from schoolconnect.models import GenerateQuizRequest
from schoolconnect.services.quiz_generation import (
    QuizStructureError,
    fallback_quiz,
    parse_generated_quiz,
    strip_fences,
)

REPLY = {
    "title": "Photosynthesis",
    "description": "Plants and light",
    "questions": [
        {"type": "multiple_choice", "question": "Pigment?", "options": ["Chlorophyll", "Keratin", "Melanin", "Heme"],
         "correctAnswer": 0, "points": 1, "difficulty": "easy"},
        {"type": "short_answer", "question": "Gas released?", "correctAnswer": "Oxygen", "points": 3, "difficulty": "hard"},
    ],
}


def test_strip_fences():
    assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_fences("  [1, 2]  ") == "[1, 2]"


def test_parse_fenced_reply():
    quiz = parse_generated_quiz("```json\n" + json.dumps(REPLY) + "\n```")
    assert quiz.title == "Photosynthesis"
    assert quiz.total_points == 4
    assert quiz.estimated_time_minutes == 4
    assert quiz.questions[1].correct_answer == "Oxygen"


@pytest.mark.parametrize(
    "payload",
    [
        {"questions": []},
        {"title": "x", "questions": "none"},
        {"title": "x", "questions": [{"type": "true_false", "question": "?"}]},
        {"title": "x", "questions": [{"type": "multiple_choice", "question": "?", "options": ["a", "b"], "correctAnswer": 0}]},
    ],
)
def test_bad_structure(payload):
    with pytest.raises(QuizStructureError):
        parse_generated_quiz(json.dumps(payload))


def test_non_json_raises_decode_error():
    with pytest.raises(json.JSONDecodeError):
        parse_generated_quiz("I'm sorry, Dave.")


def test_fallback_only_builds_multiple_choice():
    req = GenerateQuizRequest(topic="Tides", difficulty="hard", question_count=8, question_types=["true_false"])
    assert fallback_quiz(req).questions == []

    req = GenerateQuizRequest(topic="Tides", difficulty="hard", question_count=8, question_types=["multiple_choice"])
    quiz = fallback_quiz(req)
    assert len(quiz.questions) == 5
    assert quiz.title == "Tides Quiz"
