import asyncio

import pytest
from fastapi.testclient import TestClient

from schoolconnect.llm.client import LLMClient, LLMUnavailable
from schoolconnect.llm.types import LLMResponse
from schoolconnect.models import Quiz
from schoolconnect.wiring import get_llm
from tests.conftest import auth_headers, make_quiz, make_user


def quiz_body(**overrides):
    body = {
        "title": "Fractions",
        "description": "Adding and comparing fractions",
        "subject": "Math",
        "gradeLevel": " Grade 5 ",
        "status": "published",
        "questions": [
            {"type": "multiple_choice", "question": "1/2 + 1/4?", "options": ["3/4", "2/6", "1", "1/8"], "correctAnswer": 0, "points": 2},
            {"type": "true_false", "question": "1/3 > 1/2", "correctAnswer": False},
        ],
        "settings": {"maxAttempts": 2, "passingScore": 50},
    }
    body.update(overrides)
    return body


@pytest.fixture
def teacher(seed):
    user = make_user("teacher")
    seed(user)
    return user


@pytest.fixture
def student(seed):
    user = make_user("student")
    seed(user)
    return user


def test_create_quiz(client, teacher):
    res = client.post("/quizzes", headers=auth_headers(teacher), json=quiz_body())

    assert res.status_code == 201
    quiz = res.json()["quiz"]
    assert quiz["totalPoints"] == 3
    assert quiz["gradeLevel"] == "Grade 5"
    assert quiz["estimatedTimeMinutes"] == 5
    assert quiz["publishedAt"] is not None
    assert quiz["settings"]["maxAttempts"] == 2
    assert quiz["settings"]["shuffleQuestions"] is False
    assert all(q["id"] for q in quiz["questions"])


def test_student_cannot_create(client, student):
    res = client.post("/quizzes", headers=auth_headers(student), json=quiz_body())
    assert res.status_code == 403


@pytest.mark.parametrize(
    "question",
    [
        {"type": "multiple_choice", "question": "?", "options": ["a", "b"], "correctAnswer": 5},
        {"type": "multiple_choice", "question": "?", "options": ["a"], "correctAnswer": 0},
        {"type": "true_false", "question": "?", "correctAnswer": "yes"},
        {"type": "short_answer", "question": "?", "correctAnswer": "  "},
    ],
)
def test_invalid_answer_keys_are_rejected(client, teacher, question):
    res = client.post("/quizzes", headers=auth_headers(teacher), json=quiz_body(questions=[question]))
    assert res.status_code == 400
    assert res.json()["error"] == "Validation failed"


def test_unknown_fields_are_rejected(client, teacher):
    res = client.post("/quizzes", headers=auth_headers(teacher), json=quiz_body(author="someone-else"))
    assert res.status_code == 400


def test_listing_by_role(client, seed, teacher, student):
    seed(
        make_quiz(teacher.id, title="Published"),
        make_quiz(teacher.id, title="Draft", status="draft"),
        make_quiz(teacher.id, title="Science", subject="Science"),
    )

    mine = client.get("/quizzes", params={"author": "true"}, headers=auth_headers(teacher)).json()["quizzes"]
    drafts = client.get(
        "/quizzes", params={"author": "true", "status": "draft"}, headers=auth_headers(teacher)
    ).json()["quizzes"]
    visible = client.get("/quizzes", headers=auth_headers(student)).json()["quizzes"]
    science = client.get("/quizzes", params={"subject": "sci"}, headers=auth_headers(student)).json()["quizzes"]

    assert len(mine) == 3
    assert [q["title"] for q in drafts] == ["Draft"]
    assert {q["title"] for q in visible} == {"Published", "Science"}
    assert [q["title"] for q in science] == ["Science"]
    assert visible[0]["studentProgress"]["attemptCount"] == 0
    assert "attempts" not in visible[0]["studentProgress"]


def test_detail_views(client, seed, teacher, student):
    quiz = make_quiz(teacher.id)
    draft = make_quiz(teacher.id, status="draft")
    seed(quiz, draft)

    as_author = client.get(f"/quizzes/{quiz.id}", headers=auth_headers(teacher)).json()["quiz"]
    as_student = client.get(f"/quizzes/{quiz.id}", headers=auth_headers(student)).json()["quiz"]
    hidden = client.get(f"/quizzes/{draft.id}", headers=auth_headers(student))

    assert as_author["statistics"]["totalAttempts"] == 0
    assert "studentProgress" not in as_author
    assert as_student["studentProgress"]["canRetake"] is True
    assert as_student["studentProgress"]["attempts"] == []
    assert "statistics" not in as_student
    assert hidden.status_code == 403


def test_detail_unknown_quiz(client, teacher):
    assert client.get("/quizzes/missing", headers=auth_headers(teacher)).status_code == 404


def test_update_merges_settings(client, seed, teacher):
    quiz = make_quiz(teacher.id)
    seed(quiz)

    res = client.patch(
        f"/quizzes/{quiz.id}",
        headers=auth_headers(teacher),
        json={"title": "  Renamed  ", "settings": {"passingScore": 0}},
    )

    assert res.status_code == 200
    updated = res.json()["quiz"]
    assert updated["title"] == "Renamed"
    assert updated["settings"]["passingScore"] == 0
    assert updated["settings"]["maxAttempts"] == 3


def test_update_rejects_blank_title(client, seed, teacher):
    quiz = make_quiz(teacher.id)
    seed(quiz)

    res = client.patch(f"/quizzes/{quiz.id}", headers=auth_headers(teacher), json={"title": "   "})

    assert res.status_code == 400
    assert res.json()["error"] == "Validation failed"
    assert [d["field"] for d in res.json()["details"]] == ["title"]


def test_corrupt_stored_quiz_is_a_server_error(app, repo, seed, teacher, monkeypatch):
    quiz = make_quiz(teacher.id)
    seed(quiz)

    async def corrupt(quiz_id):
        return Quiz.model_validate({"_id": quiz_id, "title": ""})

    monkeypatch.setattr(repo, "get_quiz", corrupt)
    res = TestClient(app, raise_server_exceptions=False).get(f"/quizzes/{quiz.id}", headers=auth_headers(teacher))

    assert res.status_code == 500
    assert res.json() == {"error": "Internal server error"}


def test_only_author_updates(client, seed, teacher):
    other = make_user("teacher")
    quiz = make_quiz(teacher.id)
    seed(other, quiz)
    res = client.patch(f"/quizzes/{quiz.id}", headers=auth_headers(other), json={"title": "Mine now"})
    assert res.status_code == 403


def test_delete_without_attempts_removes(client, seed, repo, teacher):
    quiz = make_quiz(teacher.id)
    seed(quiz)

    res = client.delete(f"/quizzes/{quiz.id}", headers=auth_headers(teacher))

    assert res.json()["message"] == "Quiz deleted successfully"
    assert asyncio.run(repo.get_quiz(quiz.id)) is None


def test_delete_with_attempts_archives(client, seed, repo, teacher, student):
    quiz = make_quiz(teacher.id)
    seed(quiz)
    assert client.post(f"/quizzes/{quiz.id}/attempt", headers=auth_headers(student)).status_code == 201

    res = client.delete(f"/quizzes/{quiz.id}", headers=auth_headers(teacher))

    assert res.json()["message"] == "Quiz archived due to existing student attempts"
    assert asyncio.run(repo.get_quiz(quiz.id)).status == "archived"


# ---- AI drafting ----

GENERATE = {
    "topic": "Volcanoes",
    "difficulty": "easy",
    "questionCount": 4,
    "questionTypes": ["multiple_choice", "true_false"],
}


class CannedLLM(LLMClient):
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error

    async def generate(self, req):
        if self.error:
            raise self.error
        return LLMResponse(text=self.text)


def test_generate_with_mock_model(client, teacher):
    res = client.post("/quizzes/generate", headers=auth_headers(teacher), json=GENERATE)

    assert res.status_code == 200
    quiz = res.json()["quiz"]
    assert quiz["title"] == "Volcanoes Quiz"
    assert [q["type"] for q in quiz["questions"]] == ["multiple_choice", "true_false"] * 2
    assert quiz["totalPoints"] == 4


def test_generate_falls_back_on_non_json(client, app, teacher):
    app.dependency_overrides[get_llm] = lambda: CannedLLM(text="Sorry, I cannot help with that.")
    quiz = client.post("/quizzes/generate", headers=auth_headers(teacher), json=GENERATE).json()["quiz"]
    assert quiz["title"] == "Volcanoes Quiz"
    assert len(quiz["questions"]) == 4
    assert quiz["questions"][0]["options"] == ["Option A", "Option B", "Option C", "Option D"]


def test_generate_rejects_bad_structure(client, app, teacher):
    bad = '{"title": "X", "questions": [{"type": "multiple_choice", "question": "?", "options": ["a"], "correctAnswer": 0}]}'
    app.dependency_overrides[get_llm] = lambda: CannedLLM(text=bad)
    res = client.post("/quizzes/generate", headers=auth_headers(teacher), json=GENERATE)
    assert res.status_code == 500
    assert res.json()["error"] == "Failed to generate quiz. Please try again."


def test_generate_when_model_unavailable(client, app, teacher):
    app.dependency_overrides[get_llm] = lambda: CannedLLM(error=LLMUnavailable("quota exceeded"))
    res = client.post("/quizzes/generate", headers=auth_headers(teacher), json=GENERATE)
    assert res.status_code == 503
    assert res.json()["error"] == "AI service temporarily unavailable. Please try again later."


def test_generate_is_teacher_only(client, student):
    res = client.post("/quizzes/generate", headers=auth_headers(student), json=GENERATE)
    assert res.status_code == 403


def test_topic_suggestions(client, app, teacher):
    ok = client.get("/quizzes/generate", params={"topic": "Rivers"}, headers=auth_headers(teacher))
    missing = client.get("/quizzes/generate", headers=auth_headers(teacher))
    app.dependency_overrides[get_llm] = lambda: CannedLLM(text="not a list")
    fallback = client.get("/quizzes/generate", params={"topic": "Rivers"}, headers=auth_headers(teacher))

    assert len(ok.json()["suggestions"]) == 5
    assert missing.status_code == 400
    assert missing.json()["error"] == "Topic parameter is required"
    assert fallback.json()["suggestions"][0] == "Basic concepts in Rivers"
