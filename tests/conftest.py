import asyncio
import os

os.environ.setdefault("OBSERVABILITY_ENABLED", "false")
os.environ.setdefault("STORAGE_BACKEND", "inmemory")
os.environ.setdefault("LLM_PROVIDER", "mock")
os.environ.setdefault("EMAIL_PROVIDER", "log")
os.environ.setdefault("EMAIL_BATCH_PAUSE_SECONDS", "0")

import pytest
from fastapi.testclient import TestClient

from schoolconnect.auth.jwt_handler import create_access_token
from schoolconnect.email.client import EmailClient, EmailError
from schoolconnect.llm.mock import MockLLMClient
from schoolconnect.main import create_app
from schoolconnect.models import Question, Quiz, QuizSettings, User
from schoolconnect.services.analytics import AnalyticsService
from schoolconnect.services.attempts import AttemptService
from schoolconnect.storage.inmemory import InMemorySchoolRepository
from schoolconnect.wiring import get_email, get_llm, get_repo


class FakeEmailClient(EmailClient):
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    async def send(self, message):
        if message.to in self.fail_for:
            raise EmailError("mailbox unavailable")
        self.sent.append(message)
        return f"msg-{len(self.sent)}"


_counter = {"n": 0}


def make_user(role="student", email=None, first_name="Test"):
    _counter["n"] += 1
    return User(
        first_name=first_name,
        second_name="Middle",
        surname=f"User{_counter['n']}",
        email=email or f"{role}{_counter['n']}@school.edu",
        password_hash="not-a-real-hash",
        role=role,
    )


def make_questions():
    return [
        Question(
            id="q-mc",
            type="multiple_choice",
            question="Which letter is third?",
            options=["A", "B", "C", "D"],
            correct_answer=2,
            points=2,
        ),
        Question(id="q-tf", type="true_false", question="The sky is blue.", correct_answer=True, points=1),
        Question(id="q-sa", type="short_answer", question="Capital of France?", correct_answer="Paris", points=2),
    ]


def make_quiz(author_id, status="published", **overrides):
    fields = dict(
        title="Geography basics",
        description="A short quiz",
        subject="Geography",
        grade_level="Grade 7",
        questions=make_questions(),
        author=author_id,
        status=status,
        settings=QuizSettings(),
    )
    fields.update(overrides)
    quiz = Quiz(**fields)
    quiz.refresh_derived_fields()
    return quiz


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email, user.role)}"}


@pytest.fixture
def repo():
    return InMemorySchoolRepository()


@pytest.fixture
def analytics(repo):
    return AnalyticsService(repo)


@pytest.fixture
def attempts(repo, analytics):
    return AttemptService(repo, analytics)


@pytest.fixture
def email_client():
    return FakeEmailClient()


@pytest.fixture
def app(repo, email_client):
    app = create_app()
    app.dependency_overrides[get_repo] = lambda: repo
    app.dependency_overrides[get_email] = lambda: email_client
    app.dependency_overrides[get_llm] = lambda: MockLLMClient()
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def seed(repo):
    """Synchronously insert users and quizzes for HTTP-level tests."""

    def _seed(*records):
        for record in records:
            if isinstance(record, User):
                asyncio.run(repo.create_user(record))
            elif isinstance(record, Quiz):
                asyncio.run(repo.create_quiz(record))
            else:
                raise TypeError(f"cannot seed {type(record).__name__}")
        return records

    return _seed
