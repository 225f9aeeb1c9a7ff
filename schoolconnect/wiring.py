from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from schoolconnect.email.client import EmailClient
from schoolconnect.email.factory import get_email_client
from schoolconnect.llm.client import LLMClient
from schoolconnect.llm.factory import get_llm_client
from schoolconnect.services.analytics import AnalyticsService
from schoolconnect.services.announcements import AnnouncementService
from schoolconnect.services.attempts import AttemptService
from schoolconnect.services.quiz_generation import QuizGenerator
from schoolconnect.services.quizzes import QuizService
from schoolconnect.settings import settings
from schoolconnect.storage.inmemory import InMemorySchoolRepository
from schoolconnect.storage.mongo import MongoSchoolRepository
from schoolconnect.storage.repo import SchoolRepository


@lru_cache
def get_repo() -> SchoolRepository:
    backend = (settings.storage_backend or "inmemory").lower()
    if backend == "mongo":
        return MongoSchoolRepository(settings.mongodb_uri, settings.mongodb_db)
    return InMemorySchoolRepository()


@lru_cache
def get_llm() -> LLMClient:
    return get_llm_client(settings.llm_provider)


@lru_cache
def get_email() -> EmailClient:
    return get_email_client(settings.email_provider)


def get_analytics_service(repo: SchoolRepository = Depends(get_repo)) -> AnalyticsService:
    return AnalyticsService(repo)


def get_attempt_service(
    repo: SchoolRepository = Depends(get_repo),
    analytics: AnalyticsService = Depends(get_analytics_service),
) -> AttemptService:
    return AttemptService(repo, analytics)


def get_quiz_service(
    repo: SchoolRepository = Depends(get_repo),
    analytics: AnalyticsService = Depends(get_analytics_service),
) -> QuizService:
    return QuizService(repo, analytics)


def get_quiz_generator(llm: LLMClient = Depends(get_llm)) -> QuizGenerator:
    return QuizGenerator(llm, settings.llm_model)


def get_announcement_service(
    repo: SchoolRepository = Depends(get_repo),
    email: EmailClient = Depends(get_email),
) -> AnnouncementService:
    return AnnouncementService(
        repo,
        email,
        app_url=settings.app_url,
        batch_size=settings.email_batch_size,
        batch_pause_seconds=settings.email_batch_pause_seconds,
    )
