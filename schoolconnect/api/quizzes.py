from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status

from schoolconnect.auth.dependencies import get_current_user, require_role
from schoolconnect.errors import ValidationFailed
from schoolconnect.models import GenerateQuizRequest, QuizCreate, QuizUpdate, User
from schoolconnect.services.attempts import AttemptService
from schoolconnect.services.quiz_generation import QuizGenerator
from schoolconnect.services.quizzes import QuizService
from schoolconnect.wiring import get_attempt_service, get_quiz_generator, get_quiz_service

router = APIRouter(prefix="/quizzes", tags=["quizzes"])

teacher_only = require_role(["teacher"], "Only teachers can access this endpoint")


@router.get("")
async def list_quizzes(
    author: bool = False,
    status_filter: Optional[str] = Query(None, alias="status"),
    subject: Optional[str] = None,
    grade_level: Optional[str] = Query(None, alias="gradeLevel"),
    user: User = Depends(get_current_user),
    quizzes: QuizService = Depends(get_quiz_service),
) -> dict:
    items = await quizzes.list_for(
        user, authored=author, status=status_filter, subject=subject, grade_level=grade_level
    )
    return {"success": True, "quizzes": items}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_quiz(
    req: QuizCreate,
    user: User = Depends(get_current_user),
    quizzes: QuizService = Depends(get_quiz_service),
) -> dict:
    quiz = await quizzes.create(req, user)
    return {"success": True, "quiz": quiz.to_wire()}


# Declared before /{quiz_id} so "generate" is not taken for an id.
@router.post("/generate")
async def generate_quiz(
    req: GenerateQuizRequest,
    user: User = Depends(require_role(["teacher"], "Only teachers can generate quizzes")),
    generator: QuizGenerator = Depends(get_quiz_generator),
) -> dict:
    quiz = await generator.generate(req)
    return {"success": True, "quiz": quiz.to_wire()}


@router.get("/generate")
async def suggest_topics(
    topic: Optional[str] = None,
    user: User = Depends(teacher_only),
    generator: QuizGenerator = Depends(get_quiz_generator),
) -> dict:
    if not topic or not topic.strip():
        raise ValidationFailed("Topic parameter is required")
    return {"success": True, "suggestions": await generator.suggest_topics(topic.strip())}


@router.get("/{quiz_id}")
async def get_quiz(
    quiz_id: str,
    user: User = Depends(get_current_user),
    quizzes: QuizService = Depends(get_quiz_service),
) -> dict:
    return {"success": True, "quiz": await quizzes.detail(quiz_id, user)}


@router.patch("/{quiz_id}")
async def update_quiz(
    quiz_id: str,
    req: QuizUpdate,
    user: User = Depends(get_current_user),
    quizzes: QuizService = Depends(get_quiz_service),
) -> dict:
    quiz = await quizzes.update(quiz_id, req, user)
    return {"success": True, "quiz": quiz.to_wire()}


@router.delete("/{quiz_id}")
async def delete_quiz(
    quiz_id: str,
    user: User = Depends(get_current_user),
    quizzes: QuizService = Depends(get_quiz_service),
) -> dict:
    message = await quizzes.delete(quiz_id, user)
    return {"success": True, "message": message}


@router.post("/{quiz_id}/attempt")
async def start_attempt(
    quiz_id: str,
    request: Request,
    response: Response,
    user: User = Depends(get_current_user),
    attempts: AttemptService = Depends(get_attempt_service),
) -> dict:
    """Start a new attempt (201) or resume the open one (200)."""
    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
    attempt, created = await attempts.start_attempt(quiz_id, user, ip, request.headers.get("user-agent"))
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return {"success": True, "attempt": attempt.to_wire()}


@router.get("/{quiz_id}/attempt")
async def get_attempts(
    quiz_id: str,
    current: bool = False,
    user: User = Depends(get_current_user),
    attempts: AttemptService = Depends(get_attempt_service),
) -> dict:
    if current:
        attempt = await attempts.current_attempt(quiz_id, user)
        return {"success": True, "attempt": attempt.to_wire() if attempt else None}
    history = await attempts.attempt_history(quiz_id, user)
    return {"success": True, "attempts": [a.to_wire() for a in history]}
