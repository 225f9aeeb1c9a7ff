from __future__ import annotations

from fastapi import APIRouter, Depends

from schoolconnect.auth.dependencies import get_current_user
from schoolconnect.models import AttemptResult, ProgressSaveRequest, SubmitRequest, User
from schoolconnect.services.attempts import AttemptService
from schoolconnect.wiring import get_attempt_service

router = APIRouter(prefix="/quiz-attempts", tags=["attempts"])


@router.post("/{attempt_id}/submit")
async def submit_attempt(
    attempt_id: str,
    req: SubmitRequest,
    user: User = Depends(get_current_user),
    attempts: AttemptService = Depends(get_attempt_service),
) -> dict:
    """Grade and finalize. The result carries per-question correctness."""
    attempt = await attempts.submit(attempt_id, user, req)
    return {"success": True, "attempt": AttemptResult.from_attempt(attempt).to_wire()}


@router.patch("/{attempt_id}/submit")
async def save_progress(
    attempt_id: str,
    req: ProgressSaveRequest,
    user: User = Depends(get_current_user),
    attempts: AttemptService = Depends(get_attempt_service),
) -> dict:
    await attempts.save_progress(attempt_id, user, req)
    return {"success": True, "message": "Progress saved"}
