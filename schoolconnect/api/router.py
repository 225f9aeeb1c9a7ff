from fastapi import APIRouter

from schoolconnect.api.announcements import router as announcements_router
from schoolconnect.api.attempts import router as attempts_router
from schoolconnect.api.auth import router as auth_router
from schoolconnect.api.quizzes import router as quizzes_router

router = APIRouter()
router.include_router(auth_router)
router.include_router(quizzes_router)
router.include_router(attempts_router)
router.include_router(announcements_router)
