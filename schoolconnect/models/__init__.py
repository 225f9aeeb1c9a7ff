from schoolconnect.models.analytics import AttemptSummary, QuizStatistics, StudentProgress
from schoolconnect.models.announcement import (
    Announcement,
    AnnouncementAnalytics,
    AnnouncementCreate,
    AnnouncementPriority,
    AnnouncementRecipient,
    AnnouncementStatus,
    AnnouncementUpdate,
    Audience,
)
from schoolconnect.models.attempt import (
    AttemptResult,
    AttemptStatus,
    ProgressSaveRequest,
    QuestionResponse,
    QuizAttempt,
    ResponseInput,
    SubmitRequest,
)
from schoolconnect.models.quiz import (
    Difficulty,
    GenerateQuizRequest,
    Question,
    QuestionType,
    Quiz,
    QuizAnalytics,
    QuizCreate,
    QuizSettings,
    QuizStatus,
    QuizUpdate,
)
from schoolconnect.models.user import User, UserRole

__all__ = [
    "Announcement",
    "AnnouncementAnalytics",
    "AnnouncementCreate",
    "AnnouncementPriority",
    "AnnouncementRecipient",
    "AnnouncementStatus",
    "AnnouncementUpdate",
    "AttemptResult",
    "AttemptStatus",
    "AttemptSummary",
    "Audience",
    "Difficulty",
    "GenerateQuizRequest",
    "ProgressSaveRequest",
    "Question",
    "QuestionResponse",
    "QuestionType",
    "Quiz",
    "QuizAnalytics",
    "QuizAttempt",
    "QuizCreate",
    "QuizSettings",
    "QuizStatistics",
    "QuizStatus",
    "QuizUpdate",
    "ResponseInput",
    "StudentProgress",
    "SubmitRequest",
    "User",
    "UserRole",
]
