from datetime import timedelta

import pytest

from schoolconnect.models import QuizAnalytics, QuizAttempt, QuizSettings
from schoolconnect.models.base import utcnow
from schoolconnect.services.analytics import (
    compute_statistics,
    compute_student_progress,
    fold_analytics,
    percentage_of,
    round_half_up,
)
from tests.conftest import make_quiz


def completed_attempt(quiz, student, pct, minutes, number=1, started=None):
    return QuizAttempt(
        quiz=quiz.id,
        student=student,
        attempt_number=number,
        status="completed",
        score=round(pct * quiz.total_points / 100),
        max_score=quiz.total_points,
        percentage=pct,
        time_spent_minutes=minutes,
        started_at=started or utcnow(),
        completed_at=utcnow(),
    )


def test_fold_two_submissions():
    first = fold_analytics(QuizAnalytics(), 80, 10)
    second = fold_analytics(first, 60, 20)

    assert first == QuizAnalytics(total_attempts=1, average_score=80, average_time_minutes=10, completion_rate=100)
    assert second.total_attempts == 2
    assert second.average_score == 70
    assert second.average_time_minutes == 15
    assert second.completion_rate == 100


def test_fold_rounds_to_two_decimals():
    folded = fold_analytics(fold_analytics(fold_analytics(QuizAnalytics(), 100, 1), 0, 1), 0, 2)
    assert folded.average_score == 33.33
    assert folded.average_time_minutes == 1.33


@pytest.mark.parametrize(
    "score,max_score,expected",
    [(4, 5, 80), (1, 3, 33), (1, 8, 13), (5, 5, 100), (0, 5, 0), (1, 0, 0)],
)
def test_percentage_rounds_half_up(score, max_score, expected):
    assert percentage_of(score, max_score) == expected


def test_round_half_up_is_not_bankers():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.125, 2) == 0.13


def test_statistics_for_no_attempts():
    stats = compute_statistics(make_quiz("t"), [])
    assert stats.total_attempts == 0
    assert stats.average_score == 0
    assert stats.pass_rate == 0
    assert stats.attempts == []


def test_statistics_match_running_aggregate():
    quiz = make_quiz("t")
    completed = [completed_attempt(quiz, "s1", 80, 10), completed_attempt(quiz, "s2", 60, 20)]

    stats = compute_statistics(quiz, completed)
    running = fold_analytics(fold_analytics(QuizAnalytics(), 80, 10), 60, 20)

    assert stats.average_score == running.average_score == 70
    assert stats.average_time_minutes == running.average_time_minutes == 15
    assert stats.unique_students == 2
    assert stats.highest_score == 80
    assert stats.lowest_score == 60


def test_pass_rate_defaults_to_seventy():
    quiz = make_quiz("t")
    completed = [completed_attempt(quiz, "s1", 70, 5), completed_attempt(quiz, "s2", 69, 5)]
    assert compute_statistics(quiz, completed).pass_rate == 50


def test_zero_passing_score_is_honored():
    quiz = make_quiz("t", settings=QuizSettings(passing_score=0))
    completed = [completed_attempt(quiz, "s1", 0, 5)]
    assert compute_statistics(quiz, completed).pass_rate == 100


def test_student_progress_picks_best_attempt():
    quiz = make_quiz("t", settings=QuizSettings(max_attempts=2))
    earlier = utcnow() - timedelta(days=1)
    completed = [
        completed_attempt(quiz, "s1", 40, 5, number=2),
        completed_attempt(quiz, "s1", 80, 5, number=1, started=earlier),
    ]

    progress = compute_student_progress(quiz, 2, completed, include_attempts=True)

    assert progress.best_percentage == 80
    assert progress.attempt_count == 2
    assert progress.can_retake is False
    assert progress.last_attempt_at == completed[0].started_at
    assert [a.percentage for a in progress.attempts] == [80, 40]
    assert all(a.student is None for a in progress.attempts)


def test_student_progress_without_attempts():
    progress = compute_student_progress(make_quiz("t"), 0, [])
    assert progress.best_score == 0
    assert progress.can_retake
    assert progress.last_attempt_at is None
    assert progress.attempts is None


async def test_record_submission_folds_into_stored_quiz(repo, analytics):
    quiz = make_quiz("t")
    await repo.create_quiz(quiz)

    await analytics.record_submission(quiz.id, 80, 10)
    await analytics.record_submission(quiz.id, 60, 20)

    stored = (await repo.get_quiz(quiz.id)).analytics
    assert (stored.total_attempts, stored.average_score, stored.average_time_minutes) == (2, 70, 15)


async def test_record_submission_for_deleted_quiz(analytics):
    assert await analytics.record_submission("gone", 50, 1) is None
