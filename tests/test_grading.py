import pytest

from schoolconnect.models import Question
from schoolconnect.models.attempt import BooleanAnswer, ChoiceAnswer, TextAnswer
from schoolconnect.services.grading import (
    INCORRECT,
    GradeResult,
    coerce_answer,
    grade_response,
    short_answer_matches,
)


@pytest.fixture
def mc_question():
    return Question(
        type="multiple_choice",
        question="Pick the third option",
        options=["A", "B", "C", "D"],
        correct_answer=2,
        points=2,
    )


@pytest.fixture
def sa_question():
    return Question(type="short_answer", question="Capital of France?", correct_answer="Paris", points=3)


@pytest.fixture
def tf_question():
    return Question(type="true_false", question="Water is wet.", correct_answer=True, points=1)


def test_multiple_choice_exact_index(mc_question):
    assert grade_response(mc_question, 2) == GradeResult(True, 2)
    assert grade_response(mc_question, 1) == INCORRECT


def test_boolean_never_selects_an_option(mc_question):
    option_one = mc_question.model_copy(update={"correct_answer": 1})
    assert grade_response(option_one, True) == INCORRECT
    assert coerce_answer("multiple_choice", True) is None


@pytest.mark.parametrize(
    "answer,expected",
    [
        ("  paris  ", True),
        ("PARIS", True),
        ("Paris, France", True),
        ("London", False),
        ("", False),
        ("   ", False),
    ],
)
def test_short_answer_normalization(sa_question, answer, expected):
    result = grade_response(sa_question, answer)
    assert result.is_correct is expected
    assert result.points_earned == (3 if expected else 0)


def test_short_answer_numeric_answer_read_as_text():
    question = Question(type="short_answer", question="6 x 7?", correct_answer="42")
    assert grade_response(question, 42).is_correct


def test_true_false_requires_boolean(tf_question):
    assert grade_response(tf_question, True) == GradeResult(True, 1)
    assert grade_response(tf_question, False) == INCORRECT
    assert grade_response(tf_question, "true") == INCORRECT
    assert grade_response(tf_question, 1) == INCORRECT


def test_missing_answer_or_question_is_incorrect(mc_question):
    assert grade_response(mc_question, None) == INCORRECT
    assert grade_response(None, 2) == INCORRECT


def test_grading_is_deterministic(sa_question):
    results = {grade_response(sa_question, "paris") for _ in range(5)}
    assert results == {GradeResult(True, 3)}


def test_coerce_answer_builds_tagged_answers():
    assert coerce_answer("multiple_choice", 0) == ChoiceAnswer(index=0)
    assert coerce_answer("true_false", False) == BooleanAnswer(value=False)
    assert coerce_answer("short_answer", "x") == TextAnswer(text="x")
    assert coerce_answer("short_answer", None) is None


def test_substring_match_is_symmetric():
    assert short_answer_matches("photosynthesis", "Photosynthesis in plants")
    assert short_answer_matches("Photosynthesis in plants", "photosynthesis")
    assert not short_answer_matches("mitosis", "photosynthesis")


@pytest.mark.parametrize("raw", [[2], {"index": 2}, 2.5, ["Paris"], {"value": True}])
def test_unreadable_answers_are_incorrect(mc_question, tf_question, sa_question, raw):
    for question in (mc_question, tf_question, sa_question):
        assert coerce_answer(question.type, raw) is None
        assert grade_response(question, raw) == INCORRECT
