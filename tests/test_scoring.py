import pytest

from lms.assessments import scoring
from tests.factories import sample_questions


@pytest.fixture
def questions():
    return sample_questions()


def test_multiple_choice_needs_exact_set(questions):
    q1 = questions[0]
    assert scoring.grade_answer(q1, ["Q1A"]) == (True, 5)
    assert scoring.grade_answer(q1, ["Q1A", "Q1B"]) == (False, 0)
    assert scoring.grade_answer(q1, []) == (False, 0)


def test_multiple_choice_with_several_correct_options():
    question = {
        "question_id": "QM",
        "type": "multiple-choice",
        "points": 3,
        "options": [
            {"option_id": "A", "is_correct": True},
            {"option_id": "B", "is_correct": True},
            {"option_id": "C", "is_correct": False},
        ],
    }
    assert scoring.grade_answer(question, ["B", "A"]) == (True, 3)
    assert scoring.grade_answer(question, ["A"]) == (False, 0)
    # repeated ids collapse to the same selection
    assert scoring.grade_answer(question, ["A", "A", "B"]) == (True, 3)


def test_true_false_single_match(questions):
    q2 = questions[1]
    assert scoring.grade_answer(q2, ["Q2T"]) == (True, 5)
    assert scoring.grade_answer(q2, ["Q2F"]) == (False, 0)
    assert scoring.grade_answer(q2, ["Q2T", "Q2F"]) == (False, 0)


def test_unknown_question_grades_zero():
    assert scoring.grade_answer(None, ["anything"]) == (False, 0)


def test_grade_answers_sums_points(questions):
    result = scoring.grade_answers(questions, [
        {"question_id": "Q1", "selected_options": ["Q1A"]},
        {"question_id": "Q2", "selected_options": ["Q2F"]},
        {"question_id": "NOPE", "selected_options": ["X"]},
    ])

    assert result["score"] == 5
    assert [a["is_correct"] for a in result["answers"]] == [True, False, False]
    assert result["answers"][2]["points_earned"] == 0


def test_grading_is_deterministic(questions):
    answers = [
        {"question_id": "Q1", "selected_options": ["Q1A"]},
        {"question_id": "Q2", "selected_options": ["Q2T"]},
    ]
    first = scoring.grade_answers(questions, answers)
    for _ in range(5):
        assert scoring.grade_answers(questions, answers) == first


@pytest.mark.parametrize("score,total,expected", [
    (10, 10, 100),
    (5, 10, 50),
    (1, 3, 33),
    (2, 3, 67),
    (1, 8, 13),  # 12.5 rounds half up
    (3, 0, 0),
])
def test_percentage(score, total, expected):
    assert scoring.percentage(score, total) == expected


def test_passing_is_inclusive():
    assert scoring.is_passing(70, 70)
    assert not scoring.is_passing(69, 70)
