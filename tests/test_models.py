import pytest
from pydantic import ValidationError

from lms.assessments import models
from lms.certificates import service as certificate_service
from lms.quizzes import models as quiz_models
from tests.factories import COURSE_ID, sample_questions


def test_question_requires_a_correct_option():
    with pytest.raises(ValidationError):
        models.Question(text="Pick one", options=[{"text": "a"}, {"text": "b"}])


def test_true_false_needs_two_options_and_one_correct():
    with pytest.raises(ValidationError):
        models.Question(text="Sky is blue", type="true-false", options=[
            {"text": "True", "is_correct": True},
            {"text": "False", "is_correct": True},
        ])
    with pytest.raises(ValidationError):
        models.Question(text="Sky is blue", type="true-false", options=[
            {"text": "True", "is_correct": True},
        ])


def test_question_points_at_least_one():
    with pytest.raises(ValidationError):
        models.Question(text="q", points=0, options=[{"text": "a", "is_correct": True}])


def test_ids_are_generated():
    question = models.Question(text="q", options=[{"text": "a", "is_correct": True}])
    assert question.question_id.startswith("Q_")
    assert question.options[0].option_id.startswith("OPT_")


def test_total_points_is_reconciled():
    doc = models.TestDocument(
        course_id=COURSE_ID, title="t", total_points=999, questions=sample_questions()
    ).model_dump()
    assert doc["total_points"] == 10
    assert doc["status"] == "draft"
    assert doc["questions"][1]["type"] == "true-false"


def test_test_needs_questions():
    with pytest.raises(ValidationError):
        models.TestDocument(course_id=COURSE_ID, title="t", questions=[])


def test_quiz_rejects_duplicate_question_ids():
    questions = sample_questions()
    questions[1]["question_id"] = questions[0]["question_id"]
    with pytest.raises(ValidationError):
        quiz_models.Quiz(course_id=COURSE_ID, title="Warm-up", questions=questions)


def test_certificate_id_format():
    ids = {certificate_service.generate_certificate_id() for _ in range(200)}
    assert len(ids) == 200
    for value in ids:
        assert certificate_service.validate_certificate_id(value)
    assert not certificate_service.validate_certificate_id("CERT-123456")
    assert not certificate_service.validate_certificate_id("")
