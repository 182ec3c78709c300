"""
Answer grading shared by tests and practice quizzes
Deterministic: same questions + same answers -> same result
"""

import math
from typing import Dict, Iterable, List, Optional, Tuple

from lms.assessments.models import QuestionType


def correct_option_ids(question: dict) -> set:
    return {o["option_id"] for o in question.get("options", []) if o.get("is_correct")}


def grade_answer(question: Optional[dict], selected_options: Iterable[str]) -> Tuple[bool, int]:
    """
    (question, selected option ids) -> (is_correct, points_earned)
    Unknown questions grade as incorrect with zero points
    """
    if not question:
        return False, 0

    selected = set(selected_options or [])
    correct = correct_option_ids(question)
    if not correct:
        return False, 0

    if question.get("type") == QuestionType.TRUE_FALSE.value:
        is_correct = len(selected) == 1 and selected == correct
    else:
        is_correct = selected == correct

    return is_correct, (question.get("points", 1) if is_correct else 0)


def grade_answers(questions: List[dict], answers: List[dict]) -> Dict:
    """
    Grade every submitted answer against the question bank
    Returns {"answers": [graded...], "score": int}
    """
    by_id = {q["question_id"]: q for q in questions}
    graded = []
    score = 0

    for answer in answers:
        selected = list(answer.get("selected_options") or [])
        is_correct, points = grade_answer(by_id.get(answer.get("question_id")), selected)
        score += points
        graded.append({
            "question_id": answer.get("question_id"),
            "selected_options": selected,
            "text_answer": answer.get("text_answer"),
            "is_correct": is_correct,
            "points_earned": points,
        })

    return {"answers": graded, "score": score}


def percentage(score: int, total_possible: int) -> int:
    """Rounded half-up percentage; 0 when nothing is gradable"""
    if not total_possible or total_possible <= 0:
        return 0
    return int(math.floor(100 * score / total_possible + 0.5))


def is_passing(percentage_score: int, passing_score: int) -> bool:
    return percentage_score >= passing_score
