"""
Quiz grading.

A submission must answer every question of the quiz exactly once with one of that
question's own options; anything else is rejected before a row is written. The score is
the truncated integer percentage of correct answers.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from cybertrain.models.models import (
    ProgressStatus,
    Question,
    QuestionAnswer,
    QuestionOption,
    Quiz,
    QuizResult,
)
from cybertrain.services import certificate_service
from cybertrain.services.progress_service import ProgressService
from cybertrain.utils.common import atomic
from cybertrain.utils.errors import NotFoundError, ValidationFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmittedAnswer:
    question_id: int
    selected_option_id: int


def score_percentage(correct: int, total: int) -> int:
    """Integer percentage, truncated (2 of 3 is 66)."""
    if total <= 0:
        return 0
    return (correct * 100) // total


def get_active_quiz(db: Session, quiz_id: int) -> Quiz:
    quiz = db.query(Quiz).filter(Quiz.id == quiz_id, Quiz.is_active == True).first()  # noqa: E712
    if quiz is None:
        raise NotFoundError("Quiz not found")
    return quiz


def ordered_questions(quiz: Quiz) -> list[Question]:
    return sorted(quiz.questions, key=lambda q: (q.order, q.id))


def shuffled_options(question: Question, rng: Optional[random.Random] = None) -> list[QuestionOption]:
    """Options in a fresh random order for each rendering of the quiz."""
    options = list(question.options)
    (rng or random).shuffle(options)
    return options


def quiz_for_taking(
    db: Session, quiz_id: int, rng: Optional[random.Random] = None
) -> tuple[Quiz, list[tuple[Question, list[QuestionOption]]]]:
    """Active quiz with its questions in order, each paired with freshly shuffled options."""
    quiz = get_active_quiz(db, quiz_id)
    return quiz, [(q, shuffled_options(q, rng)) for q in ordered_questions(quiz)]


def _validate(quiz: Quiz, answers: list[SubmittedAnswer]) -> dict[int, QuestionOption]:
    questions = {q.id: q for q in quiz.questions}
    selected: dict[int, QuestionOption] = {}
    for answer in answers:
        question = questions.get(answer.question_id)
        if question is None:
            raise ValidationFailure(f"Question {answer.question_id} does not belong to this quiz.")
        if answer.question_id in selected:
            raise ValidationFailure(f"Question {answer.question_id} was answered more than once.")
        option = next((o for o in question.options if o.id == answer.selected_option_id), None)
        if option is None:
            raise ValidationFailure(
                f"Option {answer.selected_option_id} is not an answer to question {answer.question_id}."
            )
        selected[answer.question_id] = option
    missing = set(questions) - set(selected)
    if missing:
        raise ValidationFailure("Please answer all questions before submitting.")
    return selected


def grade_submission(
    db: Session,
    quiz_id: int,
    user_id: int,
    answers: Iterable[SubmittedAnswer],
) -> QuizResult:
    """
    Grade one attempt and persist it with a per-question answer record.

    Every attempt produces a new result. A pass marks the quiz's lesson Completed through
    the progress tracker, which never downgrades a lesson. The result and the lesson change
    commit together.
    """
    quiz = get_active_quiz(db, quiz_id)
    selected = _validate(quiz, list(answers))

    total = len(quiz.questions)
    correct = sum(1 for option in selected.values() if option.is_correct)
    score = score_percentage(correct, total)
    passed = score >= quiz.passing_score

    result = QuizResult(
        user_id=user_id,
        quiz_id=quiz.id,
        score=score,
        passed=passed,
        completed_at=datetime.utcnow(),
    )
    for question in ordered_questions(quiz):
        option = selected[question.id]
        result.answers.append(
            QuestionAnswer(
                question_id=question.id,
                selected_option_id=option.id,
                is_correct=bool(option.is_correct),
            )
        )
    module_completed = False
    with atomic(db):
        db.add(result)
        db.flush()
        if passed:
            _, module_completed = ProgressService(db).apply_lesson_progress(
                user_id, quiz.lesson_id, ProgressStatus.COMPLETED
            )
    db.refresh(result)
    logger.info(
        "Quiz graded user=%s quiz=%s score=%s/%s passed=%s",
        user_id, quiz.id, correct, total, passed,
    )

    if module_completed:
        certificate_service.check_and_issue_comprehensive_certificate(db, user_id)
    return result


def latest_result(db: Session, user_id: int, quiz_id: int) -> Optional[QuizResult]:
    return (
        db.query(QuizResult)
        .filter(QuizResult.user_id == user_id, QuizResult.quiz_id == quiz_id)
        .order_by(QuizResult.completed_at.desc(), QuizResult.id.desc())
        .first()
    )


def recent_results(db: Session, user_id: int, limit: int = 5) -> list[QuizResult]:
    return (
        db.query(QuizResult)
        .filter(QuizResult.user_id == user_id)
        .order_by(QuizResult.completed_at.desc(), QuizResult.id.desc())
        .limit(limit)
        .all()
    )
