"""
Quiz taking, submission and result endpoints.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cybertrain.config import get_db
from cybertrain.models.models import LessonProgress, ProgressStatus, Quiz, QuizResult, User
from cybertrain.routes.training_routes import get_accessible_module, learner
from cybertrain.schemas.quiz_schemas import (
    AnswerBreakdown,
    OptionForTaking,
    PreviousResult,
    QuestionForTaking,
    QuizForTakingResponse,
    QuizResultDetailResponse,
    QuizSubmission,
    QuizSubmitResponse,
)
from cybertrain.services import quiz_service
from cybertrain.services.quiz_service import SubmittedAnswer
from cybertrain.utils.common import iso_format
from cybertrain.utils.errors import NotFoundError

logger = logging.getLogger(__name__)

quiz_routes = APIRouter()


def _accessible_quiz(db: Session, user: User, quiz_id: int) -> Quiz:
    quiz = quiz_service.get_active_quiz(db, quiz_id)
    if not quiz.lesson.is_active:
        raise NotFoundError("Quiz not found")
    get_accessible_module(db, user, quiz.lesson.module_id)
    return quiz


@quiz_routes.get("/quizzes/{quiz_id}", response_model=QuizForTakingResponse)
async def take_quiz(
    quiz_id: int,
    current_user: User = Depends(learner),
    db: Session = Depends(get_db),
) -> QuizForTakingResponse:
    """Questions in order with options shuffled on every request."""
    _accessible_quiz(db, current_user, quiz_id)
    quiz, questions = quiz_service.quiz_for_taking(db, quiz_id)
    previous = quiz_service.latest_result(db, current_user.id, quiz.id)
    return QuizForTakingResponse(
        id=quiz.id,
        lesson_id=quiz.lesson_id,
        module_id=quiz.lesson.module_id,
        title=quiz.title,
        description=quiz.description,
        passing_score=quiz.passing_score,
        questions=[
            QuestionForTaking(
                id=q.id,
                text=q.text,
                order=q.order,
                options=[OptionForTaking(id=o.id, text=o.text) for o in options],
            )
            for q, options in questions
        ],
        previous_result=PreviousResult(
            id=previous.id,
            score=previous.score,
            passed=bool(previous.passed),
            completed_at=iso_format(previous.completed_at),
        ) if previous else None,
    )


@quiz_routes.post("/quizzes/{quiz_id}/submit", response_model=QuizSubmitResponse)
async def submit_quiz(
    quiz_id: int,
    body: QuizSubmission,
    current_user: User = Depends(learner),
    db: Session = Depends(get_db),
) -> QuizSubmitResponse:
    quiz = _accessible_quiz(db, current_user, quiz_id)
    result = quiz_service.grade_submission(
        db,
        quiz.id,
        current_user.id,
        [SubmittedAnswer(a.question_id, a.selected_option_id) for a in body.answers],
    )
    lesson_progress = (
        db.query(LessonProgress)
        .filter(LessonProgress.user_id == current_user.id, LessonProgress.lesson_id == quiz.lesson_id)
        .first()
    )
    return QuizSubmitResponse(
        result_id=result.id,
        quiz_id=quiz.id,
        score=result.score,
        passed=bool(result.passed),
        passing_score=quiz.passing_score,
        lesson_completed=lesson_progress is not None and lesson_progress.status == ProgressStatus.COMPLETED,
    )


@quiz_routes.get("/quiz-results/{result_id}", response_model=QuizResultDetailResponse)
async def quiz_result(
    result_id: int,
    current_user: User = Depends(learner),
    db: Session = Depends(get_db),
) -> QuizResultDetailResponse:
    """One of the learner's own results with a per-question breakdown."""
    result = (
        db.query(QuizResult)
        .filter(QuizResult.id == result_id, QuizResult.user_id == current_user.id)
        .first()
    )
    if result is None:
        raise NotFoundError("Quiz result not found")
    quiz = result.quiz
    answers = sorted(result.answers, key=lambda a: (a.question.order, a.question_id))
    return QuizResultDetailResponse(
        id=result.id,
        quiz_id=quiz.id,
        quiz_title=quiz.title,
        lesson_id=quiz.lesson_id,
        module_id=quiz.lesson.module_id,
        score=result.score,
        passed=bool(result.passed),
        passing_score=quiz.passing_score,
        completed_at=iso_format(result.completed_at),
        correct_answers=sum(1 for a in answers if a.is_correct),
        total_questions=len(answers),
        answers=[
            AnswerBreakdown(
                question_id=a.question_id,
                question_text=a.question.text,
                selected_option_id=a.selected_option_id,
                selected_option_text=a.selected_option.text if a.selected_option else None,
                correct_option_ids=[o.id for o in a.question.options if o.is_correct],
                is_correct=bool(a.is_correct),
            )
            for a in answers
        ],
    )
