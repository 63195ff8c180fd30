"""
Quiz taking and result schemas. Option correctness is never part of the taking view.
"""

from pydantic import BaseModel
from typing import Optional


class OptionForTaking(BaseModel):
    id: int
    text: str


class QuestionForTaking(BaseModel):
    id: int
    text: str
    order: int
    options: list[OptionForTaking]


class PreviousResult(BaseModel):
    id: int
    score: int
    passed: bool
    completed_at: str


class QuizForTakingResponse(BaseModel):
    id: int
    lesson_id: int
    module_id: int
    title: str
    description: Optional[str] = None
    passing_score: int
    questions: list[QuestionForTaking]
    previous_result: Optional[PreviousResult] = None


class SubmittedAnswerIn(BaseModel):
    question_id: int
    selected_option_id: int


class QuizSubmission(BaseModel):
    answers: list[SubmittedAnswerIn]


class QuizSubmitResponse(BaseModel):
    result_id: int
    quiz_id: int
    score: int
    passed: bool
    passing_score: int
    lesson_completed: bool


class AnswerBreakdown(BaseModel):
    question_id: int
    question_text: str
    selected_option_id: Optional[int] = None
    selected_option_text: Optional[str] = None
    correct_option_ids: list[int]
    is_correct: bool


class QuizResultDetailResponse(BaseModel):
    id: int
    quiz_id: int
    quiz_title: str
    lesson_id: int
    module_id: int
    score: int
    passed: bool
    passing_score: int
    completed_at: str
    correct_answers: int
    total_questions: int
    answers: list[AnswerBreakdown]
