"""
Admin endpoints for training content: modules, lessons, quizzes and questions.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cybertrain.config import get_db
from cybertrain.models.models import Lesson, Module, Question, QuestionAnswer, QuestionOption, Quiz, User
from cybertrain.schemas.admin_schemas import (
    LessonCreate,
    LessonResponse,
    LessonUpdate,
    ModuleCreate,
    ModuleResponse,
    ModuleUpdate,
    OptionIn,
    OptionResponse,
    QuestionCreate,
    QuestionResponse,
    QuestionUpdate,
    QuizCreate,
    QuizResponse,
    QuizUpdate,
)
from cybertrain.schemas.user_schemas import MessageResponse
from cybertrain.services import lesson_ordering
from cybertrain.utils.auth import require_action
from cybertrain.utils.common import get_or_404, iso_format, iso_or_none
from cybertrain.utils.errors import RuleViolation
from cybertrain.utils.permissions import Action

logger = logging.getLogger(__name__)

admin_content_routes = APIRouter()

editor = require_action(Action.MANAGE_CONTENT)


# ----- modules -----

def module_response(module: Module) -> ModuleResponse:
    return ModuleResponse(
        id=module.id,
        title=module.title,
        description=module.description,
        order=module.order,
        is_active=bool(module.is_active),
        date_created=iso_format(module.date_created),
        date_modified=iso_or_none(module.date_modified),
        lesson_count=len(module.lessons),
    )


def _check_module_order(db: Session, order: int, exclude_id: int | None = None) -> None:
    query = db.query(Module.id).filter(Module.order == order)
    if exclude_id is not None:
        query = query.filter(Module.id != exclude_id)
    if query.first() is not None:
        raise RuleViolation("A module with this order already exists. Please choose a different order.")


@admin_content_routes.get("/modules", response_model=list[ModuleResponse])
async def list_modules(_: User = Depends(editor), db: Session = Depends(get_db)) -> list[ModuleResponse]:
    modules = db.query(Module).order_by(Module.order.asc(), Module.title.asc()).all()
    return [module_response(m) for m in modules]


@admin_content_routes.post("/modules", response_model=ModuleResponse, status_code=201)
async def create_module(
    body: ModuleCreate,
    current_user: User = Depends(editor),
    db: Session = Depends(get_db),
) -> ModuleResponse:
    _check_module_order(db, body.order)
    module = Module(
        title=body.title.strip(),
        description=body.description,
        order=body.order,
        is_active=body.is_active,
    )
    db.add(module)
    db.commit()
    db.refresh(module)
    logger.info("Module %s created by %s", module.id, current_user.email)
    return module_response(module)


@admin_content_routes.get("/modules/{module_id}", response_model=ModuleResponse)
async def get_module(module_id: int, _: User = Depends(editor), db: Session = Depends(get_db)) -> ModuleResponse:
    return module_response(get_or_404(db, Module, module_id))


@admin_content_routes.patch("/modules/{module_id}", response_model=ModuleResponse)
async def update_module(
    module_id: int,
    body: ModuleUpdate,
    _: User = Depends(editor),
    db: Session = Depends(get_db),
) -> ModuleResponse:
    module = get_or_404(db, Module, module_id)
    if body.order is not None and body.order != module.order:
        _check_module_order(db, body.order, exclude_id=module.id)
        module.order = body.order
    if body.title is not None:
        module.title = body.title.strip()
    if body.description is not None:
        module.description = body.description
    if body.is_active is not None:
        module.is_active = body.is_active
    module.date_modified = datetime.utcnow()
    db.commit()
    db.refresh(module)
    return module_response(module)


@admin_content_routes.delete("/modules/{module_id}", response_model=MessageResponse)
async def delete_module(
    module_id: int,
    current_user: User = Depends(editor),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Delete a module with its lessons, quizzes, assignments and progress."""
    module = get_or_404(db, Module, module_id)
    title = module.title
    db.delete(module)
    db.commit()
    logger.info("Module %s deleted by %s", module_id, current_user.email)
    return MessageResponse(message=f"Module '{title}' and all associated content has been deleted successfully.")


# ----- lessons -----

def lesson_response(lesson: Lesson) -> LessonResponse:
    return LessonResponse(
        id=lesson.id,
        module_id=lesson.module_id,
        title=lesson.title,
        content=lesson.content or "",
        order=lesson.order,
        is_active=bool(lesson.is_active),
        date_created=iso_format(lesson.date_created),
        date_modified=iso_or_none(lesson.date_modified),
        quiz_count=len(lesson.quizzes),
    )


@admin_content_routes.get("/modules/{module_id}/lessons", response_model=list[LessonResponse])
async def list_lessons(module_id: int, _: User = Depends(editor), db: Session = Depends(get_db)) -> list[LessonResponse]:
    get_or_404(db, Module, module_id)
    lessons = db.query(Lesson).filter(Lesson.module_id == module_id).order_by(Lesson.order.asc()).all()
    return [lesson_response(lesson) for lesson in lessons]


@admin_content_routes.post("/modules/{module_id}/lessons", response_model=LessonResponse, status_code=201)
async def create_lesson(
    module_id: int,
    body: LessonCreate,
    current_user: User = Depends(editor),
    db: Session = Depends(get_db),
) -> LessonResponse:
    """Create a lesson; without an explicit order it goes to the end of the module."""
    get_or_404(db, Module, module_id)
    order = body.order
    if order is None:
        order = lesson_ordering.next_lesson_order(db, module_id)
    else:
        taken = db.query(Lesson.id).filter(Lesson.module_id == module_id, Lesson.order == order).first()
        if taken is not None:
            raise RuleViolation(
                "A lesson with this order already exists in the selected module. Please choose a different order."
            )
    lesson = Lesson(
        module_id=module_id,
        title=body.title.strip(),
        content=body.content,
        order=order,
        is_active=body.is_active,
    )
    db.add(lesson)
    db.commit()
    db.refresh(lesson)
    logger.info("Lesson %s created in module %s by %s", lesson.id, module_id, current_user.email)
    return lesson_response(lesson)


@admin_content_routes.get("/lessons/{lesson_id}", response_model=LessonResponse)
async def get_lesson(lesson_id: int, _: User = Depends(editor), db: Session = Depends(get_db)) -> LessonResponse:
    return lesson_response(get_or_404(db, Lesson, lesson_id))


@admin_content_routes.patch("/lessons/{lesson_id}", response_model=LessonResponse)
async def update_lesson(
    lesson_id: int,
    body: LessonUpdate,
    _: User = Depends(editor),
    db: Session = Depends(get_db),
) -> LessonResponse:
    """Edit a lesson. Changing its module or order shifts the sibling lessons to keep 1..n."""
    lesson = get_or_404(db, Lesson, lesson_id)
    target_module_id = body.module_id if body.module_id is not None else lesson.module_id
    if target_module_id != lesson.module_id:
        get_or_404(db, Module, target_module_id)
    if target_module_id != lesson.module_id or (body.order is not None and body.order != lesson.order):
        order = body.order if body.order is not None else lesson_ordering.next_lesson_order(db, target_module_id)
        lesson_ordering.move_lesson(db, lesson, target_module_id, order)
    if body.title is not None:
        lesson.title = body.title.strip()
    if body.content is not None:
        lesson.content = body.content
    if body.is_active is not None:
        lesson.is_active = body.is_active
    lesson.date_modified = datetime.utcnow()
    db.commit()
    db.refresh(lesson)
    return lesson_response(lesson)


@admin_content_routes.delete("/lessons/{lesson_id}", response_model=MessageResponse)
async def delete_lesson(
    lesson_id: int,
    current_user: User = Depends(editor),
    db: Session = Depends(get_db),
) -> MessageResponse:
    lesson = get_or_404(db, Lesson, lesson_id)
    module_id, order, title = lesson.module_id, lesson.order, lesson.title
    db.delete(lesson)
    db.flush()
    lesson_ordering.close_gap(db, module_id, order)
    db.commit()
    logger.info("Lesson %s deleted by %s", lesson_id, current_user.email)
    return MessageResponse(message=f"Lesson '{title}' has been deleted successfully.")


# ----- quizzes -----

def quiz_response(quiz: Quiz) -> QuizResponse:
    return QuizResponse(
        id=quiz.id,
        lesson_id=quiz.lesson_id,
        title=quiz.title,
        description=quiz.description,
        passing_score=quiz.passing_score,
        is_active=bool(quiz.is_active),
        date_created=iso_format(quiz.date_created),
        date_modified=iso_or_none(quiz.date_modified),
        question_count=len(quiz.questions),
        attempt_count=len(quiz.results),
    )


def _quiz_lesson(db: Session, lesson_id: int) -> Lesson:
    lesson = db.get(Lesson, lesson_id)
    if lesson is None:
        raise RuleViolation("The selected lesson was not found.")
    if not lesson.is_active:
        raise RuleViolation("Cannot assign a quiz to an inactive lesson.")
    return lesson


@admin_content_routes.get("/quizzes", response_model=list[QuizResponse])
async def list_quizzes(
    lesson_id: int | None = None,
    _: User = Depends(editor),
    db: Session = Depends(get_db),
) -> list[QuizResponse]:
    query = db.query(Quiz)
    if lesson_id is not None:
        query = query.filter(Quiz.lesson_id == lesson_id)
    return [quiz_response(q) for q in query.order_by(Quiz.id.asc()).all()]


@admin_content_routes.post("/quizzes", response_model=QuizResponse, status_code=201)
async def create_quiz(
    body: QuizCreate,
    current_user: User = Depends(editor),
    db: Session = Depends(get_db),
) -> QuizResponse:
    lesson = _quiz_lesson(db, body.lesson_id)
    quiz = Quiz(
        lesson_id=lesson.id,
        title=body.title.strip(),
        description=body.description,
        passing_score=body.passing_score,
        is_active=body.is_active,
    )
    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    logger.info("Quiz %s created for lesson %s by %s", quiz.id, lesson.id, current_user.email)
    return quiz_response(quiz)


@admin_content_routes.get("/quizzes/{quiz_id}", response_model=QuizResponse)
async def get_quiz(quiz_id: int, _: User = Depends(editor), db: Session = Depends(get_db)) -> QuizResponse:
    return quiz_response(get_or_404(db, Quiz, quiz_id))


@admin_content_routes.patch("/quizzes/{quiz_id}", response_model=QuizResponse)
async def update_quiz(
    quiz_id: int,
    body: QuizUpdate,
    _: User = Depends(editor),
    db: Session = Depends(get_db),
) -> QuizResponse:
    quiz = get_or_404(db, Quiz, quiz_id)
    if body.lesson_id is not None and body.lesson_id != quiz.lesson_id:
        quiz.lesson_id = _quiz_lesson(db, body.lesson_id).id
    if body.title is not None:
        quiz.title = body.title.strip()
    if body.description is not None:
        quiz.description = body.description
    if body.passing_score is not None:
        quiz.passing_score = body.passing_score
    if body.is_active is not None:
        quiz.is_active = body.is_active
    quiz.date_modified = datetime.utcnow()
    db.commit()
    db.refresh(quiz)
    return quiz_response(quiz)


@admin_content_routes.delete("/quizzes/{quiz_id}", response_model=MessageResponse)
async def delete_quiz(
    quiz_id: int,
    current_user: User = Depends(editor),
    db: Session = Depends(get_db),
) -> MessageResponse:
    quiz = get_or_404(db, Quiz, quiz_id)
    title = quiz.title
    db.delete(quiz)
    db.commit()
    logger.info("Quiz %s deleted by %s", quiz_id, current_user.email)
    return MessageResponse(message=f"Quiz '{title}' has been deleted successfully.")


# ----- questions -----

def question_response(question: Question) -> QuestionResponse:
    return QuestionResponse(
        id=question.id,
        quiz_id=question.quiz_id,
        text=question.text,
        order=question.order,
        options=[
            OptionResponse(id=o.id, text=o.text, is_correct=bool(o.is_correct), order=o.order)
            for o in sorted(question.options, key=lambda o: (o.order, o.id))
        ],
    )


def _validate_options(options: list[OptionIn]) -> None:
    if not any(o.is_correct for o in options):
        raise RuleViolation("At least one answer option must be marked as correct.")
    texts = [o.text.strip().lower() for o in options]
    if len(set(texts)) != len(texts):
        raise RuleViolation("Answer options must have unique text.")


def _check_question_order(db: Session, quiz_id: int, order: int, exclude_id: int | None = None) -> None:
    query = db.query(Question.id).filter(Question.quiz_id == quiz_id, Question.order == order)
    if exclude_id is not None:
        query = query.filter(Question.id != exclude_id)
    if query.first() is not None:
        raise RuleViolation(f"A question with order {order} already exists in this quiz.")


def _build_options(options: list[OptionIn]) -> list[QuestionOption]:
    return [
        QuestionOption(text=o.text.strip(), is_correct=o.is_correct, order=i)
        for i, o in enumerate(options, start=1)
    ]


@admin_content_routes.get("/quizzes/{quiz_id}/questions", response_model=list[QuestionResponse])
async def list_questions(quiz_id: int, _: User = Depends(editor), db: Session = Depends(get_db)) -> list[QuestionResponse]:
    quiz = get_or_404(db, Quiz, quiz_id)
    return [question_response(q) for q in sorted(quiz.questions, key=lambda q: (q.order, q.id))]


@admin_content_routes.post("/questions", response_model=QuestionResponse, status_code=201)
async def create_question(
    body: QuestionCreate,
    _: User = Depends(editor),
    db: Session = Depends(get_db),
) -> QuestionResponse:
    if db.get(Quiz, body.quiz_id) is None:
        raise RuleViolation("Selected quiz does not exist.")
    _validate_options(body.options)
    _check_question_order(db, body.quiz_id, body.order)
    question = Question(quiz_id=body.quiz_id, text=body.text.strip(), order=body.order)
    question.options = _build_options(body.options)
    db.add(question)
    db.commit()
    db.refresh(question)
    return question_response(question)


@admin_content_routes.get("/questions/{question_id}", response_model=QuestionResponse)
async def get_question(question_id: int, _: User = Depends(editor), db: Session = Depends(get_db)) -> QuestionResponse:
    return question_response(get_or_404(db, Question, question_id))


@admin_content_routes.patch("/questions/{question_id}", response_model=QuestionResponse)
async def update_question(
    question_id: int,
    body: QuestionUpdate,
    _: User = Depends(editor),
    db: Session = Depends(get_db),
) -> QuestionResponse:
    """Edit a question. Supplying options replaces the whole option list."""
    question = get_or_404(db, Question, question_id)
    if body.order is not None and body.order != question.order:
        _check_question_order(db, question.quiz_id, body.order, exclude_id=question.id)
        question.order = body.order
    if body.text is not None:
        question.text = body.text.strip()
    if body.options is not None:
        _validate_options(body.options)
        question.options = _build_options(body.options)
    db.commit()
    db.refresh(question)
    return question_response(question)


@admin_content_routes.delete("/questions/{question_id}", response_model=MessageResponse)
async def delete_question(
    question_id: int,
    _: User = Depends(editor),
    db: Session = Depends(get_db),
) -> MessageResponse:
    question = get_or_404(db, Question, question_id)
    answered = db.query(QuestionAnswer.id).filter(QuestionAnswer.question_id == question.id).first()
    if answered is not None:
        raise RuleViolation(
            "Cannot delete question because it has student responses. Consider deactivating the quiz instead."
        )
    db.delete(question)
    db.commit()
    return MessageResponse(message="Question deleted successfully.")
