"""
Learner training endpoints: dashboard, module outline and lessons.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cybertrain.config import get_db
from cybertrain.models.models import Lesson, Module, ModuleProgress, ProgressStatus, User
from cybertrain.schemas.training_schemas import (
    DashboardModule,
    DashboardResponse,
    LessonOutlineItem,
    LessonProgressRequest,
    LessonProgressResponse,
    LessonResponse,
    ModuleOutlineResponse,
    ModuleProgressInfo,
    QuizLink,
    QuizResultSummary,
)
from cybertrain.services import certificate_service, quiz_service
from cybertrain.services.assignment_service import has_module_access, resolve_assigned_modules
from cybertrain.services.markdown_service import to_html
from cybertrain.services.progress_service import ProgressService, completion_percentage
from cybertrain.utils.auth import require_action
from cybertrain.utils.common import iso_format, iso_or_none
from cybertrain.utils.errors import NotFoundError, PermissionDenied
from cybertrain.utils.permissions import Action

logger = logging.getLogger(__name__)

training_routes = APIRouter()

learner = require_action(Action.TAKE_TRAINING)
progress_viewer = require_action(Action.VIEW_OWN_PROGRESS)


def module_progress_info(progress: ModuleProgress) -> ModuleProgressInfo:
    return ModuleProgressInfo(
        status=progress.status.value,
        completed_lessons=progress.completed_lessons,
        total_lessons=progress.total_lessons,
        completion_percentage=completion_percentage(progress),
        started_at=iso_or_none(progress.started_at),
        completed_at=iso_or_none(progress.completed_at),
        certificate_issued=bool(progress.certificate_issued),
    )


def get_accessible_module(db: Session, user: User, module_id: int) -> Module:
    """Active module the learner is assigned to, or NotFound / PermissionDenied."""
    module = db.query(Module).filter(Module.id == module_id, Module.is_active == True).first()  # noqa: E712
    if module is None:
        raise NotFoundError("Module not found")
    if not has_module_access(db, user.id, module.id):
        raise PermissionDenied("You do not have access to this module.")
    return module


def get_accessible_lesson(db: Session, user: User, lesson_id: int) -> Lesson:
    """Active lesson in an accessible module that the learner has unlocked."""
    lesson = db.query(Lesson).filter(Lesson.id == lesson_id, Lesson.is_active == True).first()  # noqa: E712
    if lesson is None:
        raise NotFoundError("Lesson not found")
    get_accessible_module(db, user, lesson.module_id)
    if not ProgressService(db).is_lesson_unlocked(user.id, lesson):
        raise PermissionDenied("Complete the previous lesson to unlock this one.")
    return lesson


def _quiz_links(lesson: Lesson) -> list[QuizLink]:
    return [
        QuizLink(id=q.id, title=q.title, passing_score=q.passing_score)
        for q in sorted(lesson.quizzes, key=lambda q: q.id)
        if q.is_active
    ]


@training_routes.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    current_user: User = Depends(progress_viewer),
    db: Session = Depends(get_db),
) -> DashboardResponse:
    """Assigned modules with progress, recent quiz results and certificate status."""
    modules = resolve_assigned_modules(db, current_user.id)
    progress_by_module = {
        p.module_id: p
        for p in db.query(ModuleProgress).filter(ModuleProgress.user_id == current_user.id).all()
    }

    items: list[DashboardModule] = []
    completed = 0
    for m in modules:
        p = progress_by_module.get(m.id)
        pct = completion_percentage(p)
        if p is not None and p.status == ProgressStatus.COMPLETED:
            completed += 1
        items.append(
            DashboardModule(
                id=m.id,
                title=m.title,
                description=m.description,
                order=m.order,
                progress=module_progress_info(p) if p else None,
                completion_percentage=pct,
            )
        )

    all_completed = bool(modules) and completed == len(modules)
    has_certificate = certificate_service.has_comprehensive_certificate(db, current_user.id)
    if all_completed and not has_certificate:
        # Learners who finished before certificates existed get theirs on the next visit.
        has_certificate = certificate_service.check_and_issue_comprehensive_certificate(db, current_user.id) is not None

    overall = sum(i.completion_percentage for i in items) / len(items) if items else 0.0
    recent = [
        QuizResultSummary(
            id=r.id,
            quiz_id=r.quiz_id,
            quiz_title=r.quiz.title,
            score=r.score,
            passed=bool(r.passed),
            completed_at=iso_format(r.completed_at),
        )
        for r in quiz_service.recent_results(db, current_user.id)
    ]
    return DashboardResponse(
        modules=items,
        recent_quiz_results=recent,
        completed_modules=completed,
        total_modules=len(modules),
        overall_progress=overall,
        all_modules_completed=all_completed,
        has_comprehensive_certificate=has_certificate,
    )


@training_routes.get("/modules/{module_id}", response_model=ModuleOutlineResponse)
async def module_outline(
    module_id: int,
    current_user: User = Depends(learner),
    db: Session = Depends(get_db),
) -> ModuleOutlineResponse:
    """Open a module: lessons in order with sequential unlocking."""
    module = get_accessible_module(db, current_user, module_id)
    service = ProgressService(db)
    service.start_module(current_user.id, module.id)
    outline = service.lesson_outline(current_user.id, module.id)
    return ModuleOutlineResponse(
        id=module.id,
        title=module.title,
        description=module.description,
        progress=module_progress_info(outline.progress),
        lessons=[
            LessonOutlineItem(
                id=s.lesson.id,
                title=s.lesson.title,
                order=s.lesson.order,
                status=s.status.value,
                is_unlocked=s.is_unlocked,
                quizzes=[QuizLink(id=q.id, title=q.title, passing_score=q.passing_score) for q in s.quizzes],
            )
            for s in outline.lessons
        ],
        next_lesson_index=outline.next_lesson_index,
    )


@training_routes.get("/lessons/{lesson_id}", response_model=LessonResponse)
async def view_lesson(
    lesson_id: int,
    current_user: User = Depends(learner),
    db: Session = Depends(get_db),
) -> LessonResponse:
    """Lesson content as HTML. Viewing an unlocked lesson marks it InProgress."""
    lesson = get_accessible_lesson(db, current_user, lesson_id)
    service = ProgressService(db)
    progress = service.record_lesson_progress(current_user.id, lesson.id, ProgressStatus.IN_PROGRESS)

    outline = service.lesson_outline(current_user.id, lesson.module_id)
    ids = [s.lesson.id for s in outline.lessons]
    index = ids.index(lesson.id)
    previous_id: Optional[int] = ids[index - 1] if index > 0 else None
    next_id: Optional[int] = ids[index + 1] if index + 1 < len(ids) else None

    return LessonResponse(
        id=lesson.id,
        module_id=lesson.module_id,
        title=lesson.title,
        order=lesson.order,
        content_html=to_html(lesson.content),
        status=progress.status.value,
        scroll_position=progress.scroll_position,
        quizzes=_quiz_links(lesson),
        previous_lesson_id=previous_id,
        next_lesson_id=next_id,
    )


def _progress_response(db: Session, user: User, lesson: Lesson, status: ProgressStatus, scroll: Optional[int]) -> LessonProgressResponse:
    service = ProgressService(db)
    progress = service.record_lesson_progress(user.id, lesson.id, status, scroll_position=scroll)
    module_progress = service.get_or_create_module_progress(user.id, lesson.module_id)
    return LessonProgressResponse(
        lesson_id=lesson.id,
        status=progress.status.value,
        scroll_position=progress.scroll_position,
        module_progress=module_progress_info(module_progress),
    )


@training_routes.post("/lessons/{lesson_id}/progress", response_model=LessonProgressResponse)
async def update_lesson_progress(
    lesson_id: int,
    body: LessonProgressRequest,
    current_user: User = Depends(learner),
    db: Session = Depends(get_db),
) -> LessonProgressResponse:
    """Record status and scroll position. A status behind the stored one is ignored."""
    lesson = get_accessible_lesson(db, current_user, lesson_id)
    return _progress_response(db, current_user, lesson, ProgressStatus(body.status), body.scroll_position)


@training_routes.post("/lessons/{lesson_id}/complete", response_model=LessonProgressResponse)
async def complete_lesson(
    lesson_id: int,
    current_user: User = Depends(learner),
    db: Session = Depends(get_db),
) -> LessonProgressResponse:
    lesson = get_accessible_lesson(db, current_user, lesson_id)
    logger.info("User %s marked lesson %s complete", current_user.id, lesson.id)
    return _progress_response(db, current_user, lesson, ProgressStatus.COMPLETED, None)
