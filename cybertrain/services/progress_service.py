"""
Progress tracking for lessons and modules.

Lesson status only ever moves forward (NotStarted -> InProgress -> Completed). Module status
is derived from the learner's lesson statuses every time a lesson changes, and the first
transition of a module into Completed issues its module certificate and triggers the
comprehensive-certificate check.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from cybertrain.models.models import (
    Lesson,
    LessonProgress,
    Module,
    ModuleProgress,
    ProgressStatus,
    Quiz,
)
from cybertrain.services import certificate_service
from cybertrain.utils.common import atomic, get_or_404

logger = logging.getLogger(__name__)


@dataclass
class LessonState:
    """A lesson as seen by one learner inside the module outline."""
    lesson: Lesson
    progress: Optional[LessonProgress]
    is_unlocked: bool
    quizzes: list[Quiz] = field(default_factory=list)

    @property
    def status(self) -> ProgressStatus:
        return self.progress.status if self.progress else ProgressStatus.NOT_STARTED


@dataclass
class ModuleOutline:
    module: Module
    progress: ModuleProgress
    lessons: list[LessonState]
    next_lesson_index: int
    completion_percentage: float


def _active_lessons(db: Session, module_id: int) -> list[Lesson]:
    return (
        db.query(Lesson)
        .filter(Lesson.module_id == module_id, Lesson.is_active == True)  # noqa: E712
        .order_by(Lesson.order.asc(), Lesson.id.asc())
        .all()
    )


def completion_percentage(progress: Optional[ModuleProgress]) -> float:
    if progress is None or not progress.total_lessons:
        return 0.0
    return progress.completed_lessons / progress.total_lessons * 100


class ProgressService:
    """Service for lesson and module progress of learners."""

    def __init__(self, db: Session):
        self.db = db

    # ----- lessons -----

    def get_or_create_lesson_progress(self, user_id: int, lesson_id: int) -> LessonProgress:
        get_or_404(self.db, Lesson, lesson_id)
        progress = (
            self.db.query(LessonProgress)
            .filter(LessonProgress.user_id == user_id, LessonProgress.lesson_id == lesson_id)
            .first()
        )
        if progress is None:
            progress = LessonProgress(
                user_id=user_id,
                lesson_id=lesson_id,
                status=ProgressStatus.NOT_STARTED,
                scroll_position=0,
                last_accessed_at=datetime.utcnow(),
            )
            self.db.add(progress)
            self.db.flush()
        return progress

    def apply_lesson_progress(
        self,
        user_id: int,
        lesson_id: int,
        status: ProgressStatus,
        scroll_position: Optional[int] = None,
    ) -> tuple[LessonProgress, bool]:
        """
        Stage a lesson status change and the module recompute it implies, without committing.

        Returns the lesson row and whether the owning module just became Completed. The caller
        owns the transaction, so a failure anywhere leaves neither row changed.
        """
        status = ProgressStatus(status)
        lesson = get_or_404(self.db, Lesson, lesson_id)
        progress = self.get_or_create_lesson_progress(user_id, lesson_id)
        now = datetime.utcnow()

        if status.rank > progress.status.rank:
            progress.status = status
        elif status.rank < progress.status.rank:
            logger.debug(
                "Ignoring backward lesson transition user=%s lesson=%s %s->%s",
                user_id, lesson_id, progress.status.value, status.value,
            )

        if progress.status != ProgressStatus.NOT_STARTED and progress.started_at is None:
            progress.started_at = now
        if progress.status == ProgressStatus.COMPLETED and progress.completed_at is None:
            progress.completed_at = now
        progress.last_accessed_at = now
        if scroll_position is not None:
            progress.scroll_position = max(0, int(scroll_position))

        self.db.flush()
        _, module_completed = self._apply_module_progress(user_id, lesson.module_id)
        return progress, module_completed

    def record_lesson_progress(
        self,
        user_id: int,
        lesson_id: int,
        status: ProgressStatus,
        scroll_position: Optional[int] = None,
    ) -> LessonProgress:
        """
        Record a learner's status on a lesson and recompute the owning module in one commit.

        A status behind the stored one is ignored rather than rejected, so a finished
        lesson can be revisited without losing its completion. Timestamps and the
        scroll position are refreshed on every call.
        """
        with atomic(self.db):
            progress, module_completed = self.apply_lesson_progress(user_id, lesson_id, status, scroll_position)
        if module_completed:
            certificate_service.check_and_issue_comprehensive_certificate(self.db, user_id)
        return progress

    # ----- modules -----

    def get_or_create_module_progress(self, user_id: int, module_id: int) -> ModuleProgress:
        get_or_404(self.db, Module, module_id)
        progress = (
            self.db.query(ModuleProgress)
            .filter(ModuleProgress.user_id == user_id, ModuleProgress.module_id == module_id)
            .first()
        )
        if progress is None:
            progress = ModuleProgress(
                user_id=user_id,
                module_id=module_id,
                status=ProgressStatus.NOT_STARTED,
                total_lessons=len(_active_lessons(self.db, module_id)),
                completed_lessons=0,
                certificate_issued=False,
                last_accessed_at=datetime.utcnow(),
            )
            self.db.add(progress)
            self.db.flush()
        return progress

    def start_module(self, user_id: int, module_id: int) -> ModuleProgress:
        """Opening a module moves it to InProgress the first time."""
        with atomic(self.db):
            progress = self.get_or_create_module_progress(user_id, module_id)
            now = datetime.utcnow()
            if progress.status == ProgressStatus.NOT_STARTED:
                progress.status = ProgressStatus.IN_PROGRESS
                progress.started_at = progress.started_at or now
            progress.last_accessed_at = now
        return progress

    def _apply_module_progress(self, user_id: int, module_id: int) -> tuple[ModuleProgress, bool]:
        progress = self.get_or_create_module_progress(user_id, module_id)
        lesson_ids = [lesson.id for lesson in _active_lessons(self.db, module_id)]
        statuses: list[ProgressStatus] = []
        if lesson_ids:
            statuses = [
                row.status
                for row in self.db.query(LessonProgress.status).filter(
                    LessonProgress.user_id == user_id,
                    LessonProgress.lesson_id.in_(lesson_ids),
                )
            ]

        total = len(lesson_ids)
        completed = sum(1 for s in statuses if s == ProgressStatus.COMPLETED)
        started = any(s != ProgressStatus.NOT_STARTED for s in statuses)
        previous = progress.status
        now = datetime.utcnow()

        if total > 0 and completed == total:
            new_status = ProgressStatus.COMPLETED
        elif started or previous != ProgressStatus.NOT_STARTED:
            new_status = ProgressStatus.IN_PROGRESS
        else:
            new_status = ProgressStatus.NOT_STARTED

        progress.total_lessons = total
        progress.completed_lessons = completed
        progress.status = new_status
        progress.last_accessed_at = now
        if new_status != ProgressStatus.NOT_STARTED and progress.started_at is None:
            progress.started_at = now

        became_complete = new_status == ProgressStatus.COMPLETED and previous != ProgressStatus.COMPLETED
        if became_complete:
            progress.completed_at = now
            progress.certificate_issued = True
            progress.certificate_issued_at = now
            logger.info("Module completed user=%s module=%s lessons=%s", user_id, module_id, total)
        self.db.flush()
        return progress, became_complete

    def recompute_module_progress(self, user_id: int, module_id: int) -> ModuleProgress:
        """
        Derive the module's status from its active lessons.

        ``total_lessons`` is refreshed from the live active-lesson count, so lessons added
        or removed after the row was created are reflected here.
        """
        with atomic(self.db):
            progress, became_complete = self._apply_module_progress(user_id, module_id)
        if became_complete:
            certificate_service.check_and_issue_comprehensive_certificate(self.db, user_id)
        return progress

    def is_module_complete(self, user_id: int, module_id: int) -> bool:
        progress = (
            self.db.query(ModuleProgress)
            .filter(ModuleProgress.user_id == user_id, ModuleProgress.module_id == module_id)
            .first()
        )
        return progress is not None and progress.status == ProgressStatus.COMPLETED

    def completed_modules(self, user_id: int) -> list[Module]:
        return (
            self.db.query(Module)
            .join(ModuleProgress, ModuleProgress.module_id == Module.id)
            .filter(ModuleProgress.user_id == user_id, ModuleProgress.status == ProgressStatus.COMPLETED)
            .order_by(Module.order.asc(), Module.title.asc())
            .all()
        )

    def module_completion_percentage(self, user_id: int, module_id: int) -> float:
        progress = (
            self.db.query(ModuleProgress)
            .filter(ModuleProgress.user_id == user_id, ModuleProgress.module_id == module_id)
            .first()
        )
        return completion_percentage(progress)

    def lesson_outline(self, user_id: int, module_id: int) -> ModuleOutline:
        """
        Ordered active lessons with sequential unlocking: the first lesson is always open,
        every later one opens once the lesson before it is Completed.
        """
        module = get_or_404(self.db, Module, module_id)
        progress = self.get_or_create_module_progress(user_id, module_id)
        lessons = _active_lessons(self.db, module_id)
        by_lesson = {
            p.lesson_id: p
            for p in self.db.query(LessonProgress).filter(
                LessonProgress.user_id == user_id,
                LessonProgress.lesson_id.in_([lesson.id for lesson in lessons]),
            )
        } if lessons else {}

        states: list[LessonState] = []
        for i, lesson in enumerate(lessons):
            unlocked = i == 0 or states[i - 1].status == ProgressStatus.COMPLETED
            states.append(
                LessonState(
                    lesson=lesson,
                    progress=by_lesson.get(lesson.id),
                    is_unlocked=unlocked,
                    quizzes=sorted((q for q in lesson.quizzes if q.is_active), key=lambda q: q.id),
                )
            )

        next_index = max(0, len(states) - 1)
        for i, state in enumerate(states):
            if state.is_unlocked and state.status != ProgressStatus.COMPLETED:
                next_index = i
                break

        return ModuleOutline(
            module=module,
            progress=progress,
            lessons=states,
            next_lesson_index=next_index,
            completion_percentage=completion_percentage(progress),
        )

    def is_lesson_unlocked(self, user_id: int, lesson: Lesson) -> bool:
        outline = self.lesson_outline(user_id, lesson.module_id)
        for state in outline.lessons:
            if state.lesson.id == lesson.id:
                return state.is_unlocked
        return False

    def backfill_module_certificates(self) -> int:
        """Flag Completed module rows that never had their certificate marked as issued."""
        rows = (
            self.db.query(ModuleProgress)
            .filter(
                ModuleProgress.status == ProgressStatus.COMPLETED,
                ModuleProgress.certificate_issued == False,  # noqa: E712
            )
            .all()
        )
        with atomic(self.db):
            for row in rows:
                row.certificate_issued = True
                row.certificate_issued_at = row.completed_at or datetime.utcnow()
        if rows:
            logger.info("Fixed %s completed modules without certificate flags", len(rows))
        return len(rows)
