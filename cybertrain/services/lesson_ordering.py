"""
Keep lesson ``order`` values dense (1..n) inside a module.
"""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from cybertrain.models.models import Lesson

logger = logging.getLogger(__name__)


def next_lesson_order(db: Session, module_id: int) -> int:
    current = db.query(func.max(Lesson.order)).filter(Lesson.module_id == module_id).scalar()
    return (current or 0) + 1


def close_gap(db: Session, module_id: int, deleted_order: int) -> int:
    """Move every lesson after a deleted one up by one. Caller commits."""
    followers = (
        db.query(Lesson)
        .filter(Lesson.module_id == module_id, Lesson.order > deleted_order)
        .order_by(Lesson.order.asc())
        .all()
    )
    for lesson in followers:
        lesson.order -= 1
    db.flush()
    return len(followers)


def renumber_lessons(db: Session, module_id: int) -> None:
    """Renumber a module's lessons 1..n in their current order. Caller commits."""
    lessons = (
        db.query(Lesson)
        .filter(Lesson.module_id == module_id)
        .order_by(Lesson.order.asc(), Lesson.id.asc())
        .all()
    )
    for index, lesson in enumerate(lessons, start=1):
        lesson.order = index
    db.flush()
    logger.debug("Renumbered %s lessons in module %s", len(lessons), module_id)


def move_lesson(db: Session, lesson: Lesson, module_id: int, order: int) -> None:
    """
    Place ``lesson`` at ``order`` in ``module_id``, shifting siblings to make room.

    Moving between modules renumbers both; reordering within a module renumbers that one.
    Caller commits.
    """
    source_module_id = lesson.module_id
    siblings = (
        db.query(Lesson)
        .filter(Lesson.module_id == module_id, Lesson.id != lesson.id)
        .order_by(Lesson.order.asc(), Lesson.id.asc())
        .all()
    )
    position = max(1, min(order, len(siblings) + 1))
    siblings.insert(position - 1, lesson)
    lesson.module_id = module_id
    for index, item in enumerate(siblings, start=1):
        item.order = index
    db.flush()
    if source_module_id != module_id:
        renumber_lessons(db, source_module_id)
