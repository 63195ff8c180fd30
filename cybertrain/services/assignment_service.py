"""
Assignment resolution: which modules a learner may take.

A learner's modules are the union of direct assignments and assignments made to any group
the learner is an *active* member of. Only active modules count.
"""

from sqlalchemy.orm import Session

from cybertrain.models.models import GroupAssignment, GroupMembership, Module, ModuleAssignment


def _active_group_ids(db: Session, user_id: int) -> list[int]:
    rows = (
        db.query(GroupMembership.group_id)
        .filter(GroupMembership.user_id == user_id, GroupMembership.is_active == True)  # noqa: E712
        .all()
    )
    return [r.group_id for r in rows]


def resolve_assigned_module_ids(db: Session, user_id: int) -> set[int]:
    """Direct and group-inherited module ids, before the active-module filter."""
    direct = {
        r.module_id
        for r in db.query(ModuleAssignment.module_id).filter(ModuleAssignment.user_id == user_id).all()
    }
    group_ids = _active_group_ids(db, user_id)
    inherited: set[int] = set()
    if group_ids:
        inherited = {
            r.module_id
            for r in db.query(GroupAssignment.module_id).filter(GroupAssignment.group_id.in_(group_ids)).all()
        }
    return direct | inherited


def resolve_assigned_modules(db: Session, user_id: int) -> list[Module]:
    """Active modules assigned to the learner, ordered by display order then title.

    An unknown learner simply has no assignments, so the result is empty.
    """
    module_ids = resolve_assigned_module_ids(db, user_id)
    if not module_ids:
        return []
    return (
        db.query(Module)
        .filter(Module.id.in_(module_ids), Module.is_active == True)  # noqa: E712
        .order_by(Module.order.asc(), Module.title.asc())
        .all()
    )


def has_module_access(db: Session, user_id: int, module_id: int) -> bool:
    """True when the module is active and assigned directly or through an active group."""
    active = db.query(Module.id).filter(Module.id == module_id, Module.is_active == True).first()  # noqa: E712
    if active is None:
        return False
    direct = (
        db.query(ModuleAssignment.id)
        .filter(ModuleAssignment.user_id == user_id, ModuleAssignment.module_id == module_id)
        .first()
    )
    if direct is not None:
        return True
    group_ids = _active_group_ids(db, user_id)
    if not group_ids:
        return False
    inherited = (
        db.query(GroupAssignment.id)
        .filter(GroupAssignment.group_id.in_(group_ids), GroupAssignment.module_id == module_id)
        .first()
    )
    return inherited is not None
