"""
Admin endpoints for user accounts, direct module assignments and the admin dashboard.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cybertrain.config import get_db
from cybertrain.models.models import (
    Company,
    ComprehensiveCertificate,
    Module,
    ModuleAssignment,
    Role,
    User,
    UserGroup,
)
from cybertrain.routes.admin_org_routes import company_response
from cybertrain.routes.auth_routes import user_response
from cybertrain.schemas.admin_schemas import (
    AdminDashboardResponse,
    UserAssignmentCreate,
    UserAssignmentResponse,
    UserCreate,
    UserUpdate,
)
from cybertrain.schemas.user_schemas import MessageResponse, UserResponse
from cybertrain.services.assignment_service import resolve_assigned_modules
from cybertrain.services.progress_service import ProgressService
from cybertrain.utils.auth import create_user, get_user_by_email, require_action
from cybertrain.utils.common import get_or_404, iso_format, iso_or_none
from cybertrain.utils.errors import NotFoundError, RuleViolation
from cybertrain.utils.jwt import get_password_hash, password_problems
from cybertrain.utils.permissions import Action

logger = logging.getLogger(__name__)

admin_user_routes = APIRouter()

user_manager = require_action(Action.MANAGE_USERS)
assigner = require_action(Action.ASSIGN_MODULES)
dashboard_viewer = require_action(Action.VIEW_ADMIN_DASHBOARD)


def _check_password(password: str) -> None:
    problems = password_problems(password)
    if problems:
        raise RuleViolation(" ".join(problems))


def _check_company(db: Session, company_id: int | None) -> None:
    if company_id is not None and db.get(Company, company_id) is None:
        raise RuleViolation("Selected company does not exist.")


@admin_user_routes.get("/users", response_model=list[UserResponse])
async def list_users(
    company_id: int | None = None,
    _: User = Depends(user_manager),
    db: Session = Depends(get_db),
) -> list[UserResponse]:
    query = db.query(User)
    if company_id is not None:
        query = query.filter(User.company_id == company_id)
    return [user_response(u) for u in query.order_by(User.email.asc()).all()]


@admin_user_routes.post("/users", response_model=UserResponse, status_code=201)
async def create_user_account(
    body: UserCreate,
    current_user: User = Depends(user_manager),
    db: Session = Depends(get_db),
) -> UserResponse:
    """Create an account. Learners complete their profile on first login."""
    if get_user_by_email(body.email, db):
        raise RuleViolation("Email already registered")
    _check_password(body.password)
    _check_company(db, body.company_id)
    has_names = bool((body.first_name or "").strip() and (body.last_name or "").strip())
    user = create_user(
        body.email,
        body.password,
        db,
        first_name=body.first_name,
        last_name=body.last_name,
        role=Role(body.role),
        company_id=body.company_id,
        is_profile_complete=has_names,
    )
    logger.info("User %s created by %s", user.id, current_user.email)
    return user_response(user)


@admin_user_routes.get("/users/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, _: User = Depends(user_manager), db: Session = Depends(get_db)) -> UserResponse:
    return user_response(get_or_404(db, User, user_id))


@admin_user_routes.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    body: UserUpdate,
    _: User = Depends(user_manager),
    db: Session = Depends(get_db),
) -> UserResponse:
    user = get_or_404(db, User, user_id)
    if body.email is not None:
        email = body.email.strip().lower()
        existing = get_user_by_email(email, db)
        if existing is not None and existing.id != user.id:
            raise RuleViolation("Email already in use")
        user.email = email
    if body.password is not None:
        _check_password(body.password)
        user.hashed_password = get_password_hash(body.password)
    if "company_id" in body.model_fields_set:
        _check_company(db, body.company_id)
        user.company_id = body.company_id
    if body.first_name is not None:
        user.first_name = body.first_name
    if body.last_name is not None:
        user.last_name = body.last_name
    if body.role is not None:
        user.role = Role(body.role)
    db.commit()
    db.refresh(user)
    return user_response(user)


@admin_user_routes.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    current_user: User = Depends(user_manager),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Delete an account together with its memberships, assignments, progress and results."""
    user = get_or_404(db, User, user_id)
    if user.id == current_user.id:
        raise RuleViolation("You cannot delete your own account.")
    name = user.display_name
    db.delete(user)
    db.commit()
    logger.info("User %s deleted by %s", user_id, current_user.email)
    return MessageResponse(message=f"User '{name}' has been deleted successfully.")


# ----- direct module assignments -----

def assignment_response(assignment: ModuleAssignment) -> UserAssignmentResponse:
    return UserAssignmentResponse(
        id=assignment.id,
        user_id=assignment.user_id,
        module_id=assignment.module_id,
        module_title=assignment.module.title,
        assigned_at=iso_format(assignment.assigned_at),
        assigned_by=assignment.assigned_by,
        due_date=iso_or_none(assignment.due_date),
    )


@admin_user_routes.get("/users/{user_id}/assignments", response_model=list[UserAssignmentResponse])
async def list_user_assignments(
    user_id: int,
    _: User = Depends(assigner),
    db: Session = Depends(get_db),
) -> list[UserAssignmentResponse]:
    """Direct assignments only; group grants are listed on the group."""
    user = get_or_404(db, User, user_id)
    assignments = sorted(user.module_assignments, key=lambda a: (a.module.order, a.module.title))
    return [assignment_response(a) for a in assignments]


@admin_user_routes.get("/users/{user_id}/modules")
async def list_effective_modules(
    user_id: int,
    _: User = Depends(assigner),
    db: Session = Depends(get_db),
) -> list[dict]:
    """Every module the user can take (direct and through groups) with their progress."""
    user = get_or_404(db, User, user_id)
    service = ProgressService(db)
    return [
        {
            "module_id": m.id,
            "title": m.title,
            "order": m.order,
            "is_complete": service.is_module_complete(user.id, m.id),
            "completion_percentage": service.module_completion_percentage(user.id, m.id),
        }
        for m in resolve_assigned_modules(db, user.id)
    ]


@admin_user_routes.post("/users/{user_id}/assignments", response_model=UserAssignmentResponse, status_code=201)
async def assign_module_to_user(
    user_id: int,
    body: UserAssignmentCreate,
    current_user: User = Depends(assigner),
    db: Session = Depends(get_db),
) -> UserAssignmentResponse:
    user = get_or_404(db, User, user_id)
    module = db.query(Module).filter(Module.id == body.module_id, Module.is_active == True).first()  # noqa: E712
    if module is None:
        raise RuleViolation("Selected module is not available.")
    exists = (
        db.query(ModuleAssignment.id)
        .filter(ModuleAssignment.user_id == user.id, ModuleAssignment.module_id == module.id)
        .first()
    )
    if exists is not None:
        raise RuleViolation("This module is already assigned to the user.")
    assignment = ModuleAssignment(
        user_id=user.id,
        module_id=module.id,
        assigned_by=current_user.email,
        due_date=body.due_date,
    )
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    logger.info("Module %s assigned to user %s by %s", module.id, user.id, current_user.email)
    return assignment_response(assignment)


@admin_user_routes.delete("/users/{user_id}/assignments/{module_id}", response_model=MessageResponse)
async def unassign_module_from_user(
    user_id: int,
    module_id: int,
    _: User = Depends(assigner),
    db: Session = Depends(get_db),
) -> MessageResponse:
    assignment = (
        db.query(ModuleAssignment)
        .filter(ModuleAssignment.user_id == user_id, ModuleAssignment.module_id == module_id)
        .first()
    )
    if assignment is None:
        raise NotFoundError("Assignment not found.")
    title = assignment.module.title
    db.delete(assignment)
    db.commit()
    return MessageResponse(message=f"Module '{title}' has been removed from the user.")


# ----- dashboard -----

@admin_user_routes.get("/dashboard", response_model=AdminDashboardResponse)
async def admin_dashboard(_: User = Depends(dashboard_viewer), db: Session = Depends(get_db)) -> AdminDashboardResponse:
    recent_companies = db.query(Company).order_by(Company.date_created.desc()).limit(5).all()
    recent_users = db.query(User).order_by(User.date_created.desc()).limit(5).all()
    return AdminDashboardResponse(
        total_users=db.query(User).count(),
        total_companies=db.query(Company).count(),
        total_modules=db.query(Module).count(),
        total_groups=db.query(UserGroup).count(),
        total_certificates=db.query(ComprehensiveCertificate).count(),
        recent_companies=[company_response(db, c) for c in recent_companies],
        recent_users=[
            {"id": u.id, "email": u.email, "display_name": u.display_name, "date_created": iso_format(u.date_created)}
            for u in recent_users
        ],
    )
