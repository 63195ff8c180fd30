"""
Admin endpoints for companies, user groups, group memberships and group module assignments.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cybertrain.config import get_db
from cybertrain.models.models import (
    Company,
    GroupAssignment,
    GroupMembership,
    Module,
    ModuleProgress,
    ProgressStatus,
    User,
    UserGroup,
)
from cybertrain.schemas.admin_schemas import (
    CompanyCreate,
    CompanyResponse,
    CompanyUpdate,
    GroupAssignmentCreate,
    GroupAssignmentResponse,
    GroupCreate,
    GroupResponse,
    GroupUpdate,
    MembershipCreate,
    MembershipResponse,
    MembershipUpdate,
)
from cybertrain.schemas.user_schemas import MessageResponse
from cybertrain.utils.auth import require_action
from cybertrain.utils.common import get_or_404, iso_format, iso_or_none
from cybertrain.utils.errors import NotFoundError, RuleViolation
from cybertrain.utils.permissions import Action

logger = logging.getLogger(__name__)

admin_org_routes = APIRouter()

organiser = require_action(Action.MANAGE_ORGANISATION)
assigner = require_action(Action.ASSIGN_MODULES)


# ----- companies -----

def company_response(db: Session, company: Company) -> CompanyResponse:
    return CompanyResponse(
        id=company.id,
        name=company.name,
        description=company.description,
        date_created=iso_format(company.date_created),
        user_count=db.query(User).filter(User.company_id == company.id).count(),
        group_count=db.query(UserGroup).filter(UserGroup.company_id == company.id).count(),
    )


@admin_org_routes.get("/companies", response_model=list[CompanyResponse])
async def list_companies(_: User = Depends(organiser), db: Session = Depends(get_db)) -> list[CompanyResponse]:
    companies = db.query(Company).order_by(Company.name.asc()).all()
    return [company_response(db, c) for c in companies]


@admin_org_routes.post("/companies", response_model=CompanyResponse, status_code=201)
async def create_company(
    body: CompanyCreate,
    current_user: User = Depends(organiser),
    db: Session = Depends(get_db),
) -> CompanyResponse:
    company = Company(name=body.name.strip(), description=body.description)
    db.add(company)
    db.commit()
    db.refresh(company)
    logger.info("Company %s created by %s", company.id, current_user.email)
    return company_response(db, company)


@admin_org_routes.get("/companies/{company_id}", response_model=CompanyResponse)
async def get_company(company_id: int, _: User = Depends(organiser), db: Session = Depends(get_db)) -> CompanyResponse:
    return company_response(db, get_or_404(db, Company, company_id))


@admin_org_routes.patch("/companies/{company_id}", response_model=CompanyResponse)
async def update_company(
    company_id: int,
    body: CompanyUpdate,
    _: User = Depends(organiser),
    db: Session = Depends(get_db),
) -> CompanyResponse:
    company = get_or_404(db, Company, company_id)
    if body.name is not None:
        company.name = body.name.strip()
    if body.description is not None:
        company.description = body.description
    db.commit()
    db.refresh(company)
    return company_response(db, company)


@admin_org_routes.delete("/companies/{company_id}", response_model=MessageResponse)
async def delete_company(
    company_id: int,
    current_user: User = Depends(organiser),
    db: Session = Depends(get_db),
) -> MessageResponse:
    company = get_or_404(db, Company, company_id)
    has_users = db.query(User.id).filter(User.company_id == company.id).first() is not None
    has_groups = db.query(UserGroup.id).filter(UserGroup.company_id == company.id).first() is not None
    if has_users or has_groups:
        raise RuleViolation("Cannot delete company. Please remove all associated users and groups first.")
    name = company.name
    db.delete(company)
    db.commit()
    logger.info("Company %s deleted by %s", company_id, current_user.email)
    return MessageResponse(message=f"Company '{name}' has been deleted successfully.")


# ----- groups -----

def _check_group_name(db: Session, company_id: int, name: str, exclude_id: int | None = None) -> None:
    query = db.query(UserGroup.id).filter(UserGroup.company_id == company_id, UserGroup.name == name)
    if exclude_id is not None:
        query = query.filter(UserGroup.id != exclude_id)
    if query.first() is not None:
        raise RuleViolation("A group with this name already exists in the selected company.")


def group_response(group: UserGroup) -> GroupResponse:
    return GroupResponse(
        id=group.id,
        name=group.name,
        description=group.description,
        company_id=group.company_id,
        date_created=iso_format(group.date_created),
        active_member_count=sum(1 for m in group.memberships if m.is_active),
        assigned_module_count=len(group.module_assignments),
    )


@admin_org_routes.get("/groups", response_model=list[GroupResponse])
async def list_groups(
    company_id: int | None = None,
    _: User = Depends(organiser),
    db: Session = Depends(get_db),
) -> list[GroupResponse]:
    query = db.query(UserGroup)
    if company_id is not None:
        query = query.filter(UserGroup.company_id == company_id)
    return [group_response(g) for g in query.order_by(UserGroup.name.asc()).all()]


@admin_org_routes.post("/groups", response_model=GroupResponse, status_code=201)
async def create_group(
    body: GroupCreate,
    current_user: User = Depends(organiser),
    db: Session = Depends(get_db),
) -> GroupResponse:
    if db.get(Company, body.company_id) is None:
        raise RuleViolation("Selected company does not exist.")
    name = body.name.strip()
    _check_group_name(db, body.company_id, name)
    group = UserGroup(name=name, description=body.description, company_id=body.company_id)
    db.add(group)
    db.commit()
    db.refresh(group)
    logger.info("Group %s created by %s", group.id, current_user.email)
    return group_response(group)


@admin_org_routes.get("/groups/{group_id}", response_model=GroupResponse)
async def get_group(group_id: int, _: User = Depends(organiser), db: Session = Depends(get_db)) -> GroupResponse:
    return group_response(get_or_404(db, UserGroup, group_id, "Group"))


@admin_org_routes.patch("/groups/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: int,
    body: GroupUpdate,
    _: User = Depends(organiser),
    db: Session = Depends(get_db),
) -> GroupResponse:
    group = get_or_404(db, UserGroup, group_id, "Group")
    company_id = body.company_id if body.company_id is not None else group.company_id
    if db.get(Company, company_id) is None:
        raise RuleViolation("Selected company does not exist.")
    name = body.name.strip() if body.name is not None else group.name
    _check_group_name(db, company_id, name, exclude_id=group.id)
    group.name = name
    group.company_id = company_id
    if body.description is not None:
        group.description = body.description
    db.commit()
    db.refresh(group)
    return group_response(group)


@admin_org_routes.delete("/groups/{group_id}", response_model=MessageResponse)
async def delete_group(
    group_id: int,
    current_user: User = Depends(organiser),
    db: Session = Depends(get_db),
) -> MessageResponse:
    group = get_or_404(db, UserGroup, group_id, "Group")
    active = sum(1 for m in group.memberships if m.is_active)
    if active:
        raise RuleViolation(f"Cannot delete group with {active} active members. Please remove all members first.")
    name = group.name
    db.delete(group)
    db.commit()
    logger.info("Group %s deleted by %s", group_id, current_user.email)
    return MessageResponse(message=f"Group '{name}' has been successfully deleted.")


# ----- memberships -----

def membership_response(membership: GroupMembership) -> MembershipResponse:
    return MembershipResponse(
        id=membership.id,
        user_id=membership.user_id,
        group_id=membership.group_id,
        email=membership.user.email,
        display_name=membership.user.display_name,
        is_active=bool(membership.is_active),
        date_joined=iso_format(membership.date_joined),
        joined_by=membership.joined_by,
    )


def _membership_or_404(db: Session, group_id: int, user_id: int) -> GroupMembership:
    membership = (
        db.query(GroupMembership)
        .filter(GroupMembership.group_id == group_id, GroupMembership.user_id == user_id)
        .first()
    )
    if membership is None:
        raise NotFoundError("Membership not found")
    return membership


@admin_org_routes.get("/groups/{group_id}/members", response_model=list[MembershipResponse])
async def list_members(group_id: int, _: User = Depends(organiser), db: Session = Depends(get_db)) -> list[MembershipResponse]:
    group = get_or_404(db, UserGroup, group_id, "Group")
    members = sorted(group.memberships, key=lambda m: (not m.is_active, m.user.email))
    return [membership_response(m) for m in members]


@admin_org_routes.post("/groups/{group_id}/members", response_model=MembershipResponse, status_code=201)
async def add_member(
    group_id: int,
    body: MembershipCreate,
    current_user: User = Depends(organiser),
    db: Session = Depends(get_db),
) -> MembershipResponse:
    """Add a user to a group, reactivating an earlier membership if there is one."""
    group = get_or_404(db, UserGroup, group_id, "Group")
    user = get_or_404(db, User, body.user_id)
    membership = (
        db.query(GroupMembership)
        .filter(GroupMembership.group_id == group.id, GroupMembership.user_id == user.id)
        .first()
    )
    if membership is not None and membership.is_active:
        raise RuleViolation("User is already a member of this group.")
    if membership is None:
        membership = GroupMembership(group_id=group.id, user_id=user.id, joined_by=current_user.email)
        db.add(membership)
    else:
        membership.is_active = True
        membership.date_joined = datetime.utcnow()
        membership.joined_by = current_user.email
    db.commit()
    db.refresh(membership)
    logger.info("User %s added to group %s by %s", user.id, group.id, current_user.email)
    return membership_response(membership)


@admin_org_routes.patch("/groups/{group_id}/members/{user_id}", response_model=MembershipResponse)
async def set_member_active(
    group_id: int,
    user_id: int,
    body: MembershipUpdate,
    _: User = Depends(organiser),
    db: Session = Depends(get_db),
) -> MembershipResponse:
    """Deactivate or reactivate a membership. Inactive memberships grant no modules."""
    membership = _membership_or_404(db, group_id, user_id)
    membership.is_active = body.is_active
    db.commit()
    db.refresh(membership)
    return membership_response(membership)


@admin_org_routes.delete("/groups/{group_id}/members/{user_id}", response_model=MessageResponse)
async def remove_member(
    group_id: int,
    user_id: int,
    _: User = Depends(organiser),
    db: Session = Depends(get_db),
) -> MessageResponse:
    membership = _membership_or_404(db, group_id, user_id)
    db.delete(membership)
    db.commit()
    return MessageResponse(message="User has been removed from the group.")


# ----- group module assignments -----

def group_assignment_response(db: Session, assignment: GroupAssignment) -> GroupAssignmentResponse:
    member_ids = [m.user_id for m in assignment.group.memberships if m.is_active]
    completed = 0
    if member_ids:
        completed = (
            db.query(ModuleProgress)
            .filter(
                ModuleProgress.module_id == assignment.module_id,
                ModuleProgress.user_id.in_(member_ids),
                ModuleProgress.status == ProgressStatus.COMPLETED,
            )
            .count()
        )
    return GroupAssignmentResponse(
        id=assignment.id,
        group_id=assignment.group_id,
        module_id=assignment.module_id,
        module_title=assignment.module.title,
        assigned_at=iso_format(assignment.assigned_at),
        assigned_by=assignment.assigned_by,
        due_date=iso_or_none(assignment.due_date),
        member_count=len(member_ids),
        completed_count=completed,
        completion_percentage=completed / len(member_ids) * 100 if member_ids else 0.0,
    )


@admin_org_routes.get("/groups/{group_id}/assignments", response_model=list[GroupAssignmentResponse])
async def list_group_assignments(
    group_id: int,
    _: User = Depends(assigner),
    db: Session = Depends(get_db),
) -> list[GroupAssignmentResponse]:
    """Modules assigned to the group with how many active members have completed each."""
    group = get_or_404(db, UserGroup, group_id, "Group")
    assignments = sorted(group.module_assignments, key=lambda a: (a.module.order, a.module.title))
    return [group_assignment_response(db, a) for a in assignments]


@admin_org_routes.post("/groups/{group_id}/assignments", response_model=GroupAssignmentResponse, status_code=201)
async def assign_module_to_group(
    group_id: int,
    body: GroupAssignmentCreate,
    current_user: User = Depends(assigner),
    db: Session = Depends(get_db),
) -> GroupAssignmentResponse:
    group = get_or_404(db, UserGroup, group_id, "Group")
    module = db.query(Module).filter(Module.id == body.module_id, Module.is_active == True).first()  # noqa: E712
    if module is None:
        raise RuleViolation("Selected module is not available.")
    exists = (
        db.query(GroupAssignment.id)
        .filter(GroupAssignment.group_id == group.id, GroupAssignment.module_id == module.id)
        .first()
    )
    if exists is not None:
        raise RuleViolation("This module is already assigned to the group.")
    assignment = GroupAssignment(
        group_id=group.id,
        module_id=module.id,
        assigned_by=current_user.email,
        due_date=body.due_date,
    )
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    logger.info("Module %s assigned to group %s by %s", module.id, group.id, current_user.email)
    return group_assignment_response(db, assignment)


@admin_org_routes.delete("/groups/{group_id}/assignments/{module_id}", response_model=MessageResponse)
async def unassign_module_from_group(
    group_id: int,
    module_id: int,
    _: User = Depends(assigner),
    db: Session = Depends(get_db),
) -> MessageResponse:
    assignment = (
        db.query(GroupAssignment)
        .filter(GroupAssignment.group_id == group_id, GroupAssignment.module_id == module_id)
        .first()
    )
    if assignment is None:
        raise NotFoundError("Assignment not found.")
    title = assignment.module.title
    db.delete(assignment)
    db.commit()
    return MessageResponse(message=f"Module '{title}' has been removed from the group.")
