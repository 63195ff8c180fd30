"""
Role based capability checks.

Every route calls ``require(role, action)`` (directly or through a dependency) instead of
relying on framework attributes, so the rules live in one table.
"""

from enum import Enum

from cybertrain.models.models import Role
from cybertrain.utils.errors import PermissionDenied


class Action(str, Enum):
    TAKE_TRAINING = "take_training"
    VIEW_OWN_PROGRESS = "view_own_progress"
    DOWNLOAD_CERTIFICATE = "download_certificate"
    MANAGE_CONTENT = "manage_content"  # modules, lessons, quizzes, questions
    MANAGE_ORGANISATION = "manage_organisation"  # companies, groups, memberships
    MANAGE_USERS = "manage_users"
    ASSIGN_MODULES = "assign_modules"
    VIEW_ADMIN_DASHBOARD = "view_admin_dashboard"


_LEARNER_ACTIONS = frozenset(
    {
        Action.TAKE_TRAINING,
        Action.VIEW_OWN_PROGRESS,
        Action.DOWNLOAD_CERTIFICATE,
    }
)

CAPABILITIES: dict[Role, frozenset[Action]] = {
    Role.USER: _LEARNER_ACTIONS,
    Role.ADMIN: frozenset(Action),
}


def can(role: Role | str | None, action: Action) -> bool:
    if role is None:
        return False
    try:
        role = Role(role)
    except ValueError:
        return False
    return action in CAPABILITIES.get(role, frozenset())


def require(role: Role | str | None, action: Action) -> None:
    if not can(role, action):
        raise PermissionDenied(f"Not allowed to {action.value.replace('_', ' ')}")
