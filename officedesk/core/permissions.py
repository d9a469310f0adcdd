"""
Authorization Policy Module

A single table maps (action, role) to the relationships with a task that grant
access. Route handlers and services call `can` / `require` instead of
comparing role strings inline.
"""
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Tuple, Union

from officedesk.core.errors import AuthorizationError
from officedesk.models.user import User, UserRole


class Action(str, Enum):
    CREATE_TASK = "create_task"
    VIEW_TASK = "view_task"
    EDIT_TASK = "edit_task"
    DELETE_TASK = "delete_task"
    REASSIGN_TASK = "reassign_task"
    UPDATE_TASK_STATUS = "update_task_status"
    COMMENT_TASK = "comment_task"
    APPROVE_BILLING = "approve_billing"
    VIEW_CLIENT = "view_client"
    MODIFY_CLIENT = "modify_client"
    MANAGE_USERS = "manage_users"


class Relationship(str, Enum):
    """How the acting user relates to the task being acted on."""
    CREATOR = "creator"
    ASSIGNEE = "assignee"
    # user-level flag rather than a task relationship
    BILLING_APPROVER = "billing_approver"


class _Always:
    def __repr__(self):
        return "ALWAYS"


ALWAYS = _Always()
NEVER: FrozenSet[Relationship] = frozenset()

Grant = Union[_Always, FrozenSet[Relationship]]

_CREATOR = frozenset({Relationship.CREATOR})
_INVOLVED = frozenset({Relationship.CREATOR, Relationship.ASSIGNEE})

STAFF_ROLES = (
    UserRole.ADMIN,
    UserRole.PARTNER,
    UserRole.BUSINESS_EXECUTIVE,
    UserRole.BUSINESS_CONSULTANT,
)
JUNIOR_ROLES = (UserRole.BUSINESS_EXECUTIVE, UserRole.BUSINESS_CONSULTANT)


def _build_policy() -> Dict[Tuple[Action, UserRole], Grant]:
    policy: Dict[Tuple[Action, UserRole], Grant] = {}

    # Admins can do everything
    for action in Action:
        policy[(action, UserRole.ADMIN)] = ALWAYS

    policy[(Action.CREATE_TASK, UserRole.PARTNER)] = ALWAYS
    policy[(Action.VIEW_TASK, UserRole.PARTNER)] = _INVOLVED
    policy[(Action.EDIT_TASK, UserRole.PARTNER)] = _CREATOR
    policy[(Action.DELETE_TASK, UserRole.PARTNER)] = _CREATOR
    policy[(Action.REASSIGN_TASK, UserRole.PARTNER)] = _INVOLVED
    policy[(Action.UPDATE_TASK_STATUS, UserRole.PARTNER)] = _INVOLVED
    policy[(Action.COMMENT_TASK, UserRole.PARTNER)] = _INVOLVED
    policy[(Action.APPROVE_BILLING, UserRole.PARTNER)] = frozenset({Relationship.BILLING_APPROVER})
    policy[(Action.VIEW_CLIENT, UserRole.PARTNER)] = ALWAYS

    for role in JUNIOR_ROLES:
        policy[(Action.VIEW_TASK, role)] = _INVOLVED
        policy[(Action.UPDATE_TASK_STATUS, role)] = _INVOLVED
        policy[(Action.COMMENT_TASK, role)] = _INVOLVED
        policy[(Action.VIEW_CLIENT, role)] = ALWAYS

    return policy


POLICY = _build_policy()


def relationships(user: User, task=None, assignee_ids: Optional[Iterable[str]] = None) -> FrozenSet[Relationship]:
    """
    Compute the user's relationships to a task.

    `assignee_ids` overrides the task's loaded assignees, which lets callers
    evaluate against a snapshot taken earlier in the request.
    """
    found = set()
    if user.can_approve_billing:
        found.add(Relationship.BILLING_APPROVER)
    if task is None:
        return frozenset(found)

    if task.assigned_by_id == user.id:
        found.add(Relationship.CREATOR)
    if assignee_ids is None:
        assignee_ids = [a.user_id for a in task.task_assignees]
    if user.id in set(assignee_ids):
        found.add(Relationship.ASSIGNEE)
    return frozenset(found)


def can(user: Optional[User], action: Action, task=None, assignee_ids: Optional[Iterable[str]] = None) -> bool:
    if user is None or not user.is_active:
        return False
    grant = POLICY.get((action, UserRole(user.role)), NEVER)
    if grant is ALWAYS:
        return True
    if not grant:
        return False
    return bool(grant & relationships(user, task, assignee_ids))


def require(
    user: Optional[User],
    action: Action,
    task=None,
    detail: Optional[str] = None,
    assignee_ids: Optional[Iterable[str]] = None,
) -> None:
    if not can(user, action, task, assignee_ids):
        raise AuthorizationError(detail or f"You don't have permission to {action.value.replace('_', ' ')}")
