"""
Authorization decisions for projects, tickets, attachments and comments.

Everything here is a pure function of the actor and the resource documents
passed in. Callers load those documents fresh before asking.
"""
from enum import Enum
from typing import Optional

from bson import ObjectId

from bugtracker.errors import Forbidden
from bugtracker.schemas.project import Role
from bugtracker.services.membership import role_of


class Action(str, Enum):
    PROJECT_READ = "project:read"
    PROJECT_UPDATE = "project:update"
    PROJECT_DELETE = "project:delete"
    MEMBER_ADD = "project:member-add"
    MEMBER_REMOVE = "project:member-remove"
    TICKET_CREATE = "ticket:create"
    TICKET_LIST = "ticket:list"
    TICKET_UPDATE = "ticket:update"
    TICKET_DELETE = "ticket:delete"
    ATTACHMENT_ADD = "ticket:attachment-add"
    ATTACHMENT_REMOVE = "ticket:attachment-remove"
    COMMENT_CREATE = "comment:create"
    COMMENT_LIST = "comment:list"
    COMMENT_DELETE = "comment:delete"


# Actions open to anyone on the roster, whatever their role
MEMBER_ACTIONS = frozenset({
    Action.PROJECT_READ,
    Action.TICKET_CREATE,
    Action.TICKET_LIST,
    Action.TICKET_UPDATE,
    Action.ATTACHMENT_ADD,
    Action.COMMENT_CREATE,
    Action.COMMENT_LIST,
})

ROLE_CAPABILITIES: dict[Role, frozenset[Action]] = {
    Role.ADMIN: MEMBER_ACTIONS | {Action.ATTACHMENT_REMOVE},
    Role.MANAGER: MEMBER_ACTIONS | {Action.ATTACHMENT_REMOVE},
    Role.DEVELOPER: MEMBER_ACTIONS | {Action.ATTACHMENT_REMOVE},
    Role.VIEWER: MEMBER_ACTIONS,
}

OWNER_ACTIONS = frozenset({
    Action.PROJECT_UPDATE,
    Action.PROJECT_DELETE,
    Action.MEMBER_ADD,
    Action.MEMBER_REMOVE,
})

DENIAL_MESSAGES = {
    Action.PROJECT_READ: "Not authorized to view this project",
    Action.PROJECT_UPDATE: "Not authorized to update this project",
    Action.PROJECT_DELETE: "Not authorized to delete this project",
    Action.MEMBER_ADD: "Not authorized to manage team for this project",
    Action.MEMBER_REMOVE: "Not authorized to manage team for this project",
    Action.TICKET_CREATE: "Not authorized to create tickets in this project",
    Action.TICKET_LIST: "Not authorized to view tickets for this project",
    Action.TICKET_UPDATE: "Not authorized to update this ticket",
    Action.TICKET_DELETE: "Not authorized to delete this ticket",
    Action.ATTACHMENT_ADD: "Not authorized to add attachments to this ticket",
    Action.ATTACHMENT_REMOVE: "Not authorized to remove attachments",
    Action.COMMENT_CREATE: "Not authorized to comment on this ticket",
    Action.COMMENT_LIST: "Not authorized to view comments on this ticket",
    Action.COMMENT_DELETE: "Not authorized to delete this comment",
}


def is_allowed(
    action: Action,
    actor_id: ObjectId,
    project: Optional[dict],
    *,
    ticket: Optional[dict] = None,
    comment: Optional[dict] = None,
) -> bool:
    if action in OWNER_ACTIONS:
        return project is not None and actor_id == project["owner"]

    if action == Action.TICKET_DELETE:
        if ticket is None:
            raise ValueError("ticket is required to decide on ticket deletion")
        if actor_id == ticket["reporter"]:
            return True
        return project is not None and actor_id == project["owner"]

    if action == Action.COMMENT_DELETE:
        if comment is None:
            raise ValueError("comment is required to decide on comment deletion")
        return actor_id == comment["user"]

    role = role_of(project, actor_id) if project is not None else None
    if role is None:
        return False
    return action in ROLE_CAPABILITIES[role]


def ensure_allowed(
    action: Action,
    actor_id: ObjectId,
    project: Optional[dict],
    *,
    ticket: Optional[dict] = None,
    comment: Optional[dict] = None,
) -> None:
    """Raise Forbidden unless ``actor_id`` may perform ``action``."""
    if not is_allowed(action, actor_id, project, ticket=ticket, comment=comment):
        raise Forbidden(DENIAL_MESSAGES[action])
