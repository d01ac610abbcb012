"""
Platform role permissions.

Roles map to the actions they may perform on each resource. ``manage``
on a resource implies every action on it. Organisation-scoped
permissions (seats, groups, org leaderboards) are handled separately in
``app.services.organisation_permissions``.
"""
import enum
from typing import Dict, Optional, Set

from app.models.user import User, UserRole


class Resource(str, enum.Enum):
    QUIZ = "quiz"
    LEAGUE = "league"
    USER = "user"
    ORGANISATION = "organisation"
    ANALYTICS = "analytics"
    BILLING = "billing"
    SYSTEM = "system"


class Action(str, enum.Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"
    PLAY = "play"
    JOIN = "join"
    PUBLISH = "publish"


PERMISSIONS: Dict[UserRole, Dict[Resource, Set[Action]]] = {
    UserRole.STUDENT: {
        Resource.QUIZ: {Action.READ, Action.PLAY},
        Resource.LEAGUE: {Action.READ, Action.JOIN},
        Resource.USER: {Action.READ, Action.UPDATE},
    },
    UserRole.TEACHER: {
        Resource.QUIZ: {Action.READ, Action.PLAY, Action.CREATE, Action.UPDATE, Action.DELETE, Action.PUBLISH},
        Resource.LEAGUE: {Action.READ, Action.JOIN, Action.CREATE, Action.MANAGE},
        Resource.USER: {Action.READ, Action.UPDATE},
        Resource.ORGANISATION: {Action.READ},
    },
    UserRole.ORG_ADMIN: {
        Resource.QUIZ: {Action.MANAGE},
        Resource.LEAGUE: {Action.READ, Action.JOIN, Action.CREATE, Action.MANAGE},
        Resource.USER: {Action.READ, Action.UPDATE, Action.CREATE, Action.DELETE},
        Resource.ORGANISATION: {Action.READ, Action.UPDATE, Action.MANAGE},
        Resource.BILLING: {Action.READ, Action.MANAGE},
        Resource.ANALYTICS: {Action.READ},
    },
    UserRole.PLATFORM_ADMIN: {resource: {Action.MANAGE} for resource in Resource},
}


def can(user: Optional[User], action: Action, resource: Resource) -> bool:
    """Whether the user's platform role allows ``action`` on ``resource``"""
    if user is None:
        return False
    if user.is_superuser:
        return True
    allowed = PERMISSIONS.get(user.role, {}).get(resource, set())
    return Action.MANAGE in allowed or action in allowed
