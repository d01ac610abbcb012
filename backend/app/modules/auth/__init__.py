# Authentication module

from app.modules.auth.dependencies import (
    get_current_user,
    get_optional_user,
    get_current_admin,
    get_premium_user,
    require_permission,
)

from app.modules.auth.permissions import (
    Action,
    Resource,
    can,
)

__all__ = [
    # User authentication
    "get_current_user",
    "get_optional_user",
    "get_current_admin",
    "get_premium_user",
    # Platform permissions
    "Action",
    "Resource",
    "can",
    "require_permission",
]
