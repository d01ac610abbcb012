"""
User Service - platform admin actions on user accounts

Suspending a user blocks login and token use; tier and role changes
take effect on the next request.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from typing import Tuple

from app.core.exceptions import ResourceNotFoundError, ValidationError
from app.core.logging_config import logger
from app.models.user import User
from app.schemas.admin import UserAction, UserActionRequest
from app.services.referral_service import referral_service


class UserService:

    async def get_user_or_404(self, db: AsyncSession, user_id: str) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise ResourceNotFoundError("User", user_id)
        return user

    async def apply_admin_action(
        self,
        db: AsyncSession,
        user_id: str,
        request: UserActionRequest,
        admin: User
    ) -> Tuple[User, str]:
        """Run one admin action; the caller commits together with the audit row"""
        try:
            action = UserAction(request.action)
        except ValueError:
            supported = ", ".join(a.value for a in UserAction)
            raise ValidationError(f"Invalid action: {request.action}. Must be one of: {supported}", field="action")

        user = await self.get_user_or_404(db, user_id)
        acting_on_self = str(user.id) == str(admin.id)

        if action == UserAction.SUSPEND:
            if acting_on_self:
                raise ValidationError("You cannot suspend your own account", field="action")
            user.is_active = False
            message = "User suspended"
        elif action == UserAction.ACTIVATE:
            user.is_active = True
            message = "User activated"
        elif action == UserAction.CHANGE_TIER:
            user.tier = request.tier
            message = f"Tier changed to {request.tier.value}"
        elif action == UserAction.CHANGE_ROLE:
            if acting_on_self:
                raise ValidationError("You cannot change your own role", field="role")
            user.role = request.role
            message = f"Role changed to {request.role.value}"
        else:
            user.referral_code = await referral_service.new_referral_code(db)
            message = "Referral code generated"

        await db.flush()
        await db.refresh(user)

        logger.log_domain_event("user", f"admin_{action.value}", str(user.id), admin_id=str(admin.id))
        return user, message


user_service = UserService()
