"""
Billing Service - offer codes, checkout, subscriptions and invoices

Handles:
- Offer code CRUD and validation (Admin)
- Checkout: subscription create/renew, paid invoice, offer code redemption
- Subscription lookup/cancel and invoice history
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, or_, update
from sqlalchemy.exc import IntegrityError
from datetime import datetime, timedelta
from typing import Optional, List, Tuple, Dict, Any

from app.core.config import settings
from app.core.exceptions import ConflictError, ResourceNotFoundError, ValidationError
from app.core.logging_config import logger
from app.models.user import User, UserTier, UserSubscriptionStatus
from app.models.organisation import OrganisationPlan, OrganisationStatus
from app.models.billing import (
    OfferCode,
    OfferCodeRedemption,
    DiscountType,
    Subscription,
    SubscriptionStatus,
    Invoice,
    InvoiceStatus,
    PlanCode,
)
from app.schemas.billing import OfferCodeCreate, OfferCodeUpdate, CheckoutRequest
from app.services.achievement_service import achievement_service
from app.services.referral_service import referral_service
from app.services.organisation_permissions import ORG_BILLING_MANAGE, require_organisation_permission
from app.utils.codes import generate_code, generate_unique_code


def _plan_value(plan) -> str:
    return getattr(plan, "value", plan)


def get_plan(plan) -> Dict[str, Any]:
    """Price and period for ``plan`` from settings"""
    info = settings.get_plans().get(_plan_value(plan))
    if not info:
        raise ValidationError(f"Unknown plan: {_plan_value(plan)}", field="plan")
    return info


def offer_code_problem(offer: Optional[OfferCode], plan, now: Optional[datetime] = None) -> Optional[str]:
    """Why ``offer`` cannot be used for ``plan`` right now, or None if it can"""
    now = now or datetime.utcnow()
    if offer is None:
        return "Invalid offer code"
    if not offer.is_active:
        return "This offer code is no longer active"
    if offer.valid_from and now < offer.valid_from:
        return "This offer code is not valid yet"
    if offer.valid_until and now > offer.valid_until:
        return "This offer code has expired"
    if offer.is_exhausted:
        return "This offer code has reached its usage limit"
    if not offer.applies_to(_plan_value(plan)):
        return "This offer code does not apply to the selected plan"
    return None


def calculate_discount(offer: Optional[OfferCode], price_cents: int) -> Tuple[int, int]:
    """(discount_cents, trial_extension_days) for a price"""
    if offer is None:
        return 0, 0
    if offer.discount_type == DiscountType.PERCENTAGE:
        return price_cents * min(offer.discount_value, 100) // 100, 0
    if offer.discount_type == DiscountType.FIXED_AMOUNT:
        return min(offer.discount_value, price_cents), 0
    return 0, offer.discount_value


class BillingService:
    """Service for offer codes, checkout and subscriptions"""

    # ==================== OFFER CODE CRUD ====================

    async def get_offer_code(self, db: AsyncSession, offer_code_id: str) -> OfferCode:
        offer = await db.get(OfferCode, offer_code_id)
        if offer is None:
            raise ResourceNotFoundError("OfferCode", offer_code_id)
        return offer

    async def get_offer_code_by_code(self, db: AsyncSession, code: str) -> Optional[OfferCode]:
        result = await db.execute(
            select(OfferCode).where(OfferCode.code == code.strip().upper())
        )
        return result.scalar_one_or_none()

    async def list_offer_codes(
        self,
        db: AsyncSession,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[List[OfferCode], int]:
        conditions = []
        if search:
            search_term = f"%{search}%"
            conditions.append(or_(
                OfferCode.code.ilike(search_term),
                OfferCode.description.ilike(search_term),
            ))
        if is_active is not None:
            conditions.append(OfferCode.is_active.is_(is_active))

        query = select(OfferCode)
        count_query = select(func.count(OfferCode.id))
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))
        total = (await db.execute(count_query)).scalar() or 0

        query = query.order_by(OfferCode.created_at.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await db.execute(query)
        return list(result.scalars().all()), total

    async def create_offer_code(self, db: AsyncSession, data: OfferCodeCreate, created_by_id: str) -> OfferCode:
        """Create an offer code; an empty code is generated"""
        async def taken(code: str) -> bool:
            return await db.scalar(select(OfferCode.id).where(OfferCode.code == code)) is not None

        if data.code:
            if await taken(data.code):
                raise ConflictError(f"Offer code '{data.code}' already exists", field="code")
            code = data.code
        else:
            code = await generate_unique_code(taken, generator=generate_code)

        offer = OfferCode(
            code=code,
            description=data.description,
            discount_type=data.discount_type,
            discount_value=data.discount_value,
            max_uses=data.max_uses,
            current_uses=0,
            valid_from=data.valid_from or datetime.utcnow(),
            valid_until=data.valid_until,
            applicable_plans=[_plan_value(p) for p in data.applicable_plans],
            is_active=data.is_active,
            created_by=created_by_id,
        )
        db.add(offer)
        try:
            await db.flush()
        except IntegrityError:
            raise ConflictError(f"Offer code '{code}' already exists", field="code")
        await db.refresh(offer)

        logger.log_domain_event("offer_code", "created", str(offer.id), code=code)
        return offer

    async def update_offer_code(self, db: AsyncSession, offer_code_id: str, data: OfferCodeUpdate) -> OfferCode:
        offer = await self.get_offer_code(db, offer_code_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "applicable_plans":
                value = [_plan_value(p) for p in (value or [])]
            elif value is None and field in ("discount_value", "is_active", "valid_from"):
                continue
            setattr(offer, field, value)

        if offer.discount_type == DiscountType.PERCENTAGE and offer.discount_value > 100:
            raise ValidationError("Percentage discount cannot exceed 100", field="discount_value")
        if offer.valid_until and offer.valid_from and offer.valid_until <= offer.valid_from:
            raise ValidationError("valid_until must be after valid_from", field="valid_until")

        offer.updated_at = datetime.utcnow()
        await db.flush()
        await db.refresh(offer)
        return offer

    async def delete_offer_code(self, db: AsyncSession, offer_code_id: str) -> OfferCode:
        offer = await self.get_offer_code(db, offer_code_id)
        await db.delete(offer)
        await db.flush()
        logger.log_domain_event("offer_code", "deleted", offer_code_id, code=offer.code)
        return offer

    # ==================== VALIDATION ====================

    async def _already_redeemed(self, db: AsyncSession, offer: OfferCode, user: User) -> bool:
        return await db.scalar(
            select(OfferCodeRedemption.id).where(and_(
                OfferCodeRedemption.offer_code_id == offer.id,
                OfferCodeRedemption.user_id == user.id,
            ))
        ) is not None

    async def validate_offer_code(
        self,
        db: AsyncSession,
        code: str,
        plan: PlanCode,
        user: Optional[User] = None
    ) -> Dict[str, Any]:
        price = get_plan(plan)["price_cents"]
        offer = await self.get_offer_code_by_code(db, code)

        problem = offer_code_problem(offer, plan)
        if problem is None and user is not None and await self._already_redeemed(db, offer, user):
            problem = "You have already used this offer code"
        if problem:
            return {
                "valid": False,
                "message": problem,
                "original_amount_cents": price,
                "final_amount_cents": price,
            }

        discount, trial_days = calculate_discount(offer, price)
        return {
            "valid": True,
            "message": "Offer code applied",
            "discount_type": offer.discount_type.value,
            "discount_cents": discount,
            "original_amount_cents": price,
            "final_amount_cents": price - discount,
            "trial_extension_days": trial_days,
        }

    # ==================== CHECKOUT ====================

    async def _redeem(self, db: AsyncSession, offer: OfferCode, user: User, invoice: Invoice) -> None:
        """Count one use of ``offer``; the usage ceiling is enforced in the UPDATE itself"""
        result = await db.execute(
            update(OfferCode)
            .where(and_(
                OfferCode.id == offer.id,
                or_(OfferCode.max_uses.is_(None), OfferCode.current_uses < OfferCode.max_uses),
            ))
            .values(current_uses=OfferCode.current_uses + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ValidationError("This offer code has reached its usage limit", field="offer_code")
        await db.refresh(offer, ["current_uses"])

        db.add(OfferCodeRedemption(offer_code_id=offer.id, user_id=user.id, invoice_id=invoice.id))
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ValidationError("You have already used this offer code", field="offer_code")

    async def _current_subscription(
        self,
        db: AsyncSession,
        user_id: Optional[str] = None,
        organisation_id: Optional[str] = None
    ) -> Optional[Subscription]:
        query = select(Subscription)
        if organisation_id:
            query = query.where(Subscription.organisation_id == organisation_id)
        else:
            query = query.where(and_(
                Subscription.user_id == user_id,
                Subscription.organisation_id.is_(None),
            ))
        result = await db.execute(query.order_by(Subscription.created_at.desc()).limit(1))
        return result.scalar_one_or_none()

    async def checkout(self, db: AsyncSession, user: User, data: CheckoutRequest) -> Dict[str, Any]:
        """
        Buy or renew a plan.

        A FREE_TRIAL_EXTENSION code extends the caller's free trial and
        issues a zero-amount invoice instead of touching the subscription.
        """
        plan = get_plan(data.plan)
        now = datetime.utcnow()

        organisation = None
        if data.organisation_id:
            context = await require_organisation_permission(
                db, data.organisation_id, user.id, ORG_BILLING_MANAGE
            )
            organisation = context.organisation

        offer = None
        if data.offer_code:
            offer = await self.get_offer_code_by_code(db, data.offer_code)
            problem = offer_code_problem(offer, data.plan, now)
            if problem:
                raise ValidationError(problem, field="offer_code")
            if await self._already_redeemed(db, offer, user):
                raise ValidationError("You have already used this offer code", field="offer_code")

        discount, trial_days = calculate_discount(offer, plan["price_cents"])

        if trial_days:
            start = user.free_trial_until if user.free_trial_until and user.free_trial_until > now else now
            user.free_trial_until = start + timedelta(days=trial_days)
            if user.subscription_status != UserSubscriptionStatus.ACTIVE:
                user.subscription_status = UserSubscriptionStatus.FREE_TRIAL

            invoice = Invoice(
                user_id=user.id,
                subtotal_cents=0,
                discount_cents=0,
                amount_cents=0,
                currency=settings.BILLING_CURRENCY,
                status=InvoiceStatus.PAID,
                offer_code_id=offer.id,
                description=f"Free trial extension ({trial_days} days)",
                issued_at=now,
                paid_at=now,
            )
            db.add(invoice)
            await db.flush()
            await self._redeem(db, offer, user, invoice)
            await db.commit()

            logger.log_domain_event(
                "billing", "trial_extended", str(user.id), days=trial_days, code=offer.code
            )
            await self.on_premium_activated(db, user)
            return {
                "subscription": None,
                "invoice": invoice,
                "free_trial_until": user.free_trial_until,
                "is_premium": user.is_premium,
            }

        subscription = await self._current_subscription(
            db, user_id=user.id, organisation_id=organisation.id if organisation else None
        )
        period = timedelta(days=plan["period_days"])
        if (
            subscription is not None
            and subscription.status == SubscriptionStatus.ACTIVE
            and subscription.current_period_end > now
        ):
            # Renewal stacks on the unexpired period
            subscription.current_period_end = subscription.current_period_end + period
        else:
            if subscription is None:
                subscription = Subscription(
                    user_id=None if organisation else user.id,
                    organisation_id=organisation.id if organisation else None,
                )
                db.add(subscription)
            subscription.current_period_start = now
            subscription.current_period_end = now + period
        subscription.plan = data.plan
        subscription.status = SubscriptionStatus.ACTIVE
        subscription.cancel_at_period_end = False
        subscription.cancelled_at = None
        await db.flush()

        invoice = Invoice(
            subscription_id=subscription.id,
            user_id=user.id,
            subtotal_cents=plan["price_cents"],
            discount_cents=discount,
            amount_cents=plan["price_cents"] - discount,
            currency=settings.BILLING_CURRENCY,
            status=InvoiceStatus.PAID,
            offer_code_id=offer.id if offer else None,
            description=plan["name"],
            issued_at=now,
            paid_at=now,
        )
        db.add(invoice)
        await db.flush()

        if offer is not None:
            await self._redeem(db, offer, user, invoice)

        if organisation is not None:
            organisation.plan = OrganisationPlan(data.plan.value)
            organisation.status = OrganisationStatus.ACTIVE
            organisation.current_period_end = subscription.current_period_end
        else:
            user.tier = UserTier.PREMIUM
            user.subscription_status = UserSubscriptionStatus.ACTIVE

        await db.commit()

        logger.log_domain_event(
            "billing", "checkout", str(subscription.id),
            user_id=str(user.id),
            plan=data.plan.value,
            amount_cents=invoice.amount_cents,
            offer_code=offer.code if offer else None,
        )
        if organisation is None:
            await self.on_premium_activated(db, user)

        return {
            "subscription": subscription,
            "invoice": invoice,
            "free_trial_until": user.free_trial_until,
            "is_premium": user.is_premium,
        }

    async def on_premium_activated(self, db: AsyncSession, user: User) -> None:
        """Retro-unlock premium achievements and reward whoever referred ``user``"""
        await achievement_service.retro_unlock_on_upgrade(db, user)
        await referral_service.process_referral_reward(db, user)

    # ==================== SUBSCRIPTIONS & INVOICES ====================

    async def get_subscription(self, db: AsyncSession, user: User) -> Optional[Subscription]:
        return await self._current_subscription(db, user_id=user.id)

    async def cancel_subscription(self, db: AsyncSession, user: User) -> Subscription:
        """Stop renewal; access continues until the period ends"""
        subscription = await self.get_subscription(db, user)
        if subscription is None or subscription.status not in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING):
            raise ResourceNotFoundError("Subscription", message="No active subscription")

        subscription.cancel_at_period_end = True
        subscription.cancelled_at = datetime.utcnow()
        await db.commit()

        logger.log_domain_event("billing", "subscription_cancelled", str(subscription.id), user_id=str(user.id))
        return subscription

    async def list_invoices(
        self,
        db: AsyncSession,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Invoice], int]:
        conditions = []
        if user_id:
            conditions.append(Invoice.user_id == user_id)
        if status:
            try:
                conditions.append(Invoice.status == InvoiceStatus(status.upper()))
            except ValueError:
                raise ValidationError(f"Invalid status: {status}", field="status")

        query = select(Invoice)
        count_query = select(func.count(Invoice.id))
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))
        total = (await db.execute(count_query)).scalar() or 0

        query = query.order_by(Invoice.issued_at.desc()).offset((page - 1) * page_size).limit(page_size)
        result = await db.execute(query)
        return list(result.scalars().all()), total

    async def list_subscriptions(
        self,
        db: AsyncSession,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[Subscription], int]:
        query = select(Subscription)
        count_query = select(func.count(Subscription.id))
        if status:
            try:
                condition = Subscription.status == SubscriptionStatus(status.upper())
            except ValueError:
                raise ValidationError(f"Invalid status: {status}", field="status")
            query = query.where(condition)
            count_query = count_query.where(condition)
        total = (await db.execute(count_query)).scalar() or 0

        query = query.order_by(Subscription.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
        result = await db.execute(query)
        return list(result.scalars().all()), total

    def list_plans(self) -> List[Dict[str, Any]]:
        return [
            {
                "code": code,
                "name": info["name"],
                "price_cents": info["price_cents"],
                "period_days": info["period_days"],
                "currency": settings.BILLING_CURRENCY,
            }
            for code, info in settings.get_plans().items()
            if info
        ]


billing_service = BillingService()
