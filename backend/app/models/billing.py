from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, Integer, Boolean, ForeignKey, JSON, Text, UniqueConstraint, Index
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid


class PlanCode(str, enum.Enum):
    """Plans sold at checkout (prices come from settings)"""
    INDIVIDUAL = "INDIVIDUAL"
    ORG_MONTHLY = "ORG_MONTHLY"
    ORG_ANNUAL = "ORG_ANNUAL"


class SubscriptionStatus(str, enum.Enum):
    """Subscription status"""
    TRIALING = "TRIALING"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class InvoiceStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    PAID = "PAID"
    VOID = "VOID"


class DiscountType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"                      # discount_value is 0-100
    FIXED_AMOUNT = "FIXED_AMOUNT"                  # discount_value in cents
    FREE_TRIAL_EXTENSION = "FREE_TRIAL_EXTENSION"  # discount_value in days


class Subscription(Base):
    """Individual or organisation subscription"""
    __tablename__ = "subscriptions"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    organisation_id = Column(GUID, ForeignKey("organisations.id", ondelete="CASCADE"), nullable=True, index=True)

    plan = Column(SQLEnum(PlanCode), nullable=False)
    status = Column(SQLEnum(SubscriptionStatus), default=SubscriptionStatus.ACTIVE, nullable=False)

    # Billing period
    current_period_start = Column(DateTime, nullable=False)
    current_period_end = Column(DateTime, nullable=False)

    # Cancellation
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)
    cancelled_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Subscription {self.plan} {self.status}>"


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    subscription_id = Column(GUID, ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Amounts in cents
    subtotal_cents = Column(Integer, nullable=False)
    discount_cents = Column(Integer, default=0, nullable=False)
    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(10), default="GBP", nullable=False)

    status = Column(SQLEnum(InvoiceStatus), default=InvoiceStatus.OPEN, nullable=False)
    offer_code_id = Column(GUID, ForeignKey("offer_codes.id", ondelete="SET NULL"), nullable=True)
    description = Column(Text, nullable=True)

    issued_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    paid_at = Column(DateTime, nullable=True)


class OfferCode(Base):
    """Discount code applied at checkout, with usage limits and expiry"""
    __tablename__ = "offer_codes"

    __table_args__ = (
        Index('ix_offer_codes_active', 'is_active'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    code = Column(String(50), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)

    discount_type = Column(SQLEnum(DiscountType), nullable=False)
    discount_value = Column(Integer, nullable=False)

    max_uses = Column(Integer, nullable=True)  # null = unlimited
    current_uses = Column(Integer, default=0, nullable=False)

    valid_from = Column(DateTime, default=datetime.utcnow, nullable=False)
    valid_until = Column(DateTime, nullable=True)  # null = no expiry
    applicable_plans = Column(JSON, default=list)  # empty = all plans

    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.current_uses >= self.max_uses

    def applies_to(self, plan: str) -> bool:
        return not self.applicable_plans or plan in self.applicable_plans

    def __repr__(self):
        return f"<OfferCode {self.code}>"


class OfferCodeRedemption(Base):
    """One redemption per user per code"""
    __tablename__ = "offer_code_redemptions"

    __table_args__ = (
        UniqueConstraint('offer_code_id', 'user_id', name='uq_offer_code_user'),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    offer_code_id = Column(GUID, ForeignKey("offer_codes.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_id = Column(GUID, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)
    redeemed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
