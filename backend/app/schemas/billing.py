"""
Billing Schemas - offer codes, checkout, subscriptions, invoices
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime

from app.models.billing import DiscountType, PlanCode


def _enum_value(v):
    return getattr(v, 'value', v)


# ============== Offer Codes ==============

class OfferCodeCreate(BaseModel):
    code: Optional[str] = Field(None, min_length=3, max_length=50, description="Leave empty to auto-generate")
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: int = Field(..., gt=0)
    max_uses: Optional[int] = Field(None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    applicable_plans: List[PlanCode] = []
    is_active: bool = True

    @field_validator('code')
    @classmethod
    def uppercase_code(cls, v):
        return v.strip().upper() if v else None

    @model_validator(mode='after')
    def check_discount(self):
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        if self.valid_from and self.valid_until and self.valid_until <= self.valid_from:
            raise ValueError("valid_until must be after valid_from")
        return self


class OfferCodeUpdate(BaseModel):
    description: Optional[str] = None
    discount_value: Optional[int] = Field(None, gt=0)
    max_uses: Optional[int] = Field(None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    applicable_plans: Optional[List[PlanCode]] = None
    is_active: Optional[bool] = None


class OfferCodeResponse(BaseModel):
    id: str
    code: str
    description: Optional[str] = None
    discount_type: str
    discount_value: int
    max_uses: Optional[int] = None
    current_uses: int
    valid_from: datetime
    valid_until: Optional[datetime] = None
    applicable_plans: List[str] = []
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True

    @field_validator('discount_type', mode='before')
    @classmethod
    def enum_value(cls, v):
        return _enum_value(v)

    @field_validator('applicable_plans', mode='before')
    @classmethod
    def default_plans(cls, v):
        return [_enum_value(p) for p in (v or [])]


class OfferCodeListResponse(BaseModel):
    offer_codes: List[OfferCodeResponse]
    total: int
    page: int
    page_size: int


class OfferCodeValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    plan: PlanCode

    @field_validator('code')
    @classmethod
    def uppercase_code(cls, v):
        return v.strip().upper()


class OfferCodeValidateResponse(BaseModel):
    valid: bool
    message: str
    discount_type: Optional[str] = None
    discount_cents: int = 0
    original_amount_cents: int = 0
    final_amount_cents: int = 0
    trial_extension_days: int = 0


# ============== Checkout / Subscriptions ==============

class CheckoutRequest(BaseModel):
    plan: PlanCode
    offer_code: Optional[str] = Field(None, max_length=50)
    organisation_id: Optional[str] = None

    @field_validator('offer_code')
    @classmethod
    def uppercase_code(cls, v):
        return v.strip().upper() if v else None


class SubscriptionResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    organisation_id: Optional[str] = None
    plan: str
    status: str
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

    @field_validator('plan', 'status', mode='before')
    @classmethod
    def enum_value(cls, v):
        return _enum_value(v)


class InvoiceResponse(BaseModel):
    id: str
    subscription_id: Optional[str] = None
    user_id: str
    subtotal_cents: int
    discount_cents: int
    amount_cents: int
    currency: str
    status: str
    offer_code_id: Optional[str] = None
    description: Optional[str] = None
    issued_at: datetime
    paid_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator('status', mode='before')
    @classmethod
    def enum_value(cls, v):
        return _enum_value(v)


class CheckoutResponse(BaseModel):
    subscription: Optional[SubscriptionResponse] = None
    invoice: InvoiceResponse
    free_trial_until: Optional[datetime] = None
    is_premium: bool


class SubscriptionLookup(BaseModel):
    subscription: Optional[SubscriptionResponse] = None


class InvoiceListResponse(BaseModel):
    invoices: List[InvoiceResponse]
    total: int
    page: int
    page_size: int


class SubscriptionListResponse(BaseModel):
    subscriptions: List[SubscriptionResponse]
    total: int
    page: int
    page_size: int


class PlanResponse(BaseModel):
    code: str
    name: str
    price_cents: int
    period_days: int
    currency: str
