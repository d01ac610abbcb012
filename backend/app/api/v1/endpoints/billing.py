"""
SUBSCRIPTION & BILLING API
===========================
Plans, offer code validation, checkout, the caller's subscription and
invoice history. Payment capture is not wired here: checkout records a
PAID invoice directly.
"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.core.database import get_db
from app.core.rate_limiter import code_guess_rate_limit
from app.models.user import User
from app.modules.auth.dependencies import get_current_user
from app.schemas.billing import (
    PlanResponse,
    OfferCodeValidateRequest,
    OfferCodeValidateResponse,
    CheckoutRequest,
    CheckoutResponse,
    SubscriptionResponse,
    SubscriptionLookup,
    InvoiceResponse,
    InvoiceListResponse,
)
from app.services.billing_service import billing_service

router = APIRouter()


@router.get("/plans", response_model=List[PlanResponse])
async def list_plans():
    """Plans on sale, priced in the billing currency"""
    return billing_service.list_plans()


@router.post("/offer-codes/validate", response_model=OfferCodeValidateResponse)
@code_guess_rate_limit()
async def validate_offer_code(
    request: Request,
    data: OfferCodeValidateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Check an offer code against a plan without redeeming it.

    An unusable code is a 200 with ``valid: false`` and the reason.
    """
    return await billing_service.validate_offer_code(db, data.code, data.plan, current_user)


@router.post("/checkout", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def checkout(
    data: CheckoutRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await billing_service.checkout(db, current_user, data)


@router.get("/subscription", response_model=SubscriptionLookup)
async def get_subscription(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    subscription = await billing_service.get_subscription(db, current_user)
    return SubscriptionLookup(
        subscription=SubscriptionResponse.model_validate(subscription) if subscription else None
    )


@router.post("/subscription/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Cancel at the end of the current period"""
    return await billing_service.cancel_subscription(db, current_user)


@router.get("/invoices", response_model=InvoiceListResponse)
async def list_invoices(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    invoices, total = await billing_service.list_invoices(
        db, user_id=current_user.id, page=page, page_size=page_size
    )
    return InvoiceListResponse(
        invoices=[InvoiceResponse.model_validate(i) for i in invoices],
        total=total,
        page=page,
        page_size=page_size
    )
