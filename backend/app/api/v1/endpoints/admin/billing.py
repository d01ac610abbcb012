"""
Admin Billing endpoints - offer codes, subscriptions, invoices
"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_db
from app.models.user import User
from app.modules.auth.dependencies import get_current_admin
from app.schemas.billing import (
    OfferCodeCreate,
    OfferCodeUpdate,
    OfferCodeResponse,
    OfferCodeListResponse,
    SubscriptionResponse,
    SubscriptionListResponse,
    InvoiceResponse,
    InvoiceListResponse,
)
from app.services.billing_service import billing_service
from app.api.v1.endpoints.admin.audit_logs import log_admin_action

router = APIRouter()


# ==================== Offer Codes ====================

@router.get("/offer-codes", response_model=OfferCodeListResponse)
async def list_offer_codes(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    search: Optional[str] = Query(None, description="Search by code or description"),
    is_active: Optional[bool] = Query(None),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    offer_codes, total = await billing_service.list_offer_codes(
        db=db,
        page=page,
        page_size=page_size,
        search=search,
        is_active=is_active
    )
    return OfferCodeListResponse(
        offer_codes=[OfferCodeResponse.model_validate(o) for o in offer_codes],
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/offer-codes", response_model=OfferCodeResponse, status_code=status.HTTP_201_CREATED)
async def create_offer_code(
    data: OfferCodeCreate,
    request: Request,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a new offer code

    Leave ``code`` empty to generate one. Percentage discounts are
    capped at 100.
    """
    offer = await billing_service.create_offer_code(db, data, admin.id)
    await log_admin_action(
        db, admin.id, "offer_code_created", "offer_code", offer.id,
        {"code": offer.code, "discount_type": offer.discount_type.value,
         "discount_value": offer.discount_value},
        request
    )
    return offer


@router.patch("/offer-codes/{offer_code_id}", response_model=OfferCodeResponse)
async def update_offer_code(
    offer_code_id: str,
    data: OfferCodeUpdate,
    request: Request,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    offer = await billing_service.update_offer_code(db, offer_code_id, data)
    await log_admin_action(
        db, admin.id, "offer_code_updated", "offer_code", offer.id,
        {"code": offer.code, "fields": sorted(data.model_dump(exclude_unset=True).keys())},
        request
    )
    return offer


@router.delete("/offer-codes/{offer_code_id}")
async def delete_offer_code(
    offer_code_id: str,
    request: Request,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    offer = await billing_service.delete_offer_code(db, offer_code_id)
    await log_admin_action(
        db, admin.id, "offer_code_deleted", "offer_code", offer_code_id, {"code": offer.code}, request
    )
    return {"success": True, "message": f"Offer code {offer.code} deleted"}


# ==================== Subscriptions & Invoices ====================

@router.get("/subscriptions", response_model=SubscriptionListResponse)
async def list_subscriptions(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, description="TRIALING, ACTIVE, PAST_DUE, CANCELLED or EXPIRED"),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    subscriptions, total = await billing_service.list_subscriptions(db, status, page, page_size)
    return SubscriptionListResponse(
        subscriptions=[SubscriptionResponse.model_validate(s) for s in subscriptions],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/invoices", response_model=InvoiceListResponse)
async def list_invoices(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, description="DRAFT, OPEN, PAID or VOID"),
    user_id: Optional[str] = Query(None),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    invoices, total = await billing_service.list_invoices(
        db, user_id=user_id, status=status, page=page, page_size=page_size
    )
    return InvoiceListResponse(
        invoices=[InvoiceResponse.model_validate(i) for i in invoices],
        total=total,
        page=page,
        page_size=page_size
    )
