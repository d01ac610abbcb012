"""
Admin Organisation Management endpoints.
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_db
from app.models.user import User
from app.modules.auth.dependencies import get_current_admin
from app.schemas.admin import (
    AdminOrganisationResponse,
    AdminOrganisationListResponse,
    OrganisationActionRequest,
    OrganisationActionResponse,
)
from app.services.organisation_service import organisation_service
from app.api.v1.endpoints.admin.audit_logs import log_admin_action

router = APIRouter()


@router.get("", response_model=AdminOrganisationListResponse)
async def list_organisations(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    search: Optional[str] = Query(None, description="Search name and email domain"),
    status: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    organisations, pagination = await organisation_service.admin_list_organisations(
        db, search=search, status=status, page=page, limit=limit
    )
    return AdminOrganisationListResponse(organisations=organisations, pagination=pagination)


@router.get("/{organisation_id}", response_model=AdminOrganisationResponse)
async def get_organisation(
    organisation_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    organisation = await organisation_service.get_organisation_or_404(db, organisation_id)
    return await organisation_service.admin_summary(db, organisation)


@router.post("/{organisation_id}/actions", response_model=OrganisationActionResponse)
async def organisation_action(
    organisation_id: str,
    action_request: OrganisationActionRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """
    Run an admin action on an organisation.

    Actions: suspend, activate, changePlan (plan), changeMaxSeats
    (max_seats) and transferOwnership (new_owner_id).
    """
    organisation, message = await organisation_service.apply_admin_action(
        db, organisation_id, action_request
    )
    await log_admin_action(
        db, current_admin.id, f"organisation_{action_request.action}", "organisation", organisation_id,
        action_request.model_dump(mode="json", exclude_none=True), request
    )
    return OrganisationActionResponse(
        success=True,
        action=action_request.action,
        message=message,
        organisation=await organisation_service.admin_summary(db, organisation),
    )
