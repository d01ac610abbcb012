"""
Organisation API - membership, seats, groups, activity and org leaderboards

Permission checks run inside the services against the caller's
organisation context, so a lapsed subscription leaves the org readable
but blocks writes.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.core.database import get_db
from app.models.user import User
from app.models.organisation import OrganisationMember
from app.modules.auth.dependencies import get_current_user
from app.schemas.organisation import (
    OrganisationCreate,
    OrganisationResponse,
    OrganisationDetailResponse,
    SeatSummary,
    MemberInvite,
    MemberUpdate,
    MemberResponse,
    MemberUserSummary,
    MemberListResponse,
    GroupCreate,
    GroupResponse,
    GroupMemberAdd,
    GroupMemberResponse,
    ActivityResponse,
)
from app.schemas.leaderboard import LeaderboardCreate, LeaderboardResponse
from app.services.organisation_permissions import is_subscription_active
from app.services.organisation_service import organisation_service
from app.services.leaderboard_service import leaderboard_service

router = APIRouter()


def _member_response(member: OrganisationMember, user: Optional[User]) -> MemberResponse:
    response = MemberResponse.model_validate(member)
    if user is not None:
        response.user = MemberUserSummary(id=str(user.id), email=user.email, name=user.name)
    return response


# ==================== Organisation ====================

@router.post("", response_model=OrganisationResponse, status_code=status.HTTP_201_CREATED)
async def create_organisation(
    data: OrganisationCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create an organisation; the caller becomes its owner"""
    return await organisation_service.create_organisation(db, current_user, data)


@router.get("/{organisation_id}", response_model=OrganisationDetailResponse)
async def get_organisation(
    organisation_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    context, seats = await organisation_service.get_organisation(db, organisation_id, current_user)
    base = OrganisationResponse.model_validate(context.organisation)
    return OrganisationDetailResponse(
        **base.model_dump(),
        seats=SeatSummary(**seats),
        subscription_active=is_subscription_active(context.organisation),
        role=context.role.value,
    )


@router.get("/{organisation_id}/seats", response_model=SeatSummary)
async def get_seats(
    organisation_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    _, seats = await organisation_service.get_organisation(db, organisation_id, current_user)
    return seats


# ==================== Members ====================

@router.get("/{organisation_id}/members", response_model=MemberListResponse)
async def list_members(
    organisation_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    rows, seats = await organisation_service.list_members(db, organisation_id, current_user)
    return MemberListResponse(
        members=[_member_response(member, user) for member, user in rows],
        seats=SeatSummary(**seats),
    )


@router.post(
    "/{organisation_id}/members",
    response_model=MemberResponse,
    status_code=status.HTTP_201_CREATED
)
async def invite_member(
    organisation_id: str,
    data: MemberInvite,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Invite someone by email.

    Unknown emails get an account. The member is seated straight away
    when a seat is free, otherwise they stay PENDING.
    """
    member, user = await organisation_service.invite_member(db, organisation_id, current_user, data)
    return _member_response(member, user)


@router.patch("/{organisation_id}/members/{member_id}", response_model=MemberResponse)
async def update_member(
    organisation_id: str,
    member_id: str,
    data: MemberUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    member = await organisation_service.update_member(db, organisation_id, member_id, current_user, data)
    return _member_response(member, None)


@router.delete("/{organisation_id}/members/{member_id}")
async def remove_member(
    organisation_id: str,
    member_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await organisation_service.remove_member(db, organisation_id, member_id, current_user)
    return {"success": True, "message": "Member removed"}


@router.get("/{organisation_id}/activity", response_model=List[ActivityResponse])
async def list_activity(
    organisation_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await organisation_service.list_activity(db, organisation_id, current_user)


# ==================== Groups ====================

@router.get("/{organisation_id}/groups", response_model=List[GroupResponse])
async def list_groups(
    organisation_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    rows = await organisation_service.list_groups(db, organisation_id, current_user)
    responses = []
    for group, member_count in rows:
        response = GroupResponse.model_validate(group)
        response.member_count = member_count
        responses.append(response)
    return responses


@router.post(
    "/{organisation_id}/groups",
    response_model=GroupResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_group(
    organisation_id: str,
    data: GroupCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await organisation_service.create_group(db, organisation_id, current_user, data)


@router.post(
    "/{organisation_id}/groups/{group_id}/members",
    response_model=GroupMemberResponse,
    status_code=status.HTTP_201_CREATED
)
async def add_group_member(
    organisation_id: str,
    group_id: str,
    data: GroupMemberAdd,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await organisation_service.add_group_member(
        db, organisation_id, group_id, data.member_id, current_user
    )


@router.delete("/{organisation_id}/groups/{group_id}/members/{member_id}")
async def remove_group_member(
    organisation_id: str,
    group_id: str,
    member_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await organisation_service.remove_group_member(db, organisation_id, group_id, member_id, current_user)
    return {"success": True, "message": "Member removed from group"}


# ==================== Leaderboards ====================

@router.get("/{organisation_id}/leaderboards", response_model=List[LeaderboardResponse])
async def list_leaderboards(
    organisation_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await leaderboard_service.list_organisation_leaderboards(db, organisation_id, current_user)


@router.post(
    "/{organisation_id}/leaderboards",
    response_model=LeaderboardResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_leaderboard(
    organisation_id: str,
    data: LeaderboardCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create an org-wide, group or ad hoc leaderboard; the creator joins it"""
    return await leaderboard_service.create_leaderboard(db, organisation_id, current_user, data)
