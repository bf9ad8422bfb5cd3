"""Referral endpoints (authenticated)."""

from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from accounts.auth.middleware import require_user_id
from accounts.referral.service import ReferralQueryService
from accounts.storage.models import ReferralStatus

router = APIRouter(tags=["referral"])


# ==================== MODELS ====================


class ReferredUser(BaseModel):
    """Public fields of a referred user."""
    id: int
    username: str
    email: str


class ReferralResponse(BaseModel):
    """One referral made by the current user."""
    id: int
    referrer_id: int
    referred_user_id: int
    date_referred: datetime
    status: ReferralStatus
    created_at: datetime | None = None
    referred_user: ReferredUser | None = None


class ReferralStatsResponse(BaseModel):
    """Referral counts for the current user."""
    model_config = ConfigDict(populate_by_name=True)

    total_referrals: int = Field(alias="totalReferrals")
    successful_referrals: int = Field(alias="successfulReferrals")


def get_referral_service(request: Request) -> ReferralQueryService:
    return request.app.state.referral_service


# ==================== ENDPOINTS ====================


@router.get("/referrals", response_model=list[ReferralResponse])
@router.get("/referral", response_model=list[ReferralResponse], include_in_schema=False)
async def list_referrals(
    user_id: int = Depends(require_user_id),
    referral_service: ReferralQueryService = Depends(get_referral_service),
):
    """List every referral made by the current user."""
    return referral_service.list_referrals(user_id)


@router.get("/referral-stats", response_model=ReferralStatsResponse)
async def get_referral_stats(
    user_id: int = Depends(require_user_id),
    referral_service: ReferralQueryService = Depends(get_referral_service),
):
    """Get total and successful referral counts for the current user."""
    return referral_service.get_referral_stats(user_id)
