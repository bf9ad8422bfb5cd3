"""Read-only referral queries for the signed-in user."""

from typing import Any

from accounts.errors import AuthError
from accounts.logging_config import get_logger
from accounts.storage.models import Referral, ReferralStatus
from accounts.storage.repo import ReferralStore

logger = get_logger(__name__)


def _serialize(referral: Referral) -> dict[str, Any]:
    referred = referral.referred_user
    return {
        "id": referral.id,
        "referrer_id": referral.referrer_id,
        "referred_user_id": referral.referred_user_id,
        "date_referred": referral.date_referred,
        "status": referral.status,
        "created_at": referral.created_at,
        "referred_user": {
            "id": referred.id,
            "username": referred.username,
            "email": referred.email,
        } if referred is not None else None,
    }


class ReferralQueryService:
    """Lists and counts the referrals a user has made."""

    def __init__(self, referrals: ReferralStore):
        self.referrals = referrals

    def list_referrals(self, user_id: int | None) -> list[dict[str, Any]]:
        """All referrals made by a user, each with the referred user's public fields.

        Args:
            user_id: Authenticated user id

        Raises:
            AuthError: If no user id is available
        """
        if user_id is None:
            raise AuthError("Unauthorized")

        referrals = self.referrals.list_for_referrer(user_id)
        logger.info("referrals_fetched", user_id=user_id, count=len(referrals))
        return [_serialize(r) for r in referrals]

    def get_referral_stats(self, user_id: int | None) -> dict[str, int]:
        """Total and successful referral counts for a user."""
        if user_id is None:
            raise AuthError("Unauthorized")

        return {
            "totalReferrals": self.referrals.count_for_referrer(user_id),
            "successfulReferrals": self.referrals.count_for_referrer(
                user_id, status=ReferralStatus.SUCCESSFUL
            ),
        }
