"""Referral codes and referral queries."""

from accounts.referral.codes import REFERRAL_CODE_ALPHABET, generate_referral_code
from accounts.referral.service import ReferralQueryService

__all__ = ["REFERRAL_CODE_ALPHABET", "ReferralQueryService", "generate_referral_code"]
