"""Referral code generation."""

import secrets
import string

REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_CODE_LENGTH = 8


def generate_referral_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    """Generate a random referral code.

    Characters are drawn uniformly from A-Z and 0-9 using the OS CSPRNG.
    Format: K7Q2ZP0M (8 chars by default)
    """
    if length < 1:
        raise ValueError("Referral code length must be positive")
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(length))
