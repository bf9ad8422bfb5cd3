"""User accounts with referral tracking."""

__version__ = "1.0.0"
