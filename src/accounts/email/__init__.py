"""Outbound email."""

from accounts.email.service import EmailService, Mailer

__all__ = ["EmailService", "Mailer"]
