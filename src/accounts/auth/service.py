"""Local authentication service (username/email/password)."""

import uuid
from datetime import datetime, timedelta
from typing import Callable

from passlib.context import CryptContext

from accounts.auth.models import LoginInput, LoginResult, MessageResult, RegisterInput, ResetRequestInput
from accounts.auth.tokens import TokenService
from accounts.email.service import Mailer
from accounts.errors import ConflictError, InvalidCredentials, StoreError, ValidationError
from accounts.logging_config import get_logger
from accounts.referral.codes import generate_referral_code
from accounts.settings import Settings
from accounts.storage.models import ReferralStatus, User, utcnow
from accounts.storage.repo import DuplicateUserError, ReferralStore, UserStore
from accounts.validators import MIN_PASSWORD_LENGTH, is_valid_email, sanitize_text

RESET_REQUESTED_MESSAGE = "If an account exists, a password reset email has been sent."


class AuthService:
    """Registration, login and password reset requests."""

    def __init__(
        self,
        users: UserStore,
        referrals: ReferralStore,
        settings: Settings,
        mailer: Mailer,
        tokens: TokenService | None = None,
        clock: Callable[[], datetime] = utcnow,
        code_generator: Callable[[int], str] = generate_referral_code,
    ):
        self.users = users
        self.referrals = referrals
        self.settings = settings
        self.mailer = mailer
        self.clock = clock
        self.tokens = tokens or TokenService(settings, clock=clock)
        self.code_generator = code_generator
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=settings.bcrypt_rounds,
        )
        self.logger = get_logger(__name__)

    # ==================== PASSWORD ====================

    def _truncate_password(self, password: str) -> str:
        """Truncate password to 72 bytes (bcrypt limit)."""
        return password.encode("utf-8")[:72].decode("utf-8", errors="ignore")

    def hash_password(self, password: str) -> str:
        """Hash a password with bcrypt."""
        return self.pwd_context.hash(self._truncate_password(password))

    def verify_password(self, password: str, hashed: str) -> bool:
        """Verify a password against hash.

        Passwords bcrypt cannot take (e.g. containing NUL) never match.
        """
        try:
            return self.pwd_context.verify(self._truncate_password(password), hashed)
        except ValueError as e:
            # passlib's PasswordValueError subclasses ValueError
            self.logger.info("password_rejected_by_hasher", error=type(e).__name__)
            return False

    # ==================== REFERRAL CODES ====================

    def generate_unique_code(self) -> str:
        """Sample referral codes until one is not taken.

        Raises:
            StoreError: If every attempt collided
        """
        length = self.settings.referral_code_length
        for attempt in range(1, self.settings.referral_code_max_attempts + 1):
            code = self.code_generator(length)
            if self.users.get_by_referral_code(code) is None:
                return code
            self.logger.info("referral_code_collision", attempt=attempt)

        raise StoreError("Could not generate a unique referral code")

    # ==================== REGISTRATION ====================

    def register(self, data: RegisterInput) -> MessageResult:
        """Register a new user.

        Args:
            data: Registration request

        Returns:
            Success message (never contains credentials)

        Raises:
            ValidationError: Missing fields, bad email, short password or unknown referral code
            ConflictError: Email or username already taken
            StoreError: Persistence failure
        """
        username = sanitize_text(data.username)
        email = sanitize_text(data.email)
        referral_code = sanitize_text(data.referral_code) or None
        password = data.password

        if not username or not email or not password:
            raise ValidationError("Missing required fields")
        if not is_valid_email(email):
            raise ValidationError("Invalid email format")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        if "\x00" in password:
            raise ValidationError("Password contains invalid characters")

        if self.users.get_by_email(email) is not None:
            raise ConflictError("Email already in use")
        if self.users.get_by_username(username) is not None:
            raise ConflictError("Username already in use")

        referrer: User | None = None
        if referral_code:
            referrer = self.users.get_by_referral_code(referral_code)
            if referrer is None:
                raise ValidationError("Invalid referral code")

        password_hash = self.hash_password(password)
        user = self._create_user(
            username=username,
            email=email,
            password_hash=password_hash,
            referred_by=referrer.id if referrer else None,
        )

        if referrer is not None:
            self.referrals.create(
                referrer_id=referrer.id,
                referred_user_id=user.id,
                status=ReferralStatus.SUCCESSFUL,
                date_referred=self.clock(),
            )

        self.logger.info(
            "user_registered",
            user_id=user.id,
            referred_by=referrer.id if referrer else None,
        )
        return MessageResult(message="User registered successfully")

    def _create_user(self, *, username: str, email: str, password_hash: str, referred_by: int | None) -> User:
        """Insert the user, relying on the store's unique constraints for races."""
        for _ in range(self.settings.referral_code_max_attempts):
            try:
                return self.users.create(
                    username=username,
                    email=email,
                    password_hash=password_hash,
                    referral_code=self.generate_unique_code(),
                    referred_by=referred_by,
                )
            except DuplicateUserError as e:
                if e.field == "email":
                    raise ConflictError("Email already in use") from e
                if e.field == "username":
                    raise ConflictError("Username already in use") from e
                if e.field != "referral_code":
                    raise ConflictError("Account already exists") from e
                # Someone claimed the code between the check and the insert
                self.logger.info("referral_code_taken_on_insert")

        raise StoreError("Could not generate a unique referral code")

    # ==================== LOGIN ====================

    def login(self, data: LoginInput) -> LoginResult:
        """Authenticate and issue an access token.

        Unknown email and wrong password raise the very same error.

        Raises:
            ConfigurationError: No signing secret configured
            InvalidCredentials: Authentication failed
        """
        self.tokens.signing_secret()

        email = sanitize_text(data.email)
        password = data.password

        user = self.users.get_by_email(email) if email else None
        if user is None or not password:
            # Spend the same hashing time as a real check
            self.pwd_context.dummy_verify()
            self.logger.warning("login_failed", reason="unknown_account")
            raise InvalidCredentials()

        if not self.verify_password(password, user.password_hash):
            self.logger.warning("login_failed", reason="bad_password", user_id=user.id)
            raise InvalidCredentials()

        token = self.tokens.create_access_token(user.id)
        self.logger.info("user_logged_in", user_id=user.id)

        return LoginResult(token=token, expires_in=self.tokens.expires_in)

    # ==================== PASSWORD RESET ====================

    async def request_password_reset(self, data: ResetRequestInput) -> MessageResult:
        """Issue a reset token and email the link, if the account exists.

        The response never reveals whether the account exists, and mail
        delivery problems are only logged.
        """
        email = sanitize_text(data.email)
        user = self.users.get_by_email(email) if email else None

        if user is None:
            self.logger.info("password_reset_unknown_email")
            return MessageResult(message=RESET_REQUESTED_MESSAGE)

        reset_token = str(uuid.uuid4())
        expires_at = self.clock() + timedelta(minutes=self.settings.reset_token_ttl_minutes)
        self.users.set_reset_token(user.id, reset_token, expires_at)

        reset_link = f"{self.settings.base_url.rstrip('/')}/reset-password?token={reset_token}"

        try:
            sent = await self.mailer.send_password_reset_email(user.email, reset_link)
        except Exception as e:
            self.logger.error("password_reset_email_failed", user_id=user.id, error=str(e))
        else:
            if not sent:
                self.logger.warning("password_reset_email_not_sent", user_id=user.id)

        self.logger.info("password_reset_requested", user_id=user.id)
        return MessageResult(message=RESET_REQUESTED_MESSAGE)
