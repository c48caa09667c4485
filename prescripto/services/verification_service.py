from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import Optional
import logging

from email_validator import validate_email, EmailNotValidError

from ..models.user import User
from ..core.config import settings
from ..core.email import EmailClient
from ..core.exceptions import ValidationFailed, NotFound, AuthenticationError, Conflict
from ..core.security import (
    verify_password, get_password_hash, create_access_token,
    generate_verification_token, UserRole, Token
)

logger = logging.getLogger(__name__)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


class VerificationService:
    def __init__(self, db: Session, email_client: EmailClient):
        self.db = db
        self.email_client = email_client

    def register_user(
        self,
        name: Optional[str],
        email: Optional[str],
        password: Optional[str],
    ) -> str:
        """Register (or re-register an unverified) user and return the outcome message."""
        name = (name or "").strip()
        email = normalize_email(email)

        if not name or not email or not password:
            raise ValidationFailed("Missing Details")
        if not is_valid_email(email):
            raise ValidationFailed("Enter a valid Email")
        if not email.endswith("@" + settings.ALLOWED_EMAIL_DOMAIN):
            raise ValidationFailed("Registration requires a valid Gmail address.")
        if len(password) < settings.PASSWORD_MIN_LENGTH:
            raise ValidationFailed("Enter a strong password")

        verification_disabled = settings.DISABLE_EMAIL_VERIFICATION
        hashed_password = get_password_hash(password)
        token = generate_verification_token()
        expires = datetime.utcnow() + timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS)

        user = self.db.query(User).filter(User.email == email).first()
        if user:
            if user.is_email_verified and not verification_disabled:
                raise Conflict("User already exists. Please login.")
            logger.info(f"Overwriting pending registration for {email}")
        else:
            user = User(email=email)
            self.db.add(user)

        user.name = name
        user.password_hash = hashed_password

        if verification_disabled:
            user.is_email_verified = True
            user.email_verification_token = None
            user.email_verification_expires = None
            self.db.commit()
            logger.info(f"Registered {email} with email verification disabled")
            return (
                "Email verification is disabled on this server. "
                "Your account is ready, you can log in now."
            )

        user.is_email_verified = False
        user.email_verification_token = token
        user.email_verification_expires = expires
        self.db.commit()
        logger.info(f"Registered {email}, verification pending")

        # The token is persisted either way; a failed send means registering again
        self.email_client.dispatch(
            f"Verification email to {email}",
            self.email_client.send_verification_email,
            to=email,
            token=token,
            user_name=name,
        )

        return (
            "Almost there! We sent a verification link to your Gmail inbox. "
            "Please verify your email to finish signing up."
        )

    def verify_email(self, token: Optional[str]) -> str:
        token = (token or "").strip()
        if not token:
            raise ValidationFailed("Verification token is required.")

        user = self.db.query(User).filter(
            User.email_verification_token == token
        ).first()

        if not user:
            raise NotFound("Verification link is invalid. Please request a new one.")

        if user.email_verification_expires and user.email_verification_expires <= datetime.utcnow():
            raise ValidationFailed(
                "Verification link has expired. Please register again to receive a new link."
            )

        user.is_email_verified = True
        user.email_verification_token = None
        user.email_verification_expires = None
        self.db.commit()
        logger.info(f"Email verified for user {user.id}")

        return "Email verified successfully. You can now log in."

    def login_user(self, email: Optional[str], password: Optional[str]) -> Token:
        email = normalize_email(email)
        if not email or not password:
            raise ValidationFailed("Missing credentials")

        user = self.db.query(User).filter(User.email == email).first()
        if not user:
            raise NotFound("User doesn't exist")
        if not user.is_email_verified:
            raise AuthenticationError("Please verify your email before logging in.")
        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")

        return create_access_token(user.id, UserRole.USER)
