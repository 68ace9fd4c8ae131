"""
Auth Service
Password hashing, access tokens and account registration
"""

import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from config import settings
import models
from models import ProfileType
from services.errors import AccessDeniedError, AuthenticationError


logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

SHARE_CODE_ALPHABET = string.ascii_uppercase + string.digits
SHARE_CODE_LENGTH = 8

# Columns a user may edit on their own profile
PROFILE_FIELDS = ("name", "age", "weight", "whatsapp", "gender", "crm", "photo")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Signed token carrying the user id in the "userId" claim"""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return jwt.encode({"userId": user_id, "exp": expire}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> int:
    """Return the user id of a token, raising AuthenticationError if invalid or expired"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        raise AuthenticationError("Invalid or expired token") from e

    user_id = payload.get("userId")
    if not isinstance(user_id, int):
        raise AuthenticationError("Invalid token payload")
    return user_id


def generate_share_code() -> str:
    return "".join(secrets.choice(SHARE_CODE_ALPHABET) for _ in range(SHARE_CODE_LENGTH))


class AuthService:
    """
    Service for account registration and login
    """

    async def register(
        self,
        email: str,
        password: str,
        name: str,
        profile_type: ProfileType = ProfileType.PATIENT,
        db: Session = None,
        **profile
    ) -> models.User:
        """
        Create an account

        Raises:
            ValueError: If the email is already registered
        """
        email = email.lower()
        if db.query(models.User).filter(models.User.email == email).first():
            raise ValueError("Email already registered")

        user = models.User(
            email=email,
            password=get_password_hash(password),
            name=name,
            profile_type=profile_type,
            **profile
        )
        if profile_type == ProfileType.PATIENT:
            user.share_code = generate_share_code()

        db.add(user)
        db.commit()
        db.refresh(user)

        logger.info(f"Registered {profile_type.value} account {user.id}")
        return user

    async def authenticate(self, email: str, password: str, db: Session) -> models.User:
        user = db.query(models.User).filter(models.User.email == email.lower()).first()
        if not user or not verify_password(password, user.password):
            logger.info("Failed login attempt")
            raise AuthenticationError("Invalid email or password")
        return user

    async def login(self, email: str, password: str, db: Session) -> tuple:
        """Return (user, access token)"""
        user = await self.authenticate(email, password, db)
        return user, create_access_token(user.id)

    def get_user_from_token(self, token: str, db: Session) -> models.User:
        user_id = decode_access_token(token)
        user = db.query(models.User).filter(models.User.id == user_id).first()
        if not user:
            raise AuthenticationError("User not found")
        return user

    # ==================== ACCOUNT ====================

    async def update_profile(
        self,
        actor: models.User,
        user_id: int,
        data: Dict[str, Any],
        db: Session
    ) -> models.User:
        """
        Edit the caller's own profile

        Email, password and profile type are never changed here.

        Raises:
            AccessDeniedError: user_id is not the caller
        """
        if actor.id != user_id:
            raise AccessDeniedError("Users can only edit their own profile")

        for field, value in data.items():
            if field not in PROFILE_FIELDS or (field == "name" and value is None):
                continue
            setattr(actor, field, value)

        db.commit()
        db.refresh(actor)
        logger.info(f"Profile of user {actor.id} updated")
        return actor

    async def change_password(
        self,
        actor: models.User,
        user_id: int,
        current_password: str,
        new_password: str,
        db: Session
    ) -> None:
        """
        Raises:
            AccessDeniedError: user_id is not the caller
            ValueError: current_password does not match
        """
        if actor.id != user_id:
            raise AccessDeniedError("Users can only change their own password")
        if not verify_password(current_password, actor.password):
            raise ValueError("Current password is incorrect")

        actor.password = get_password_hash(new_password)
        db.commit()
        logger.info(f"Password of user {actor.id} changed")


# Singleton instance
auth_service = AuthService()
