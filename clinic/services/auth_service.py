from sqlalchemy.orm import Session
from datetime import datetime, timedelta, timezone
from typing import Optional
import hashlib
import logging

from ..models import Doctor, Patient, Secretary, User
from ..core.config import settings
from ..core.exceptions import AuthenticationError, AuthorizationError
from ..core.security import (
    verify_password, get_password_hash, create_token_pair,
    verify_token, UserRole, REFRESH_TOKEN
)
from ..repositories import RefreshTokenRepository, UserRepository
from ..schemas.auth import UserLogin, UserRegister, TokenResponse, UserResponse
from .identity import Principal

logger = logging.getLogger(__name__)

def _utcnow() -> datetime:
    # Naive UTC, matching the DateTime columns
    return datetime.now(timezone.utc).replace(tzinfo=None)

PROFILE_MODELS = {
    UserRole.PATIENT: Patient,
    UserRole.DOCTOR: Doctor,
    UserRole.SECRETARY: Secretary,
}

def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()

class AuthService:
    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)
        self.refresh_tokens = RefreshTokenRepository(db)

    def register_user(self, user_data: UserRegister, registered_by: Optional[Principal] = None) -> User:
        """Register a new account and its role-specific profile.

        Anyone may sign up as a patient; staff accounts are created by an admin.
        """
        if user_data.role != UserRole.PATIENT and (
            registered_by is None or registered_by.role != UserRole.ADMIN
        ):
            raise AuthorizationError("Only administrators can register staff accounts")

        new_user = User(
            email=user_data.email.lower(),
            password_hash=get_password_hash(user_data.password),
            first_name=user_data.first_name,
            last_name=user_data.last_name,
            role=user_data.role,
            is_active=True,
        )

        profile_model = PROFILE_MODELS.get(user_data.role)
        if profile_model is not None:
            # Attached through the relationship so both rows commit together
            setattr(new_user, user_data.role.value, profile_model(
                email=new_user.email,
                first_name=new_user.first_name,
                last_name=new_user.last_name,
            ))

        self.users.save(new_user)

        logger.info(f"Registered user {new_user.id} with role {new_user.role.value}")
        return new_user

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate user and return tokens."""
        user = self.users.find_one(email=login_data.email.lower())

        if not user or not verify_password(login_data.password, user.password_hash):
            logger.warning("Failed login attempt")
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            raise AuthorizationError("Your account is inactive")

        user.last_login = _utcnow()
        tokens = create_token_pair(user.id, user.email, user.role)
        self._store_refresh_token(user.id, tokens.refresh_token)
        self.db.commit()

        return TokenResponse(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            user=UserResponse.model_validate(user)
        )

    def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """Rotate a refresh token into a fresh token pair."""
        token_payload = verify_token(refresh_token)
        if not token_payload or token_payload.token_type != REFRESH_TOKEN:
            raise AuthenticationError("Invalid refresh token")

        stored_token = self.refresh_tokens.find_one(
            token_hash=_hash_token(refresh_token), is_revoked=False
        )
        if not stored_token or stored_token.expires_at <= _utcnow():
            raise AuthenticationError("Invalid or expired refresh token")

        user = self.users.find_by_id(stored_token.user_id)
        if not user or not user.is_active:
            raise AuthenticationError("User not found or inactive")

        new_tokens = create_token_pair(user.id, user.email, user.role)

        stored_token.is_revoked = True
        self._store_refresh_token(user.id, new_tokens.refresh_token)
        self.db.commit()

        return TokenResponse(
            access_token=new_tokens.access_token,
            refresh_token=new_tokens.refresh_token,
            token_type=new_tokens.token_type,
            expires_in=new_tokens.expires_in,
            user=UserResponse.model_validate(user)
        )

    def logout_user(self, refresh_token: str) -> bool:
        """Revoke a refresh token. Returns False when it was unknown."""
        stored_token = self.refresh_tokens.find_one(token_hash=_hash_token(refresh_token))
        if stored_token is None:
            return False

        stored_token.is_revoked = True
        self.db.commit()
        return True

    def _store_refresh_token(self, user_id: int, refresh_token: str):
        """Stage a refresh token record; the caller commits."""
        token_payload = verify_token(refresh_token)
        if token_payload and token_payload.exp:
            expires_at = datetime.fromtimestamp(token_payload.exp, tz=timezone.utc).replace(tzinfo=None)
        else:
            expires_at = _utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

        # One live refresh token per user
        self.db.query(self.refresh_tokens.model).filter(
            self.refresh_tokens.model.user_id == user_id
        ).update({"is_revoked": True})

        self.db.add(self.refresh_tokens.model(
            user_id=user_id,
            token_hash=_hash_token(refresh_token),
            expires_at=expires_at
        ))
