"""Password hashing and signed session tokens."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal

import bcrypt
import jwt

from voicedesk.config import settings
from voicedesk.errors import InvalidToken

logger = logging.getLogger(__name__)

SubjectType = Literal["tenant_user", "super_admin"]


def hash_password(plain: str) -> str:
    """Salted bcrypt hash of a password."""
    salt = bcrypt.gensalt(rounds=settings.password_hash_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def compare_password(plain: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


@dataclass(frozen=True)
class TokenPayload:
    """Claims carried by a session token."""

    subject_id: int
    subject_type: SubjectType
    tenant_id: int | None = None
    impersonation: bool = False
    impersonator_id: int | None = None

    def to_claims(self) -> dict:
        claims: dict = {"id": self.subject_id, "type": self.subject_type}
        if self.tenant_id is not None:
            claims["tenant_id"] = self.tenant_id
        if self.impersonation:
            claims["impersonation"] = True
            claims["impersonator_id"] = self.impersonator_id
        return claims

    @classmethod
    def from_claims(cls, claims: dict) -> "TokenPayload":
        subject_id = claims.get("id")
        if subject_id is None:
            raise InvalidToken()
        subject_type = claims.get("type")
        if subject_type not in ("tenant_user", "super_admin"):
            # Older tenant tokens carried only tenant_id
            if claims.get("tenant_id") is None:
                raise InvalidToken()
            subject_type = "tenant_user"
        return cls(
            subject_id=int(subject_id),
            subject_type=subject_type,
            tenant_id=claims.get("tenant_id"),
            impersonation=bool(claims.get("impersonation", False)),
            impersonator_id=claims.get("impersonator_id"),
        )


def issue_token(
    payload: TokenPayload,
    ttl: timedelta | None = None,
    now: datetime | None = None,
) -> str:
    """Sign a token for ``payload``; sessions default to ``session_token_ttl_days``."""
    issued_at = now or datetime.now(timezone.utc)
    if ttl is None:
        ttl = timedelta(days=settings.session_token_ttl_days)
    claims = payload.to_claims()
    claims.update({"iat": issued_at, "exp": issued_at + ttl})
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def issue_impersonation_token(
    user_id: int, tenant_id: int, impersonator_id: int
) -> str:
    """Short-lived tenant-admin token minted for a super admin."""
    payload = TokenPayload(
        subject_id=user_id,
        subject_type="tenant_user",
        tenant_id=tenant_id,
        impersonation=True,
        impersonator_id=impersonator_id,
    )
    return issue_token(
        payload, ttl=timedelta(minutes=settings.impersonation_token_ttl_minutes)
    )


def verify_token(token: str) -> TokenPayload:
    """Decode and validate a token; raises InvalidToken on bad signature or expiry."""
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as e:
        raise InvalidToken("Token expired") from e
    except jwt.InvalidTokenError as e:
        logger.debug("Rejected token: %s", e)
        raise InvalidToken() from e
    return TokenPayload.from_claims(claims)
