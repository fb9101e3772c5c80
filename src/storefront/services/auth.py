"""Caller identity from bearer tokens issued by the authentication service"""
from jose import jwt, JWTError
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from storefront.config import settings
import enum
import logging

logger = logging.getLogger(__name__)


class Role(str, enum.Enum):
    ADMIN = "admin"
    CUSTOMER = "customer"


@dataclass(frozen=True)
class AuthenticatedIdentity:
    id: int
    email: str
    role: Role = Role.CUSTOMER


class InvalidToken(Exception):
    pass


def can_manage_orders(identity: AuthenticatedIdentity) -> bool:
    """Capability check for admin-only order operations"""
    return identity.role == Role.ADMIN


def create_access_token(identity: AuthenticatedIdentity, expires_delta: Optional[timedelta] = None) -> str:
    """Mint a token in the authentication service's format (tooling and tests)"""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    to_encode = {
        "sub": str(identity.id),
        "email": identity.email,
        "role": identity.role.value,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> AuthenticatedIdentity:
    """Verify a bearer token and return the identity it carries"""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise InvalidToken("Invalid or expired token") from e

    try:
        return AuthenticatedIdentity(
            id=int(payload["sub"]),
            email=payload["email"],
            role=Role(payload.get("role", Role.CUSTOMER.value))
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Bearer token has malformed claims: {e}")
        raise InvalidToken("Invalid or expired token") from e
