"""
Security Module

JWT encoding/decoding and the claims model used at the authorization
boundary.

Tokens are issued by the identity provider; this service trusts their
claims once the signature checks out. The payload is never passed around
as a dict: it is validated into ActorClaims first, and anything missing
or malformed rejects the request.
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError
from rolegate.config import get_settings
from rolegate.core.roles import AppRole

settings = get_settings()


class ActorClaims(BaseModel):
    """Identity of the caller for one request."""
    user_id: str
    email: str
    org_id: str
    role: AppRole
    session_id: Optional[str] = None

    @classmethod
    def from_token_payload(cls, payload: Dict[str, Any]) -> Optional["ActorClaims"]:
        """
        Build claims from a decoded token payload.

        Returns None when a required claim is missing or the role is not
        one of the known roles.
        """
        try:
            return cls(
                user_id=payload.get("sub"),
                email=payload.get("email"),
                org_id=payload.get("org_id"),
                role=payload.get("user_role"),
                session_id=payload.get("sid"),
            )
        except ValidationError:
            return None

    def to_token_payload(self) -> Dict[str, Any]:
        payload = {
            "sub": self.user_id,
            "email": self.email,
            "org_id": self.org_id,
            "user_role": self.role.value,
        }
        if self.session_id:
            payload["sid"] = self.session_id
        return payload


def create_access_token(claims: ActorClaims, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token for the given claims.

    Payload: sub, email, org_id, user_role, sid, exp, iat.
    """
    to_encode = claims.to_token_payload()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({
        "exp": expire,
        "iat": datetime.utcnow()
    })

    return jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify a JWT token.

    Returns the payload if valid, None if invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None
