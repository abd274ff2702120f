"""Request identity resolved from the identity provider's bearer token.

Sessions, passwords and token issuance belong to the external provider; this
module only verifies the JWT it hands to browsers and exposes the result as a
request-scoped :class:`RequestIdentity`.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

load_dotenv()

logger = logging.getLogger("identity")

SECRET_KEY = os.getenv("IDENTITY_JWT_SECRET", "dev-secret-change-me")
ALGORITHM = os.getenv("IDENTITY_JWT_ALGORITHM", "HS256")
AUDIENCE = os.getenv("IDENTITY_JWT_AUDIENCE", "authenticated") or None

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class RequestIdentity:
    user_id: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None


ANONYMOUS = RequestIdentity()


def decode_identity_token(token: str) -> RequestIdentity:
    """Verify ``token`` and return the identity it names. Raises ``JWTError``."""

    payload = jwt.decode(
        token,
        SECRET_KEY,
        algorithms=[ALGORITHM],
        audience=AUDIENCE,
        options={"verify_aud": AUDIENCE is not None},
    )
    subject = payload.get("sub")
    if not subject:
        raise JWTError("Token has no subject")
    return RequestIdentity(user_id=str(subject), email=payload.get("email"))


async def get_request_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> RequestIdentity:
    if credentials is None:
        return ANONYMOUS
    try:
        return decode_identity_token(credentials.credentials)
    except JWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_identity(identity: RequestIdentity = Depends(get_request_identity)) -> RequestIdentity:
    if identity.is_anonymous:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def resolve_user_id(claimed_user_id: str, identity: RequestIdentity) -> str:
    """Return the user id a handler should act as.

    Anonymous requests act as the id they name; an authenticated caller may
    only name itself.
    """

    if not identity.is_anonymous and claimed_user_id != identity.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot act on behalf of another user",
        )
    return claimed_user_id
