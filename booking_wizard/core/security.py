import logging
import httpx
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError
from pydantic import BaseModel, ConfigDict

from booking_wizard.core.enums import UserRole
from booking_wizard.core.errors import BackendError, SessionExpired
from booking_wizard.services.backend import BackendClient, get_backend

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


class ActingUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    email: Optional[str] = None
    name: Optional[str] = None
    role: str = UserRole.USER.value


def is_token_expired(token: str) -> bool:
    """Read the ``exp`` claim without verifying the signature; the backend is
    the one that verifies. Unparseable tokens count as expired."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError as e:
        logger.warning(f"Could not decode bearer token: {e}")
        return True
    exp = claims.get("exp")
    if exp is None:
        return False
    try:
        return datetime.now(timezone.utc).timestamp() >= float(exp)
    except (TypeError, ValueError):
        return True


class AuthContext:
    """Acting user plus bearer credential, passed explicitly to the wizard.

    ``on_unauthorized`` fires once the backend rejects the credential, after
    the stored credential has been cleared.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        user: Optional[ActingUser] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ):
        self.token = token
        self.user = user
        self.on_unauthorized = on_unauthorized

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None and self.user is not None

    def bearer(self) -> str:
        if not self.token:
            raise SessionExpired("No authentication token found")
        if is_token_expired(self.token):
            self.clear()
            raise SessionExpired("Token expired")
        return self.token

    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.bearer()}"}

    def clear(self) -> None:
        self.token = None
        self.user = None

    def handle_unauthorized(self) -> None:
        self.clear()
        if self.on_unauthorized is not None:
            try:
                self.on_unauthorized()
            except Exception as e:
                logger.error(f"on_unauthorized callback failed: {e}", exc_info=True)


async def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    backend: BackendClient = Depends(get_backend),
) -> AuthContext:
    if credentials is None:
        return AuthContext()

    token = credentials.credentials
    if is_token_expired(token):
        logger.info("Rejected expired bearer token")
        return AuthContext()

    try:
        data = await backend.get_current_user(token)
    except BackendError as e:
        logger.info(f"Backend rejected credential with status {e.status_code}")
        return AuthContext()
    except httpx.HTTPError as e:
        logger.warning(f"Could not resolve current user: {e}")
        return AuthContext()
    return AuthContext(token=token, user=ActingUser.model_validate(data))
