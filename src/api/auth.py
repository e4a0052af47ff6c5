"""Identity collaborator: turns a request into a Principal, or nothing."""

from typing import Optional, Protocol

from fastapi import Depends, Request

from db.models import Principal
from utils.errors import AuthorizationError, UnauthenticatedOrIncompleteIdentity
from utils.logger import get_logger

_logger = get_logger(__name__)

USER_ID_HEADER = "X-Auth-User-Id"
EMAIL_HEADER = "X-Auth-Email"
ROLE_HEADER = "X-Auth-Role"


class IdentityProvider(Protocol):
    async def authenticate(self, request: Request) -> Optional[Principal]: ...


class GatewayHeaderIdentityProvider:
    """
    Trusts identity headers set by an authenticating gateway in front of the
    service. The gateway verifies credentials; this only reads its verdict.
    """

    async def authenticate(self, request: Request) -> Optional[Principal]:
        user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
        if not user_id:
            return None
        email = (request.headers.get(EMAIL_HEADER) or "").strip() or None
        role = (request.headers.get(ROLE_HEADER) or "").strip().lower()
        return Principal(user_id=user_id, email=email, role="admin" if role == "admin" else None)


async def current_principal(request: Request) -> Principal:
    provider: IdentityProvider = request.app.state.identity_provider
    principal = await provider.authenticate(request)
    if principal is None:
        raise UnauthenticatedOrIncompleteIdentity()
    return principal


async def require_admin(principal: Principal = Depends(current_principal)) -> Principal:
    if not principal.is_admin:
        _logger.info(f"Admin access denied for {principal.user_id}")
        raise AuthorizationError()
    return principal
