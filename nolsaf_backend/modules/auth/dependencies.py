"""Request guards: bearer token to AuthenticatedUser, and role gates."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...core.logging import bind_user
from .jwt_service import decode_access_token
from .models import RoleSlug
from .schemas import AuthenticatedUser

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> AuthenticatedUser:
    """Resolve the caller from the access token alone, without a database read.

    The user id is also put on ``request.state`` and the log context so the
    access line and any service logs for this request carry it.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    claims = decode_access_token(credentials.credentials)
    if claims is None:
        raise _unauthorized("Invalid or expired token")

    try:
        caller = AuthenticatedUser(
            id=int(claims["sub"]), email=claims["email"], role=claims["role"]
        )
    except (KeyError, ValueError):
        raise _unauthorized("Invalid token payload")

    request.state.user_id = caller.id
    bind_user(caller.id)
    return caller


def require_role(*allowed_roles: str | RoleSlug):
    """Build a dependency that admits only callers holding one of ``allowed_roles``."""
    allowed = frozenset(RoleSlug(r) for r in allowed_roles)

    async def check_role(
        caller: Annotated[AuthenticatedUser, Depends(get_current_user)],
    ) -> AuthenticatedUser:
        if caller.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{caller.role.value}' cannot use this endpoint",
            )
        return caller

    return check_role


def get_client_info(request: Request) -> tuple[str | None, str | None]:
    """Return (user agent, client IP); the first X-Forwarded-For hop wins over the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        client_ip = forwarded.split(",", 1)[0].strip()
    elif request.client:
        client_ip = request.client.host
    else:
        client_ip = None
    return request.headers.get("user-agent"), client_ip


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
AdminUser = Annotated[AuthenticatedUser, Depends(require_role(RoleSlug.ADMIN))]
OwnerUser = Annotated[AuthenticatedUser, Depends(require_role(RoleSlug.OWNER))]
DriverUser = Annotated[AuthenticatedUser, Depends(require_role(RoleSlug.DRIVER))]
# Anyone who can book a stay
CustomerUser = Annotated[
    AuthenticatedUser,
    Depends(require_role(RoleSlug.CUSTOMER, RoleSlug.OWNER, RoleSlug.AGENT)),
]
