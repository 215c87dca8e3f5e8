# storefront/routers/dependencies.py
"""Request-time authorization gate and service wiring for the routers."""
from dataclasses import dataclass
import logging
from typing import Optional

from fastapi import Depends, Request
from sqlmodel import Session

from storefront.core.errors import AuthenticationError, AuthorizationError
from storefront.db.models import Role
from storefront.db.session import get_session
from storefront.services.auth import AuthService, Identity, TokenService
from storefront.services.users import UserService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    identity: Identity
    role: Optional[Role]

    @property
    def id(self) -> str:
        return self.identity.id


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_auth_service(request: Request, session: Session = Depends(get_session)) -> AuthService:
    state = request.app.state
    return AuthService(
        users=UserService(session),
        phone_otp=state.phone_otp,
        email_otp=state.email_otp,
        tokens=state.token_service,
        hasher=state.password_hasher,
        admin=state.admin,
    )


def extract_bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header[len("Bearer "):].strip()
    return token or None


async def get_current_principal(request: Request,
                                tokens: TokenService = Depends(get_token_service)) -> Principal:
    """Validate the bearer access token and attach the caller to ``request.state``"""
    token = extract_bearer_token(request)
    if not token:
        raise AuthenticationError("Authentication required")

    # TokenExpiredError -> "Token expired", anything else -> "Invalid token"
    claims = tokens.verify_access(token)
    principal = Principal(identity=claims.identity, role=claims.role)
    request.state.principal = principal
    return principal


async def get_optional_principal(request: Request,
                                 tokens: TokenService = Depends(get_token_service)) -> Optional[Principal]:
    """Same extraction, but carry on unauthenticated on any failure"""
    try:
        return await get_current_principal(request, tokens)
    except AuthenticationError as e:
        logger.debug(f"Optional auth skipped: {e.message}")
        return None


def require_roles(*roles):
    allowed = {Role(role) for role in roles}

    async def role_gate(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role is None:
            raise AuthenticationError("Authentication required")
        if principal.role not in allowed:
            logger.warning(f"Role {principal.role.value} denied for {principal.id}")
            raise AuthorizationError("Access denied. Insufficient permissions.")
        return principal

    return role_gate
