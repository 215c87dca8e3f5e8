# storefront/services/auth/token_service.py
"""Signed, time-bounded access and refresh credentials.

Access tokens carry the identity and the role frozen at issuance and live
for minutes. Refresh tokens carry the identity only and live for days.
Both are HS256 JWTs signed with separate secrets.

The built-in administrator has no account row, so its identity is a
tagged variant (``kind="builtin"``) recorded as a claim. Whoever verifies
a token gets an :class:`Identity` back and can tell the administrator
apart without looking anything up.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import time
from typing import Callable, Optional

import jwt

from storefront.core.errors import InvalidTokenError, TokenExpiredError
from storefront.db.models import Role

logger = logging.getLogger(__name__)

ADMIN_ID_PREFIX = "admin_"
STORED = "stored"
BUILTIN = "builtin"
ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class Identity:
    kind: str
    id: str

    @classmethod
    def stored(cls, account_id: str) -> "Identity":
        return cls(STORED, account_id)

    @classmethod
    def builtin(cls, token_id: str) -> "Identity":
        return cls(BUILTIN, token_id)

    @classmethod
    def new_admin(cls, clock: Callable[[], float] = time.time) -> "Identity":
        """Fresh opaque administrator id, e.g. ``admin_1718000000000``"""
        return cls.builtin(f"{ADMIN_ID_PREFIX}{int(clock() * 1000)}")

    @property
    def is_builtin_admin(self) -> bool:
        return self.kind == BUILTIN


@dataclass(frozen=True)
class TokenClaims:
    identity: Identity
    role: Optional[Role] = None


class TokenService:
    def __init__(self, access_secret: str, refresh_secret: str, algorithm: str = "HS256",
                 access_ttl: timedelta = timedelta(minutes=15),
                 refresh_ttl: timedelta = timedelta(days=7),
                 clock: Callable[[], float] = time.time):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.clock = clock

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc)

    def _encode(self, payload: dict, secret: str, ttl: timedelta) -> str:
        now = self._now()
        payload.update({"iat": now, "exp": now + ttl})
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def issue_access(self, identity: Identity, role: Role) -> str:
        payload = {"sub": identity.id, "kind": identity.kind, "type": ACCESS, "role": Role(role).value}
        return self._encode(payload, self.access_secret, self.access_ttl)

    def issue_refresh(self, identity: Identity) -> str:
        payload = {"sub": identity.id, "kind": identity.kind, "type": REFRESH}
        return self._encode(payload, self.refresh_secret, self.refresh_ttl)

    def _decode(self, token: str, secret: str, expected_type: str) -> dict:
        if not token:
            raise InvalidTokenError()
        try:
            # Expiry is checked against the injected clock below, not wall time
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_iat": False, "require": ["sub", "exp", "type", "kind"]},
            )
        except jwt.PyJWTError as e:
            logger.warning(f"Invalid {expected_type} token: {e}")
            raise InvalidTokenError() from e

        if payload.get("type") != expected_type or payload.get("kind") not in (STORED, BUILTIN):
            logger.warning(f"Rejected token: expected {expected_type}, got {payload.get('type')}")
            raise InvalidTokenError()

        try:
            expires_at = float(payload["exp"])
        except (TypeError, ValueError) as e:
            raise InvalidTokenError() from e
        if self.clock() >= expires_at:
            logger.info(f"Expired {expected_type} token for {payload.get('sub')}")
            raise TokenExpiredError()
        return payload

    def verify_access(self, token: str) -> TokenClaims:
        payload = self._decode(token, self.access_secret, ACCESS)
        try:
            role = Role(payload.get("role"))
        except ValueError as e:
            raise InvalidTokenError() from e
        return TokenClaims(identity=Identity(payload["kind"], payload["sub"]), role=role)

    def verify_refresh(self, token: str) -> TokenClaims:
        payload = self._decode(token, self.refresh_secret, REFRESH)
        return TokenClaims(identity=Identity(payload["kind"], payload["sub"]))
