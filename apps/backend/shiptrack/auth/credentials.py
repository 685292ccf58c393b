"""Bearer credentials (JWT) that carry the account's session id."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from shiptrack.errors import InvalidCredential


JWT_ALGORITHM = "HS256"
DEFAULT_TTL = timedelta(hours=5)


@dataclass(frozen=True)
class CredentialClaims:
    account_id: int
    role: str
    session_id: str


@dataclass(frozen=True)
class CredentialCodec:
    secret: str
    ttl: timedelta = DEFAULT_TTL
    algorithm: str = JWT_ALGORITHM

    def issue(self, *, account_id: int, role: str, session_id: str) -> str:
        now = datetime.now(tz=UTC)
        payload: dict[str, Any] = {
            "sub": str(account_id),
            "role": role,
            "sid": session_id,
            "iat": now,
            "exp": now + self.ttl,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> CredentialClaims:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidCredential("Not authorized, token expired") from e
        except jwt.InvalidTokenError as e:
            raise InvalidCredential() from e

        try:
            account_id = int(payload["sub"])
        except (TypeError, ValueError) as e:
            raise InvalidCredential() from e

        # A credential without a session id never matches anything.
        session_id = payload.get("sid")
        if not isinstance(session_id, str) or not session_id:
            raise InvalidCredential("Not authorized, token has no session")

        return CredentialClaims(account_id=account_id, role=str(payload.get("role", "")), session_id=session_id)
