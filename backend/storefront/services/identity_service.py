# Overview: Identity provider boundary; turns a bearer credential into a Caller.

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

from jose import JWTError, jwt

from .access_service import Caller

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    def resolve(self, token: str) -> Caller | None: ...


class JwtIdentityProvider:
    """
    HS256 bearer tokens carrying {sub, role, org_id}.

    The core trusts the decoded tuple as-is; no further lookup happens here.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", expire_minutes: int = 720):
        self.secret = secret
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    def issue(self, caller: Caller, expire_minutes: int | None = None) -> str:
        payload = {
            "sub": str(caller.user_id),
            "role": caller.role.value,
            "org_id": caller.org_id,
        }
        minutes = self.expire_minutes if expire_minutes is None else expire_minutes
        if minutes:
            payload["exp"] = datetime.now(timezone.utc) + timedelta(minutes=minutes)
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def resolve(self, token: str) -> Caller | None:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as exc:
            logger.info("Rejected bearer token: %s", exc)
            return None

        try:
            org_id = payload.get("org_id")
            return Caller(
                user_id=int(payload["sub"]),
                role=payload["role"],
                org_id=int(org_id) if org_id is not None else None,
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.info("Bearer token has malformed claims: %s", exc)
            return None
