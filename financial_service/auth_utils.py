# financial_service/auth_utils.py
from __future__ import annotations

import time
from functools import wraps
from typing import Optional, Dict, Any, Iterable

import jwt
from flask import current_app, g, request

from .errors import problem


# ---------------------------
# Access token (JWT)
# ---------------------------

def _now_unix() -> int:
    return int(time.time())


def mint_access(claims: Dict[str, Any], ttl_min: int = 60) -> str:
    """
    Sign an HS256 access JWT carrying the platform claims
    (id, role, center_id, name, full_name, ...).
    The auth service mints production tokens; this is for tooling and tests.
    """
    now = _now_unix()
    payload = {"iat": now, "exp": now + ttl_min * 60, **claims}
    iss = current_app.config.get("JWT_ISS")
    if iss:
        payload.setdefault("iss", iss)
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm="HS256")


def decode_access(token: str) -> Dict[str, Any]:
    """
    Decode and verify an access JWT.
    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on problems.
    """
    iss = current_app.config.get("JWT_ISS")
    kwargs = {"issuer": iss} if iss else {}
    return jwt.decode(
        token,
        current_app.config["SECRET_KEY"],
        algorithms=["HS256"],
        **kwargs,
    )


def bearer_from_auth_header(authorization: Optional[str]) -> Optional[str]:
    """
    Extract 'Bearer <token>' value from an Authorization header.
    """
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


# ---------------------------
# Role gates
# ---------------------------

def require_roles(roles: Iterable[str], label: Optional[str] = None, case_insensitive: bool = False):
    """
    Route decorator: verify the bearer token and check its `role` claim.
    On success the decoded claims are available as `flask.g.user`.
    """
    allowed = frozenset(roles)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            header = request.headers.get("Authorization")
            if not header:
                return problem(401, "Unauthorized", "Access denied, no token provided")

            token = bearer_from_auth_header(header)
            if not token:
                return problem(401, "Unauthorized", "Invalid token")
            try:
                claims = decode_access(token)
            except jwt.InvalidTokenError:
                return problem(401, "Unauthorized", "Invalid token")

            role = claims.get("role") or ""
            if case_insensitive:
                role = str(role).lower()
            if role not in allowed:
                if label:
                    detail = f"Access denied ({label}): role {claims.get('role')} not authorized"
                else:
                    detail = "Access denied, you are not authorized"
                return problem(403, "Forbidden", detail)

            g.user = claims
            return fn(*args, **kwargs)
        return wrapper
    return decorator


# Finance team and platform admins
finance_auth = require_roles({"financial", "admin", "manager"}, label="FinanceAuth", case_insensitive=True)
# Center admins plus everyone above them
center_auth = require_roles({"center", "financial", "admin", "manager"}, label="CenterAuth", case_insensitive=True)
# State admins plus finance/platform admins
state_auth = require_roles({"state", "financial", "admin", "manager"})
# Everyone who takes part in the invoice workflow
invoice_auth = require_roles({"state", "financial", "admin", "manager", "center"})
# Academic coordinators and finance
academic_auth = require_roles({"academic", "financial"})


def current_user() -> Dict[str, Any]:
    return getattr(g, "user", None) or {}
