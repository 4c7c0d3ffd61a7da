# treeofhope/security.py
# ─────────────────────────────────────────────────────────────────────────────
# Bearer auth helpers
# Tokens are JWTs minted by the hosted auth provider; we verify them locally.
# ─────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Dict, Optional

import jwt
from flask import current_app, g, request

from treeofhope.errors import AuthenticationError, AuthorizationError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    id: str
    email: str = ""
    claims: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "user_metadata": self.claims.get("user_metadata") or {},
        }


# =============================================================================
# Token Helpers
# =============================================================================
def bearer_token() -> Optional[str]:
    """Extract bearer token from request headers."""
    h = request.headers.get("Authorization", "")
    if not h.lower().startswith("bearer "):
        return None
    tok = h.split(" ", 1)[1].strip()
    return tok or None


def _normalize_pem(s: str) -> str:
    """Normalize PEM strings that may contain escaped newlines."""
    return s.replace("\\n", "\n") if "BEGIN" in s and "\\n" in s else s


def verify_token(tok: str) -> Optional[Principal]:
    """Decode and validate a bearer JWT; None when it does not verify."""
    cfg = current_app.config
    secret = str(cfg.get("AUTH_JWT_SECRET") or "")
    if not secret:
        log.warning("AUTH_JWT_SECRET not configured; rejecting bearer token")
        return None

    audience = cfg.get("AUTH_JWT_AUDIENCE") or None
    try:
        claims = jwt.decode(
            tok,
            key=_normalize_pem(secret),
            algorithms=[str(cfg.get("AUTH_JWT_ALG") or "HS256")],
            audience=audience,
            options={"verify_aud": bool(audience), "require": ["sub"]},
        )
    except jwt.PyJWTError as e:
        log.info("Bearer token rejected: %s", e)
        return None

    return Principal(id=str(claims["sub"]), email=str(claims.get("email") or "").lower(), claims=claims)


def current_principal() -> Optional[Principal]:
    """Principal for this request (cached on `g`), or None."""
    if "principal" in g:
        return g.principal
    tok = bearer_token()
    principal = verify_token(tok) if tok else None
    g.principal = principal
    return principal


def is_operator(principal: Principal) -> bool:
    allow = [e.lower() for e in (current_app.config.get("ADMIN_EMAILS") or [])]
    if not allow:
        return True
    return principal.email in allow


# =============================================================================
# Decorators
# =============================================================================
def require_auth(fn):
    """
    Reject the request unless it carries a valid bearer token.
        @bp.get("/me")
        @require_auth
        def me(): g.principal ...
    """

    @wraps(fn)
    def wrapped(*args, **kwargs):
        if current_principal() is None:
            raise AuthenticationError("Unauthorized")
        return fn(*args, **kwargs)

    return wrapped


def require_admin(fn):
    """Like require_auth, and the principal must be an operator."""

    @wraps(fn)
    def wrapped(*args, **kwargs):
        principal = current_principal()
        if principal is None:
            raise AuthenticationError("Unauthorized")
        if not is_operator(principal):
            raise AuthorizationError("Operator access required")
        return fn(*args, **kwargs)

    return wrapped
