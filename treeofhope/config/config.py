# treeofhope/config/config.py
# Canonical Tree of Hope configuration (env-first, production-safe)

from __future__ import annotations

import os
from typing import List, Optional


# ----------------------------
# Env helpers
# ----------------------------
_TRUTHY = {"1", "true", "yes", "on", "y"}
_FALSY = {"0", "false", "no", "off", "n"}


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return default
    s = str(v).strip()
    return s if s else default


def _bool(name: str, default: bool = False) -> bool:
    v = _env(name)
    if v is None:
        return default
    s = v.strip().lower()
    if s in _TRUTHY:
        return True
    if s in _FALSY:
        return False
    return default


def _int(name: str, default: int) -> int:
    v = _env(name)
    if v is None:
        return default
    try:
        return int(str(v).strip())
    except ValueError:
        return default


def _csv(name: str) -> List[str]:
    raw = _env(name, "") or ""
    return [p.strip().lower() for p in raw.split(",") if p.strip()]


def _clean_base_url(v: Optional[str]) -> str:
    return (v or "").strip().rstrip("/")


# ----------------------------
# Config classes
# ----------------------------
class BaseConfig:
    """
    Env-first config:
    - all important settings can be overridden via environment variables
    - safe defaults for local dev
    """

    ENV = (_env("APP_ENV") or _env("ENV") or _env("FLASK_ENV") or "base").strip().lower()

    DEBUG = _bool("FLASK_DEBUG", False)
    TESTING = _bool("TESTING", False)

    # Security
    SECRET_KEY = _env("SECRET_KEY", "dev-change-me")

    # URLs / scheme
    PUBLIC_BASE_URL = _clean_base_url(_env("PUBLIC_BASE_URL", "http://localhost:5000"))
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    TRUST_PROXY = _bool("TRUST_PROXY", False)

    # Logging
    LOG_LEVEL = _env("LOG_LEVEL", "INFO")
    WERKZEUG_LOG_LEVEL = _env("WERKZEUG_LOG_LEVEL", "WARNING")

    # CORS ("*" or comma list)
    CORS_ORIGINS = _env("CORS_ORIGINS", "*")

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = _env("SQLALCHEMY_DATABASE_URI", "sqlite:///treeofhope-dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    AUTO_CREATE_SQLITE = _bool("AUTO_CREATE_SQLITE", True)

    # Stripe
    STRIPE_SECRET_KEY = _env("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET = _env("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_MAX_NETWORK_RETRIES = _int("STRIPE_MAX_NETWORK_RETRIES", 2)

    STRIPE_PRICE_NURTURE = _env("STRIPE_PRICE_NURTURE", "")
    STRIPE_PRICE_SUSTAIN = _env("STRIPE_PRICE_SUSTAIN", "")
    STRIPE_PRICE_FLOURISH = _env("STRIPE_PRICE_FLOURISH", "")
    STRIPE_PRICE_SEEDLING = _env("STRIPE_PRICE_SEEDLING", "")
    STRIPE_PRICE_SAPLING = _env("STRIPE_PRICE_SAPLING", "")
    STRIPE_PRICE_MIGHTY_OAK = _env("STRIPE_PRICE_MIGHTY_OAK", "")

    # Hosted auth provider (bearer JWTs)
    AUTH_JWT_SECRET = _env("AUTH_JWT_SECRET", "")
    AUTH_JWT_ALG = _env("AUTH_JWT_ALG", "HS256")
    AUTH_JWT_AUDIENCE = _env("AUTH_JWT_AUDIENCE", "authenticated")
    ADMIN_EMAILS = _csv("ADMIN_EMAILS")

    # Observability
    SENTRY_DSN = _env("SENTRY_DSN", "")
    SENTRY_TRACES_SAMPLE_RATE = float(_env("SENTRY_TRACES_SAMPLE_RATE", "0.0") or 0.0)

    @classmethod
    def init_app(cls, app) -> None:
        """
        Boot hardening hook.
        Called from create_app() after app.config.from_object(...)
        """
        uri = str(app.config.get("SQLALCHEMY_DATABASE_URI") or "")

        if uri.startswith("sqlite:"):
            opts = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
            connect_args = dict(opts.get("connect_args") or {})
            connect_args.setdefault("check_same_thread", False)
            opts["connect_args"] = connect_args
            opts.setdefault("pool_pre_ping", True)
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = opts


class DevelopmentConfig(BaseConfig):
    ENV = "development"
    DEBUG = True

    SQLALCHEMY_DATABASE_URI = _env("SQLALCHEMY_DATABASE_URI", "sqlite:///treeofhope-dev.db")

    SESSION_COOKIE_SECURE = False
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "http")


class TestingConfig(BaseConfig):
    ENV = "testing"
    TESTING = True
    DEBUG = False

    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS: dict = {}

    SECRET_KEY = "testing-secret"
    PUBLIC_BASE_URL = "https://treeofhope.test"
    CORS_ORIGINS = "*"

    STRIPE_SECRET_KEY = "sk_test_treeofhope"
    STRIPE_WEBHOOK_SECRET = "whsec_treeofhope_testing"
    STRIPE_MAX_NETWORK_RETRIES = 0

    STRIPE_PRICE_NURTURE = "price_nurture_test"
    STRIPE_PRICE_SUSTAIN = "price_sustain_test"
    STRIPE_PRICE_FLOURISH = "price_flourish_test"
    STRIPE_PRICE_SEEDLING = "price_seedling_test"
    STRIPE_PRICE_SAPLING = "price_sapling_test"
    STRIPE_PRICE_MIGHTY_OAK = "price_mighty_oak_test"

    AUTH_JWT_SECRET = "auth-testing-secret-with-enough-length"
    AUTH_JWT_ALG = "HS256"
    AUTH_JWT_AUDIENCE = "authenticated"
    ADMIN_EMAILS = ["ops@treeofhope.test"]

    SENTRY_DSN = ""


class ProductionConfig(BaseConfig):
    ENV = "production"
    DEBUG = False

    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    TRUST_PROXY = _bool("TRUST_PROXY", True)

    @classmethod
    def init_app(cls, app) -> None:
        super().init_app(app)

        # ---- Production guardrails (fail fast) ----
        sk = app.config.get("SECRET_KEY")
        if not sk or sk == "dev-change-me":
            raise RuntimeError("SECRET_KEY must be set to a strong random value in production.")

        base = (app.config.get("PUBLIC_BASE_URL") or "").strip()
        if base and base.startswith("http://"):
            raise RuntimeError("PUBLIC_BASE_URL must be https:// in production.")

        if _bool("FLASK_DEBUG", False):
            raise RuntimeError("FLASK_DEBUG must be 0 in production.")
