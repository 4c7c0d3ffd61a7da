# treeofhope/__init__.py
# Tree of Hope: Flask app factory
# Goals:
# - deterministic blueprint registration (billing webhook must always exist)
# - proxy-correct (reverse proxy / load balancer)
# - one JSON error shape for every route

from __future__ import annotations

import logging
import os
import time
from importlib import import_module
from typing import Any, Dict, List, Optional, Tuple, Type, Union
from uuid import uuid4

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

# IMPORTANT: never override real env vars in prod
load_dotenv(override=False)

ConfigLike = Union[str, Type[Any]]

from treeofhope.errors import TreeOfHopeError, UpstreamError  # noqa: E402
from treeofhope.extensions import cors, db, init_stripe, migrate  # noqa: E402

# Optional Sentry
try:
    import sentry_sdk  # type: ignore
    from sentry_sdk.integrations.flask import FlaskIntegration  # type: ignore
    from sentry_sdk.integrations.logging import LoggingIntegration  # type: ignore
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration  # type: ignore
except ImportError:  # pragma: no cover
    sentry_sdk = None  # type: ignore

__version__ = "0.1.0"

WEBHOOK_PATH = "/billing/webhook"


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _env_bool(name: str) -> Optional[bool]:
    v = os.getenv(name)
    if v is None:
        return None
    s = str(v).strip().lower()
    if s in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "f", "no", "n", "off"}:
        return False
    return None


def _env_mode() -> str:
    for key in ("APP_ENV", "ENV", "FLASK_ENV"):
        val = (os.getenv(key) or "").strip().lower()
        if val:
            if val == "prod":
                return "production"
            if val == "dev":
                return "development"
            return val
    return "development"


def _resolve_config(target: Optional[ConfigLike]) -> ConfigLike:
    """
    Choose config class/module path.
    - If explicitly provided, respect it.
    - Else if FLASK_CONFIG is set, use it.
    - Else ProductionConfig when env indicates production; otherwise DevelopmentConfig.
    """
    if target is not None:
        return target

    explicit = (os.getenv("FLASK_CONFIG") or "").strip()
    if explicit:
        return explicit

    return "treeofhope.config.ProductionConfig" if _env_mode() == "production" else "treeofhope.config.DevelopmentConfig"


def _config_object(cfg: ConfigLike) -> Any:
    if not isinstance(cfg, str):
        return cfg
    from treeofhope.config import CONFIG_BY_NAME

    if cfg.lower() in CONFIG_BY_NAME:
        return CONFIG_BY_NAME[cfg.lower()]
    module_name, _, attr = cfg.rpartition(".")
    return getattr(import_module(module_name), attr)


def _is_prod(app: Flask) -> bool:
    return str(app.config.get("ENV", "")).lower() == "production"


def _json_error(message: str, status: int, **extra: Any):
    rid = getattr(g, "request_id", "-")
    payload: Dict[str, Any] = {
        "ok": False,
        "message": str(message),
        "error": {"code": int(status), "message": str(message), "request_id": rid},
    }
    if extra:
        payload.update(extra)

    resp = jsonify(payload)
    resp.status_code = int(status)
    return resp


def _parse_cors_origins(app: Flask) -> Union[str, List[str]]:
    raw = str(app.config.get("CORS_ORIGINS") or "*").strip()
    if raw in {"", "*"}:
        return "*"
    if "," in raw:
        return [o.strip() for o in raw.split(",") if o.strip()]
    return raw


# -----------------------------------------------------------------------------
# Logging with request_id
# -----------------------------------------------------------------------------
class _RequestIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            record.request_id = getattr(g, "request_id", "-")
        except RuntimeError:
            # outside an app/request context
            record.request_id = "-"
        return True


def _configure_logging(app: Flask) -> None:
    fmt = "%(asctime)s [%(levelname)s] %(name)s [rid=%(request_id)s]: %(message)s"
    root = logging.getLogger()

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler.addFilter(_RequestIDFilter())
        root.addHandler(handler)
    else:
        for h in root.handlers:
            if not any(isinstance(f, _RequestIDFilter) for f in h.filters):
                h.addFilter(_RequestIDFilter())
            if not getattr(h, "formatter", None) or "%(request_id)s" not in getattr(h.formatter, "_fmt", ""):
                h.setFormatter(logging.Formatter(fmt))

    root.setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    logging.getLogger("werkzeug").setLevel(str(app.config.get("WERKZEUG_LOG_LEVEL", "WARNING")).upper())
    app.logger.info("Loaded config: ENV=%s DEBUG=%s", app.config.get("ENV", "?"), app.debug)


# -----------------------------------------------------------------------------
# ProxyFix (reverse proxy)
# -----------------------------------------------------------------------------
def _apply_proxyfix(app: Flask) -> None:
    trust = _env_bool("TRUST_PROXY")
    if trust is None:
        trust = bool(app.config.get("TRUST_PROXY", False))

    if not trust:
        return

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)
    app.logger.info("ProxyFix enabled (trusting X-Forwarded-* headers).")
    app.config["PREFERRED_URL_SCHEME"] = "https"


# -----------------------------------------------------------------------------
# Blueprint registration (deterministic)
# -----------------------------------------------------------------------------
def _register_blueprints(app: Flask) -> None:
    core: List[Tuple[str, str]] = [
        ("treeofhope.routes.api", "/api"),
        ("treeofhope.admin.routes", "/admin"),
        ("treeofhope.blueprints.billing", "/billing"),
    ]
    for dotted, prefix in core:
        bp = getattr(import_module(dotted), "bp")
        app.register_blueprint(bp, url_prefix=prefix)
        app.logger.debug("Registered blueprint: %-10s → %s", bp.name, prefix)

    if not any(rule.rule == WEBHOOK_PATH for rule in app.url_map.iter_rules()):
        raise RuntimeError(f"Billing blueprint did not register {WEBHOOK_PATH}")


# -----------------------------------------------------------------------------
# Integrations
# -----------------------------------------------------------------------------
def _init_sentry(app: Flask) -> None:
    dsn = str(app.config.get("SENTRY_DSN") or "").strip()
    if not dsn or not sentry_sdk:
        return
    sentry_sdk.init(
        dsn=dsn,
        integrations=[
            FlaskIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=float(app.config.get("SENTRY_TRACES_SAMPLE_RATE", 0.0) or 0.0),
        send_default_pii=False,
        environment=app.config.get("ENV", "development"),
        release=os.getenv("GIT_COMMIT"),
    )
    app.logger.info("Sentry initialized")


def _init_cors(app: Flask, cors_origins: Union[str, List[str]]) -> None:
    cors.init_app(
        app,
        resources={
            r"/api/*": {"origins": cors_origins},
            r"/admin/*": {"origins": cors_origins},
            r"/billing/*": {"origins": cors_origins},
        },
        expose_headers=["X-Request-ID"],
        allow_headers=["Content-Type", "Authorization", "Stripe-Signature", "X-Request-ID"],
        methods=["GET", "POST", "PATCH", "OPTIONS"],
    )


def _maybe_create_sqlite_tables(app: Flask) -> None:
    uri = (app.config.get("SQLALCHEMY_DATABASE_URI") or "").strip()
    if not uri.startswith("sqlite"):
        return
    if app.config.get("AUTO_CREATE_SQLITE", True) is not True:
        return

    import treeofhope.models  # noqa: F401  (register tables on the metadata)

    with app.app_context():
        db.create_all()


# -----------------------------------------------------------------------------
# Request lifecycle + errors
# -----------------------------------------------------------------------------
def _register_request_lifecycle(app: Flask) -> None:
    @app.before_request
    def _bootstrap_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid4().hex
        g._start_ts = time.perf_counter()
        g.pop("principal", None)

    @app.after_request
    def _attach_request_headers(resp):
        resp.headers["X-Request-ID"] = getattr(g, "request_id", "-")
        start = getattr(g, "_start_ts", None)
        if start:
            resp.headers["X-Response-Time-ms"] = str(int((time.perf_counter() - start) * 1000))
        return resp


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(TreeOfHopeError)
    def _domain_err(err: TreeOfHopeError):
        if isinstance(err, UpstreamError):
            app.logger.error("%s: %r", err.message, err.detail)
        elif err.status_code >= 500:
            app.logger.error("%s", err.message)
        return _json_error(err.message, err.status_code, **err.extra)

    @app.errorhandler(HTTPException)
    def _http_err(err: HTTPException):
        return _json_error(err.description or err.name, err.code or 500)

    @app.errorhandler(Exception)
    def _uncaught(err: Exception):
        app.logger.exception("Unhandled error")

        if (request.path or "").startswith(WEBHOOK_PATH):
            return ("", 500)
        return _json_error("Internal server error", 500)


# -----------------------------------------------------------------------------
# Health endpoints
# -----------------------------------------------------------------------------
def _register_health_endpoints(app: Flask) -> None:
    @app.get("/healthz")
    def _healthz():
        return {
            "status": "ok",
            "env": app.config.get("ENV", "unknown"),
            "request_id": getattr(g, "request_id", "-"),
        }

    @app.get("/version")
    def _version():
        return {
            "version": os.getenv("GIT_COMMIT") or __version__,
            "env": app.config.get("ENV"),
            "public_base_url": app.config.get("PUBLIC_BASE_URL") or "",
            "stripe_mode": app.config.get("STRIPE_MODE", "disabled"),
        }


# -----------------------------------------------------------------------------
# App Factory
# -----------------------------------------------------------------------------
def create_app(config_class: Optional[ConfigLike] = None) -> Flask:
    app = Flask(__name__, static_folder=None)

    # ---- Config loading
    cfg = _config_object(_resolve_config(config_class))
    app.config.from_object(cfg)
    if hasattr(cfg, "init_app"):
        cfg.init_app(app)

    if _is_prod(app) and app.debug:
        app.config["DEBUG"] = False

    app.url_map.strict_slashes = False
    app.json.sort_keys = False

    # ---- Proxy handling first
    _apply_proxyfix(app)

    # ---- Logging / integrations
    _configure_logging(app)
    _init_sentry(app)
    _init_cors(app, _parse_cors_origins(app))

    # ---- Core extensions
    db.init_app(app)
    _maybe_create_sqlite_tables(app)
    migrate.init_app(app, db, compare_type=True, render_as_batch=True)
    init_stripe(app)

    # ---- Request lifecycle / errors
    _register_request_lifecycle(app)
    _register_error_handlers(app)

    # ---- Blueprints + health
    _register_blueprints(app)
    _register_health_endpoints(app)

    # ---- CLI
    from treeofhope.cli import tree_cli

    app.cli.add_command(tree_cli)

    return app


__all__ = ["create_app", "__version__"]
