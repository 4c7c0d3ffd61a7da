import logging
import os
from typing import Any

import stripe
from flask_cors import CORS
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Core singletons
# ─────────────────────────────────────────────────────────────
db = SQLAlchemy()
migrate = Migrate()
cors = CORS()


# ─────────────────────────────────────────────────────────────
# Safe DB helpers
# ─────────────────────────────────────────────────────────────
def tx_commit() -> None:
    """Commit the current unit of work; roll back and re-raise on failure."""
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


# ─────────────────────────────────────────────────────────────
# Stripe initialization
# ─────────────────────────────────────────────────────────────
def guess_stripe_mode(api_key: str) -> str:
    if not api_key:
        return "disabled"
    if api_key.startswith(("sk_live_", "rk_live_")):
        return "live"
    if api_key.startswith(("sk_test_", "rk_test_")):
        return "test"
    return "unknown"


def _resolve_stripe_secret(app: Any) -> str:
    return (
        app.config.get("STRIPE_SECRET_KEY")
        or app.config.get("STRIPE_API_KEY")
        or os.getenv("STRIPE_SECRET_KEY")
        or ""
    )


def init_stripe(app: Any) -> None:
    api_key = _resolve_stripe_secret(app)
    mode = guess_stripe_mode(api_key)
    app.config["STRIPE_MODE"] = mode

    if not api_key:
        app.logger.warning("Stripe NOT initialized: missing STRIPE_SECRET_KEY")
        return

    stripe.api_key = api_key
    stripe.max_network_retries = int(app.config.get("STRIPE_MAX_NETWORK_RETRIES", 2) or 2)
    app.logger.info("Stripe initialized (%s mode)", mode)


__all__ = [
    "db",
    "migrate",
    "cors",
    "tx_commit",
    "guess_stripe_mode",
    "init_stripe",
]
