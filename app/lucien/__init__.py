import logging
import os

from dotenv import load_dotenv
from flask import Flask

from app.lucien.auth import bp as auth_bp
from app.lucien.config import is_production, load_config
from app.lucien.db import init_db, teardown_db_session
from app.lucien.erp import init_erp
from app.lucien.errors import register_error_handlers
from app.lucien.modules.billing.api import bp as billing_bp
from app.lucien.modules.deliverables.api import bp as deliverables_bp
from app.lucien.modules.engagements.api import bp as engagements_bp
from app.lucien.modules.intel.api import bp as intel_bp
from app.lucien.modules.ops.api import bp as ops_bp
from app.lucien.modules.secure_channel.api import bp as secure_channel_bp
from app.lucien.modules.secure_channel.store import init_secure_channel
from app.lucien.portal import bp as portal_bp
from app.lucien.ratelimit import init_redis
from app.lucien.routes import bp as routes_bp
from app.lucien.security import init_security


def _production_guardrails(app: Flask) -> None:
    if not is_production(app.config.get("ENV")):
        return
    db_url = str(app.config.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL is required in production.")
    if db_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
    if not app.config.get("LUCIEN_JWT_SECRET"):
        raise RuntimeError("LUCIEN_JWT_SECRET is required in production.")
    if not app.config.get("REDIS_URL"):
        raise RuntimeError("REDIS_URL is required in production.")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates")
    app.config.from_mapping(load_config())

    # Production guardrails (fail fast with clear logs)
    _production_guardrails(app)

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    init_redis(app)
    init_erp(app)
    init_secure_channel(app)
    init_security(app)
    register_error_handlers(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(portal_bp)
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(engagements_bp, url_prefix="/api")
    app.register_blueprint(intel_bp, url_prefix="/api")
    app.register_blueprint(deliverables_bp, url_prefix="/api")
    app.register_blueprint(billing_bp, url_prefix="/api")
    app.register_blueprint(ops_bp, url_prefix="/api")
    app.register_blueprint(secure_channel_bp, url_prefix="/api")

    app.teardown_appcontext(teardown_db_session)

    # Startup logging
    logging.getLogger(__name__).info(
        "create_app() complete; env=%s erp_mode=%s redis=%s",
        app.config.get("ENV"),
        app.extensions["erp_client"].data_mode,
        "on" if app.extensions.get("redis") is not None else "off",
    )
    return app
