from __future__ import annotations

import logging
import os

import click
from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from actions.principal_actions import create_owner
from app.middlewares.error_handler import init_error_handlers
from app.middlewares.rate_limit import init_rate_limiting
from app.middlewares.request_context import init_request_context
from app.routes.auth import auth_bp
from app.routes.candidates import candidates_bp
from app.routes.core import core_bp
from app.routes.owner import owner_bp
from app.routes.public import public_bp
from app.routes.users import users_bp
from config import Config
from db import Base, SessionLocal, init_engine
from utils import ApiError, setup_logging


def create_app() -> Flask:
    load_dotenv()

    cfg = Config()
    cfg.validate()
    setup_logging(cfg.LOG_LEVEL)

    engine = init_engine(cfg.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    os.makedirs(cfg.ARTIFACT_DIR, exist_ok=True)
    os.makedirs(cfg.UPLOAD_DIR, exist_ok=True)

    app = Flask(__name__)
    app.config["CFG"] = cfg
    app.config["JSON_SORT_KEYS"] = False
    # Photo + document in one multipart request, plus form overhead.
    app.config["MAX_CONTENT_LENGTH"] = (2 * cfg.MAX_UPLOAD_MB + 1) * 1024 * 1024

    CORS(
        app,
        origins=cfg.ALLOWED_ORIGINS,
        supports_credentials=False,
        allow_headers=["Content-Type", "Authorization", "X-Request-ID", "X-Session-Token"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
        methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        max_age=3600,
    )

    init_request_context(app)
    init_rate_limiting(app)
    init_error_handlers(app)

    app.register_blueprint(core_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(candidates_bp, url_prefix="/api/v1/candidates")
    app.register_blueprint(public_bp, url_prefix="/api/v1/public")
    app.register_blueprint(owner_bp, url_prefix="/api/v1/owner")
    app.register_blueprint(users_bp, url_prefix="/api/v1/users")

    _register_cli(app)

    logging.getLogger("api").info("app_ready env=%s render_mode=%s", cfg.APP_ENV, cfg.RENDER_MODE)
    return app


def _register_cli(app: Flask) -> None:
    @app.cli.command("create-owner")
    @click.option("--name", required=True)
    @click.option("--email", required=True)
    @click.password_option()
    def create_owner_command(name: str, email: str, password: str):
        """Create the platform owner account (only one may exist)."""
        db = SessionLocal()
        try:
            p = create_owner(db, name=name, email=email, password=password)
            db.commit()
        except ApiError as e:
            db.rollback()
            raise click.ClickException(e.message)
        finally:
            db.close()
        click.echo(f"Owner created: {p.email} ({p.principalId})")
