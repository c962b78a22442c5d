# songstudio/__init__.py
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from flask import Flask, jsonify
from flask_migrate import Migrate

from songstudio.config import Config, ensure_sqlite_dir
from songstudio.database import db, init_db
from songstudio.errors import SongStudioError

migrate = Migrate()


def create_app(config_overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)

    # -----------------------------------------------------------
    # CONFIG
    # -----------------------------------------------------------
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    ensure_sqlite_dir(app.config["SQLALCHEMY_DATABASE_URI"])
    app.config["MAX_CONTENT_LENGTH"] = (int(app.config["MAX_UPLOAD_MB"]) + 1) * 1024 * 1024

    if not app.debug and not app.testing:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    # -----------------------------------------------------------
    # INICIALIZACIÓN DE EXTENSIONES
    # -----------------------------------------------------------
    init_db(app)
    migrate.init_app(app, db)

    from songstudio import models  # noqa: F401

    # -----------------------------------------------------------
    # ERRORES DE DOMINIO -> JSON
    # -----------------------------------------------------------
    @app.errorhandler(SongStudioError)
    def handle_domain_error(e: SongStudioError):
        if e.http_status >= 500:
            app.logger.error("%s: %s", e.code, e.message)
        return jsonify(e.to_dict()), e.http_status

    # -----------------------------------------------------------
    # BLUEPRINTS
    # -----------------------------------------------------------
    from songstudio.routes.auth import bp as auth_bp
    app.register_blueprint(auth_bp)

    from songstudio.routes.songs import bp as songs_bp
    app.register_blueprint(songs_bp)

    from songstudio.routes.admin import bp as admin_bp
    app.register_blueprint(admin_bp)

    from songstudio.routes.ai import bp as ai_bp
    app.register_blueprint(ai_bp)

    from songstudio.routes.audio import bp as audio_bp
    app.register_blueprint(audio_bp)

    from songstudio.cli import songs_cli
    app.cli.add_command(songs_cli)

    # -----------------------------------------------------------
    # HEALTHCHECK
    # -----------------------------------------------------------
    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    # Crear tablas si no existen
    with app.app_context():
        db.create_all()

    return app
