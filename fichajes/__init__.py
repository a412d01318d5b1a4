"""Flask application factory."""

from __future__ import annotations

from flask import Flask

from fichajes.blueprints.api import bp as api_bp
from fichajes.blueprints.main import bp as main_bp
from fichajes.cli import fichajes_cli
from fichajes.config import Config
from fichajes.extensions import db


def create_app(config_object: type[Config] = Config) -> Flask:
    app = Flask(__name__, instance_relative_config=False)
    app.config.from_object(config_object)

    log_level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    app.logger.setLevel(log_level)

    db.init_app(app)

    # Ensure model metadata is loaded for migrations and tests.
    from fichajes import models as _models  # noqa: F401

    app.register_blueprint(main_bp)
    app.register_blueprint(api_bp)
    app.cli.add_command(fichajes_cli)

    return app
