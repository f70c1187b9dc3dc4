# financial_service/__init__.py
from flask import Flask, jsonify

from .config import Config
from .extensions import db, cors
from .errors import register_error_handlers
from .logging_config import setup_logging


def register_blueprints(app: Flask):
    from .blueprints.approvals import bp as approvals_bp
    from .blueprints.revenue import bp as revenue_bp
    from .blueprints.invoices import bp as invoices_bp

    app.register_blueprint(approvals_bp, url_prefix="/api/financial")
    app.register_blueprint(revenue_bp,   url_prefix="/api/financial")
    app.register_blueprint(invoices_bp,  url_prefix="/api/financial/invoices")


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    setup_logging(app.config.get("LOG_LEVEL"), app.config.get("LOG_FORMAT"))

    db.init_app(app)
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": "*"}},
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    from .services.storage import init_storage
    init_storage(app)

    register_blueprints(app)
    register_error_handlers(app)

    from .commands import register_commands
    register_commands(app)

    @app.get("/")
    def health():
        return jsonify({"ok": True, "service": "financial-service"})

    return app
