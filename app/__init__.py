"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
The service is JSON + SSE only; authentication is handled in front of it.
"""
import importlib

from flask import Flask


def create_app():
    """Create and configure the Flask application."""
    from app.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    # Non-ASCII business names (Albanian) stay readable in responses
    app.json.ensure_ascii = False

    # Register blueprints
    from app.routes.dashboard import bp as dashboard_bp
    from app.routes.scrape import bp as scrape_bp
    from app.routes.businesses import bp as businesses_bp
    from app.routes.outreach import bp as outreach_bp

    app.register_blueprint(dashboard_bp)
    app.register_blueprint(scrape_bp)
    app.register_blueprint(businesses_bp)
    app.register_blueprint(outreach_bp)

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    # Schema is managed by Alembic; no init_db() call here.
    importlib.import_module('app.models.business')
    importlib.import_module('app.models.scrape_run')

    return app
