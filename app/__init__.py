"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints, and maps
lifecycle errors onto JSON responses.
"""
import hmac
import os
from flask import Flask, jsonify, request


# Reachable from links in outbound emails and the public form, no token
OPEN_PATHS = {'/health', '/api/health'}
OPEN_PREFIXES = ('/api/leads',)
OPEN_SUFFIXES = ('/book-meeting', '/feedback')


def _is_open(path, method):
    if path in OPEN_PATHS:
        return True
    if method == 'POST' and path == '/api/leads':
        return True
    return method == 'POST' and path.startswith(OPEN_PREFIXES) and path.endswith(OPEN_SUFFIXES)


def create_app():
    """Create and configure the Flask application."""
    from app.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    app.secret_key = os.getenv('SECRET_KEY', 'dev-secret-change-me')

    # ── Bearer token auth for the internal API ──────────────────────────
    from app.config import API_TOKEN

    @app.before_request
    def require_token():
        if not API_TOKEN:
            return  # no token set, open access (local dev)
        if _is_open(request.path, request.method):
            return
        header = request.headers.get('Authorization', '')
        token = header[7:] if header.startswith('Bearer ') else ''
        if hmac.compare_digest(token, API_TOKEN):
            return
        return jsonify({'error': 'Unauthorized'}), 401

    # ── Error mapping ───────────────────────────────────────────────────
    from app.lifecycle.errors import LifecycleError

    @app.errorhandler(LifecycleError)
    def handle_lifecycle_error(error):
        return jsonify(error.to_dict()), error.status_code

    # Register blueprints
    from app.routes.health import bp as health_bp
    from app.routes.leads import bp as leads_bp
    from app.routes.configurations import bp as configurations_bp
    from app.routes.analytics import bp as analytics_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(configurations_bp)
    app.register_blueprint(analytics_bp)

    # Initialize circuit breakers for upstream services
    from app.extensions import redis_client
    from app.services.circuit_breaker import init_breakers
    init_breakers(redis_client)

    # Import models so Base.metadata knows about them.
    # Schema is managed by Alembic, no create_all() here
    import importlib
    importlib.import_module('app.models.lead')
    importlib.import_module('app.models.classification_entry')
    importlib.import_module('app.models.configuration')
    importlib.import_module('app.models.analytics_event')

    return app
