"""Application factory for the studio and game page catalog."""

from __future__ import annotations

from flask import Flask, jsonify

from studiohub.blueprints.admin import admin_bp
from studiohub.blueprints.api import api_bp
from studiohub.config import Config
from studiohub.extensions import db, limiter, login_manager, migrate
from studiohub.models import User


def create_app(config_class=Config):
    """Create Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str):
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def handle_unauthorized():
        return jsonify({'error': {'kind': 'unauthorized', 'message': 'Authentication required'}}), 401

    # Ensure models are registered for migrations
    import studiohub.models  # noqa: F401

    # Register blueprints
    app.register_blueprint(api_bp, url_prefix='/api/v1')
    app.register_blueprint(admin_bp, url_prefix='/admin/api')

    @app.errorhandler(429)
    def rate_limited(error):
        return jsonify({'error': {'kind': 'rate_limited', 'message': str(error.description)}}), 429

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({'error': {'kind': 'internal', 'message': 'Internal server error'}}), 500

    # Register CLI commands
    from studiohub.commands import register_commands
    register_commands(app)

    return app
