from studiohub.blueprints.api.routes import api_bp

__all__ = ['api_bp']
