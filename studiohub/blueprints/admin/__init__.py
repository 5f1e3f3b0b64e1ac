from studiohub.blueprints.admin.routes import admin_bp

__all__ = ['admin_bp']
