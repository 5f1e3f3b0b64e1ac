"""CLI commands for studiohub."""

from .database import init_db_command
from .protected import protected_slug_commands
from .slugs import slug_commands
from .user import user_commands


def register_commands(app):
    """Register all CLI command groups with the Flask app."""
    app.cli.add_command(init_db_command)
    app.cli.add_command(protected_slug_commands)
    app.cli.add_command(slug_commands)
    app.cli.add_command(user_commands)
