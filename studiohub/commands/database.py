"""Schema bootstrap for development databases."""

import click
from flask.cli import with_appcontext

from studiohub.extensions import db


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo(click.style('Database tables created.', fg='green'))
