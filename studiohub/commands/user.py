"""User management CLI commands."""

import click
from flask.cli import with_appcontext
from sqlalchemy import select

from studiohub.extensions import db
from studiohub.models import User, UserRole


@click.group('user')
def user_commands():
    """User management commands."""
    pass


@user_commands.command('create')
@click.option('--email', required=True, help='User email')
@click.option('--name', 'display_name', default=None, help='Display name')
@click.option('--admin', 'is_admin', is_flag=True, help='Grant platform admin role')
@with_appcontext
def create_user(email, display_name, is_admin):
    """Create a user."""
    email = email.strip().lower()
    existing = db.session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if existing:
        click.echo(click.style(f'Error: User with email "{email}" already exists', fg='red'))
        return

    role = UserRole.ADMIN if is_admin else UserRole.USER
    user = User(email=email, display_name=display_name, role=role)
    db.session.add(user)
    db.session.commit()

    click.echo(click.style('User created successfully!', fg='green'))
    click.echo(f'  ID: {user.id}')
    click.echo(f'  Email: {email}')
    click.echo(f'  Role: {role.value}')


@user_commands.command('set-role')
@click.option('--email', required=True, help='User email')
@click.option('--role', type=click.Choice([r.value for r in UserRole]), required=True)
@with_appcontext
def set_role(email, role):
    """Change a user's platform role."""
    user = db.session.execute(select(User).where(User.email == email.strip().lower())).scalar_one_or_none()
    if not user:
        click.echo(click.style(f'Error: No user {email} found', fg='red'))
        return

    user.role = UserRole(role)
    db.session.commit()
    click.echo(click.style(f'{email} is now {role}.', fg='green'))
