"""Protected slug CLI commands."""

import click
from flask.cli import with_appcontext

from studiohub.models import SlugEntityKind
from studiohub.services.protection import get_registry

KIND_CHOICES = [k.value for k in SlugEntityKind]


@click.group('protected-slugs')
def protected_slug_commands():
    """Manage the curated protected slug list."""
    pass


@protected_slug_commands.command('add')
@click.argument('kind', type=click.Choice(KIND_CHOICES))
@click.argument('slug')
@click.option('--reason', default=None, help='Why the slug is protected')
@with_appcontext
def add_protected(kind, slug, reason):
    """Protect SLUG for entities of KIND."""
    entry, error = get_registry().add_protected(kind, slug, reason, actor=None)
    if error:
        click.echo(click.style(f'Error: {error.message}', fg='red'))
        return

    click.echo(click.style('Protected slug added.', fg='green'))
    click.echo(f'  ID: {entry.id}')
    click.echo(f'  Kind: {kind}')
    click.echo(f'  Slug: {entry.slug}')


@protected_slug_commands.command('remove')
@click.argument('protected_id')
@with_appcontext
def remove_protected(protected_id):
    """Remove a curated protected slug by ID."""
    removed, error = get_registry().remove_protected(protected_id)
    if error:
        click.echo(click.style(f'Error: {error.message}', fg='red'))
        return
    click.echo(click.style(f'Removed {removed["entity_kind"]} slug "{removed["slug"]}".', fg='green'))


@protected_slug_commands.command('list')
@click.option('--kind', type=click.Choice(KIND_CHOICES), default=None)
@with_appcontext
def list_protected(kind):
    """List curated protected slugs."""
    entries = get_registry().list_protected(kind)
    if not entries:
        click.echo('No protected slugs.')
        return

    for entry in entries:
        reason = f' ({entry.reason})' if entry.reason else ''
        click.echo(f'{entry.id}  {entry.entity_kind.value:<10} {entry.slug}{reason}')
