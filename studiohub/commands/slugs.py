"""Slug inspection CLI commands."""

import click
from flask.cli import with_appcontext

from studiohub.models import SlugEntityKind
from studiohub.services.catalog import check_slug_available


@click.group('slugs')
def slug_commands():
    """Slug inspection commands."""
    pass


@slug_commands.command('check')
@click.argument('kind', type=click.Choice([k.value for k in SlugEntityKind]))
@click.argument('slug')
@with_appcontext
def check_slug(kind, slug):
    """Report whether SLUG is free and whether it needs verification."""
    result = check_slug_available(kind, slug)
    if result.get('error'):
        click.echo(click.style(f'Invalid: {result["error"]}', fg='red'))
        return

    if result['available']:
        click.echo(click.style(f'"{slug}" is available', fg='green'))
    else:
        click.echo(click.style(f'"{slug}" is taken', fg='yellow'))
    if result['requiresVerification']:
        click.echo('  Requires verification before it can go live')
