"""Stanza CLI - Main Entry Point.

Commands:
    run     - Serve an application with uvicorn
    routes  - Print an application's route table in match order
"""

import sys
from typing import Optional

import click

from . import __version__
from .config import StanzaConfig
from .faults import ConfigError
from .server import configure_logging, load_app, serve


@click.group()
@click.version_option(__version__, prog_name="stanza")
@click.option('--env-file', type=click.Path(dir_okay=False), default=None, help='Path to a .env file')
@click.pass_context
def cli(ctx, env_file: Optional[str]):
    """Stanza - routing and sessions for small content services."""
    ctx.ensure_object(dict)
    ctx.obj['env_file'] = env_file


def _load(ctx, target: str, overrides: dict):
    try:
        app = load_app(target)
    except (ImportError, AttributeError, ValueError) as e:
        click.echo(f"✗ Could not load {target}: {e}", err=True)
        sys.exit(2)

    # Deployment settings layer over whatever the app was built with
    try:
        config = StanzaConfig.load(
            ctx.obj['env_file'],
            overrides={k: v for k, v in overrides.items() if v is not None},
            base=app.config,
        )
    except ConfigError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(2)

    app.configure(config)
    configure_logging("debug" if config.debug else config.log_level)
    return app, config


@cli.command('run')
@click.argument('target')
@click.option('--host', type=str, default=None, help='Server host')
@click.option('--port', type=int, default=None, help='Server port')
@click.option('--log-level', type=click.Choice(['debug', 'info', 'warning', 'error']), default=None, help='Log level')
@click.pass_context
def run(ctx, target: str, host: Optional[str], port: Optional[int], log_level: Optional[str]):
    """
    Serve TARGET (module:attribute) with uvicorn.

    Examples:
      stanza run poems.main:app
      stanza run poems.main:create_app --port=8080
    """
    app, config = _load(ctx, target, {"host": host, "port": port, "log_level": log_level})
    try:
        serve(app, config)
    except KeyboardInterrupt:
        click.echo("\n✓ Server stopped")


@cli.command('routes')
@click.argument('target')
@click.pass_context
def routes(ctx, target: str):
    """
    Print TARGET's route table in match order, with shadowing warnings.
    """
    app, _ = _load(ctx, target, {})

    for route in app.router.routes():
        click.echo(f"{route.method:<7} {route.pattern:<40} {route.handler_name}")

    for warning in app.router.warnings:
        click.echo(f"⚠ {warning}", err=True)

    if app.router.warnings:
        sys.exit(1)


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
