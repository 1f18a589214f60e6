"""
Command Line Interface for dcompose.
"""
import logging
import os
import shlex
import sys

import click

from ..errors import BadSubstitution, CommandError, ContainerParseError, SpawnError
from ..MANAGERS.host_env import HostEnvironment
from ..MANAGERS.mapper import Mapper
from ..MANAGERS.session import Session
from ..MODELS.project_config import ProjectConfig
from ..UTILS.shell_printer import shell_printer

ERRORS = (BadSubstitution, CommandError, ContainerParseError, SpawnError)


def fail(e: Exception):
    raise click.ClickException(str(e)) from e


@click.group()
@click.option('--config', '-c', default='dcompose.yml', help='Project configuration file')
@click.option('--file', '-f', multiple=True, help='Compose file; repeat to layer overrides')
@click.option('--project', '-p', default=None, help='Project name')
@click.option('--verbose', '-v', is_flag=True, help='Log the commands that are run')
@click.pass_context
def cli(ctx, config, file, project, verbose):
    """
    dcompose - run host processes against docker-compose services.

    Finds the addresses that services publish their ports on, and exports
    them to commands running outside the containers.
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format='%(name)s: %(message)s')
    ctx.ensure_object(dict)

    cfg = ProjectConfig.load(config)
    if file:
        cfg.file = list(file)
    if project:
        cfg.project = project

    ctx.obj['config'] = cfg
    ctx.obj['session'] = Session(dir=cfg.dir, file=cfg.file, project=cfg.project, interactive=True)


@cli.command()
@click.pass_context
def env(ctx):
    """Print shell exports with the addresses of running services."""
    printer = shell_printer()
    if sys.stdout.isatty():
        # invoked directly; show how the output is meant to be used
        click.echo(printer.comment('To export these variables to your shell, run:'))
        click.echo(printer.comment(printer.eval_output(f"dcompose -c {shlex.quote(ctx.parent.params['config'])} env")))

    host_env = HostEnvironment(ctx.obj['config'], ctx.obj['session'])
    try:
        pairs = host_env.resolve()
    except ERRORS as e:
        fail(e)

    for key, value in pairs:
        if value is None:
            click.echo(printer.unset(key))
        else:
            click.echo(printer.export(key, value))


@cli.command()
@click.argument('command')
@click.pass_context
def host(ctx, command):
    """Run COMMAND on the host, linked to services in containers."""
    config = ctx.obj['config']
    session = ctx.obj['session']
    argv = shlex.split(command)
    if not argv:
        fail(ValueError("empty command"))

    try:
        session.up(*(config.host_services or []), detached=True)
        HostEnvironment(config, session).export()
    except ERRORS as e:
        fail(e)

    os.execvp(argv[0], argv)


@cli.command()
@click.argument('services', nargs=-1)
@click.pass_context
def ps(ctx, services):
    """List containers of the project."""
    try:
        containers = ctx.obj['session'].ps(*services)
    except ERRORS as e:
        fail(e)

    click.echo(f"{'ID':14} {'NAME':30} {'STATUS':10} {'EXIT':5} PORTS")
    click.echo("-" * 70)
    for c in containers:
        exitstatus = '' if c.exitstatus is None else str(c.exitstatus)
        click.echo(f"{c.id[:12]:14} {c.name or '':30} {c.status:10} {exitstatus:5} {', '.join(c.ports)}")


@cli.command(name='map')
@click.argument('values', nargs=-1, required=True)
@click.pass_context
def map_values(ctx, values):
    """Print the host addresses that VALUES refer to."""
    try:
        for key, mapped in Mapper.map_env({v: v for v in values}, session=ctx.obj["session"]):
            click.echo(f"{key} -> {mapped if mapped is not None else '(not running)'}")
    except ERRORS as e:
        fail(e)


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
