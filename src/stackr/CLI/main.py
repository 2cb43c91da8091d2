# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Command Line Interface for stackr.
"""
from contextlib import contextmanager
import click
import yaml
from ..errors import RuntimeClientError, StackrError
from ..MANAGERS.project_loader import ProjectLoader
from ..MANAGERS.stack_teardown import REMOVE_IMAGES_CHOICES, teardown
from ..MODELS.load_options import LoadOptions
from ..RUNNERS.launch_sequencer import LaunchSequencer
from ..RUNTIME.docker_runtime import DockerRuntime


@click.group()
@click.option('--file', '-f', default='docker-compose.yml', help='Compose file path')
@click.option('--prefix', default='', help='Prepended to every service name')
@click.option('--suffix', default='', help='Appended to every service name')
@click.option('--pull-env/--no-pull-env', default=False,
              help='Add host environment variables to every service')
@click.pass_context
def cli(ctx, file, prefix, suffix, pull_env):
    """
    stackr - launch a docker-compose stack against the local Docker daemon,
    waiting on depends_on conditions between services.
    """
    ctx.ensure_object(dict)
    ctx.obj['options'] = LoadOptions(
        manifest_path=file,
        name_prefix=prefix,
        name_suffix=suffix,
        pull_env_from_system=pull_env,
    )


def _load(ctx):
    try:
        return ProjectLoader().load(ctx.obj['options'])
    except StackrError as e:
        raise click.ClickException(str(e))


@contextmanager
def _runtime(ctx):
    """
    Yields the runtime to use, closing it afterwards unless it was handed in.
    """
    runtime = ctx.obj.get('runtime')
    if runtime is not None:
        yield runtime
        return
    try:
        runtime = DockerRuntime()
    except RuntimeClientError as e:
        raise click.ClickException(str(e))
    try:
        yield runtime
    finally:
        runtime.close()


@cli.command()
@click.option('--timeout', '-t', type=float, default=300.0, show_default=True,
              help='Seconds to wait for dependency conditions')
@click.pass_context
def up(ctx, timeout):
    """Start services defined in the compose file."""
    project = _load(ctx)
    with _runtime(ctx) as runtime:
        try:
            result = LaunchSequencer(runtime).launch(project, timeout=timeout)
        except StackrError as e:
            raise click.ClickException(str(e))
    click.echo(f"Services started: {', '.join(result.container_ids)}")


@cli.command()
@click.option('--rmi', type=click.Choice(REMOVE_IMAGES_CHOICES), default='none',
              help='Also remove images: local (built) or all')
@click.pass_context
def down(ctx, rmi):
    """Remove the containers of all services."""
    project = _load(ctx)
    with _runtime(ctx) as runtime:
        try:
            teardown(project, runtime, remove_images=rmi)
        except StackrError as e:
            raise click.ClickException(str(e))
    click.echo("Services removed.")


@cli.command()
@click.pass_context
def config(ctx):
    """Print the resolved project."""
    project = _load(ctx)
    click.echo(yaml.safe_dump(project.model_dump(mode='json'), sort_keys=False))


@cli.command()
@click.pass_context
def ps(ctx):
    """List service status"""
    project = _load(ctx)
    with _runtime(ctx) as runtime:
        click.echo(f"{'SERVICE':30} {'STATUS':10} {'HEALTH':10}")
        click.echo("-" * 52)
        for service in project.services:
            try:
                state = runtime.inspect(service.name)
            except RuntimeClientError:
                click.echo(f"{service.name:30} {'missing':10} {'-':10}")
                continue
            health = state.health.status if state.health else '-'
            click.echo(f"{service.name:30} {state.status:10} {health:10}")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
