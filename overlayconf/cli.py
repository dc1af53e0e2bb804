# overlayconf/cli.py

import importlib
import os

import click

from . import commands
from .exceptions import ConfigError
from .processor import ConfigProcessor
from .sources import SystemProperties


def _import_type(spec: str) -> type:
    """Import ``package.module:ClassName``."""
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise click.BadParameter(f"expected module:Class, got {spec!r}", param_hint="--type")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name!r}: {e}", param_hint="--type") from e
    target = module
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise click.BadParameter(f"{module_name!r} has no attribute {attr!r}", param_hint="--type") from None
    if not isinstance(target, type):
        raise click.BadParameter(f"{spec!r} is not a class", param_hint="--type")
    return target


def _parse_defines(defines) -> dict:
    """Turn ``NAME=VALUE`` pairs into a dict."""
    props = {}
    for item in defines:
        if "=" not in item:
            raise click.BadParameter(f"expected NAME=VALUE, got {item!r}", param_hint="-D")
        name, value = item.split("=", 1)
        props[name.strip()] = value
    return props


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-t", "--type", "type_spec", required=True, help="Config dataclass as module:Class")
@click.option("-c", "--config", "file_path", help="JSON/TOML file to load")
@click.option("-p", "--prefix", default="", help="Env-var prefix for overrides")
@click.option("-s", "--save-file", help="File written by `set` (defaults to --config)")
@click.option("--dotenv", "dotenv_path", help=".env file merged into the environment")
@click.option("--properties", "properties_path", help="NAME=VALUE file loaded as system properties")
@click.option("-D", "defines", multiple=True, metavar="NAME=VALUE", help="System property (repeatable)")
@click.option("-o", "--override", "overrides", multiple=True, metavar="PATH=VALUE",
              help="Command line override (repeatable)")
@click.pass_context
def cli(ctx, type_spec, file_path, prefix, save_file, dotenv_path, properties_path, defines, overrides):
    """
    overlayconf CLI: inspect & edit a dataclass config with overlay sources.

    Bind a class (`-t myapp.config:Config`), load a file (`-c config.json`),
    then run subcommands:
      • get       PATH
      • set       PATH VALUE
      • dump      [--pretty]
      • original  [--pretty]
      • paths     [--overridden]
    """
    config_type = _import_type(type_spec)

    # 1) system properties: file first, -D wins
    props = SystemProperties()
    if properties_path:
        props.load_file(properties_path)
    props.update(_parse_defines(defines))

    # 2) bind, load and resolve the overlay
    try:
        processor = ConfigProcessor(
            config_type(),
            env_prefix=prefix,
            arguments=list(overrides),
            save_file=save_file or file_path,
            system_properties=props,
            environ=dict(os.environ),
            save_logic=lambda: None,
            dotenv_path=dotenv_path,
        )
        if file_path and not processor.load_file(file_path):
            click.secho(f"Warning: could not load {file_path}, using defaults", fg="yellow", err=True)
        processor.process()
    except (ConfigError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    ctx.obj = {
        "processor": processor,
        "file_path": file_path,
        "save_file": save_file,
    }


@cli.command()
@click.argument("path")
@click.pass_context
def get(ctx, path):
    """Print the resolved value of PATH."""
    result = commands.get_property(ctx.obj["processor"], path, not_found_exit_code=1)
    if result.outcome is commands.Outcome.NOT_FOUND:
        click.secho(f"Property not found: {path}", fg="yellow", err=True)
        ctx.exit(result.exit_code)
    click.echo(result.output)


@cli.command()
@click.argument("path")
@click.argument("value")
@click.pass_context
def set(ctx, path, value):
    """
    Set PATH to VALUE and save the baseline.
    Prints the previous value. Overlay values are not written.
    """
    if not (ctx.obj["save_file"] or ctx.obj["file_path"]):
        click.secho("Error: --config or --save-file must be provided for `set`", fg="red", err=True)
        ctx.exit(1)

    try:
        result = commands.set_property(ctx.obj["processor"], path, value, not_found_exit_code=1)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    if result.outcome is commands.Outcome.NOT_FOUND:
        click.secho(f"Property not found: {path}", fg="yellow", err=True)
        ctx.exit(result.exit_code)
    if result.outcome is commands.Outcome.USAGE:
        click.secho(f"Error: {result.output}", fg="red", err=True)
        ctx.exit(result.exit_code)
    click.echo(result.output)


@cli.command()
@click.option("--pretty", is_flag=True, help="Indent the JSON output")
@click.pass_context
def dump(ctx, pretty):
    """Print the live config (baseline + overlay) as JSON."""
    click.echo(ctx.obj["processor"].json(pretty=pretty))


@cli.command()
@click.option("--pretty", is_flag=True, help="Indent the JSON output")
@click.pass_context
def original(ctx, pretty):
    """Print the baseline as it would be saved, without overlay values."""
    click.echo(ctx.obj["processor"].original_json(pretty=pretty))


@cli.command()
@click.option("--overridden", is_flag=True, help="Only paths whose value comes from the overlay")
@click.pass_context
def paths(ctx, overridden):
    """List addressable property paths."""
    processor = ctx.obj["processor"]
    for path in (processor.overridden_paths() if overridden else processor.paths()):
        click.echo(path)


if __name__ == "__main__":
    cli()
