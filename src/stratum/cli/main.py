"""
Main CLI entry point for Stratum.

Inspects and edits the layered configuration from the command line.
"""

import json as _json
import logging as _logging
import pathlib as _pathlib
import sys as _sys
import typing as _typing

import click as _click
import yaml as _yaml

import stratum
import stratum.config as config
import stratum.constants as _constants
import stratum.errors as errors

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}


def _configure_logging(settings: config.Settings, verbose: bool) -> None:
    level = _logging.DEBUG if verbose else getattr(_logging, settings.log_level)
    _logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=_sys.stderr,
    )


def _parse_value(text: str) -> _typing.Any:
    """Interpret a command-line value as a YAML scalar ("3" -> 3, "true" -> True)."""
    try:
        return _yaml.safe_load(text)
    except _yaml.YAMLError:
        return text


def _open_config(ctx: _click.Context, account: str | None) -> config.Config:
    """Build the Config (or Account when a name is given) for a subcommand."""
    settings: config.Settings = ctx.obj["settings"]
    try:
        if account is None:
            return config.Config(settings)
        stack = config.Account(settings)
        if not stack.ac_load(account):
            _click.echo(
                f"Error: account '{account}' not found in {settings.accounts_dir}", err=True
            )
            raise SystemExit(1)
        return stack
    except errors.ConfigFileError as e:
        _click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from None


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(stratum.__version__, "-v", "--version", prog_name="stratum")
@_click.option(
    "--verbose",
    is_flag=True,
    help="Enable debug logging",
)
@_click.option(
    "--data-path",
    type=_click.Path(file_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Directory holding config.yaml and accounts/ (default: ~/.stratum)",
)
@_click.option(
    "--defaults",
    "defaults_path",
    type=_click.Path(exists=True, dir_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Application defaults.yaml",
)
@_click.pass_context
def cli(
    ctx: _click.Context,
    verbose: bool,
    data_path: _pathlib.Path | None,
    defaults_path: _pathlib.Path | None,
) -> None:
    """
    Stratum - layered configuration and resource orchestration.

    \b
    Examples:
        stratum layers                        # Show the layer stack
        stratum get network                   # Resolved value of a key
        stratum where network                 # Layers defining a key
        stratum set network private --save    # Persist to the local config
        stratum get flavor --account work     # Read through an account
    """
    overrides: dict[str, _typing.Any] = {}
    if data_path is not None:
        overrides["data_path"] = data_path
    if defaults_path is not None:
        overrides["app_defaults"] = defaults_path
    settings = config.Settings(**overrides)
    _configure_logging(settings, verbose)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command(name="layers")
@_click.option("--account", type=str, default=None, help="Include this account's layer")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def layers_cmd(ctx: _click.Context, account: str | None, json_output: bool) -> None:
    """Show the configuration layers, highest priority first."""
    rows = _open_config(ctx, account).describe()

    if json_output:
        _click.echo(_json.dumps(rows, indent=2))
        return

    import rich.console as _rich_console
    import rich.table as _rich_table

    table = _rich_table.Table(title="Configuration layers")
    table.add_column("#", justify="right")
    table.add_column("Layer")
    table.add_column("Write")
    table.add_column("Load/Save")
    table.add_column("File")
    table.add_column("Keys", justify="right")
    for index, row in enumerate(rows):
        table.add_row(
            str(index),
            row["name"],
            "yes" if row["writable"] else "no",
            f"{'L' if row['load'] else '-'}{'S' if row['save'] else '-'}",
            row["filename"] or "",
            str(row["keys"]),
        )
    _rich_console.Console().print(table)


@cli.command(name="get")
@_click.argument("key")
@_click.option("--account", type=str, default=None, help="Read through this account")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def get_cmd(ctx: _click.Context, key: str, account: str | None, json_output: bool) -> None:
    """Print the resolved value of KEY (use section#key to pick a section)."""
    stack = _open_config(ctx, account)
    value = stack.get(key)

    if json_output:
        _click.echo(_json.dumps({"key": key, "value": value, "layers": stack.where(key)}))
        if value is None:
            raise SystemExit(1)
        return

    if value is None:
        _click.echo(f"'{key}' is not set", err=True)
        raise SystemExit(1)
    if isinstance(value, (dict, list)):
        _click.echo(_yaml.safe_dump(value, sort_keys=False).rstrip())
    else:
        _click.echo(str(value))


@cli.command(name="where")
@_click.argument("key")
@_click.option("--account", type=str, default=None, help="Include this account's layer")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def where_cmd(ctx: _click.Context, key: str, account: str | None, json_output: bool) -> None:
    """List the layers holding KEY, highest priority first."""
    found = _open_config(ctx, account).where(key)

    if json_output:
        _click.echo(_json.dumps(found))
        return
    if not found:
        _click.echo(f"'{key}' is not set in any layer")
        return
    for name in found:
        _click.echo(name)


@cli.command(name="set")
@_click.argument("key")
@_click.argument("value")
@_click.option(
    "--layer",
    "layer_name",
    type=str,
    default=None,
    help="Target layer (default: account with --account, else local)",
)
@_click.option("--account", type=str, default=None, help="Write through this account")
@_click.option("--save", is_flag=True, help="Save the target layer to its file")
@_click.pass_context
def set_cmd(
    ctx: _click.Context,
    key: str,
    value: str,
    layer_name: str | None,
    account: str | None,
    save: bool,
) -> None:
    """Set KEY to VALUE in one layer."""
    stack = _open_config(ctx, account)
    if layer_name is None:
        layer_name = _constants.LAYER_ACCOUNT if account else _constants.LAYER_LOCAL
    if layer_name not in stack.layer_names():
        _click.echo(f"Error: unknown layer '{layer_name}'", err=True)
        raise SystemExit(1)

    parsed = _parse_value(value)
    if stack.set(key, parsed, name=layer_name) is None:
        _click.echo(f"Error: '{key}' cannot be set in layer '{layer_name}'", err=True)
        raise SystemExit(1)

    if save:
        try:
            if isinstance(stack, config.Account) and layer_name == _constants.LAYER_ACCOUNT:
                saved = stack.ac_save()
            else:
                saved = stack.save(name=layer_name)
        except errors.ConfigFileError as e:
            _click.echo(f"Error: {e}", err=True)
            raise SystemExit(1) from None
        if not saved:
            _click.echo(f"Error: layer '{layer_name}' cannot be saved", err=True)
            raise SystemExit(1)
        _click.echo(f"{key} = {parsed!r} (saved to {layer_name})")
    else:
        _click.echo(f"{key} = {parsed!r} ({layer_name})")


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="stratum")


if __name__ == "__main__":
    main()
