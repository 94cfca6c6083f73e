"""Config commands -- view and modify the global configuration.

Provides the ``spotctl config`` sub-command group. Settings live in
``config.json`` in the spotctl config directory
(:class:`~spotctl.models.GlobalConfig`)::

    spotctl config set spotify.client_id 0123456789abcdef
    spotctl config set spotify.redirect_uri http://127.0.0.1:9090/callback
    spotctl config show --json
"""

from __future__ import annotations

import typer

from spotctl.exceptions import ConfigError
from spotctl.output import error, format_response, info, print_data, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the stored configuration."""
    from spotctl.config import config_path, load_global_config

    try:
        config = load_global_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    info(f"Config file: {config_path()}")
    data = config.model_dump(mode="json")
    format_response(
        {
            f"{section}.{key}": value
            for section, values in data.items()
            for key, value in values.items()
        }
    )


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key in dot notation, e.g. 'spotify.client_id'."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is validated before saving; booleans accept ``true``/``false``.

    Raises:
        typer.Exit: With code 2 for an unknown key or an invalid value.
    """
    from spotctl.config import set_config_value

    try:
        set_config_value(key, value)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=2) from None
    success(f"Set {key} = {value}")


@config_app.command("path")
def config_path_command() -> None:
    """Print the config and token file locations."""
    from spotctl.auth.token_cache import default_token_path
    from spotctl.config import config_path

    print_data(str(config_path()))
    print_data(str(default_token_path()))
