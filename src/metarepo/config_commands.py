"""Configuration commands for the metarepo CLI."""

from cyclopts import App

from metarepo.config import DEFAULT_REPOSITORY_PATH, get_config

config_app = App(name="config", help="Manage dump/load settings")

KNOWN_KEYS = {
    "repository.path": f"Repository file used by dump and load (default {DEFAULT_REPOSITORY_PATH})",
    "connectors.path": "YAML file with connector definitions and validators",
    "import.atomic": "Reject the whole artifact when any entity is rejected (true/false)",
    "import.version_policy": "Artifact version check: exact or minor",
    "placeholders.<name>": "Value substituted for ${name} in imported config values",
}


def _scope(global_: bool) -> str:
    return "global" if global_ else "local"


@config_app.command
def set(key: str, value: str, global_: bool = False) -> None:
    """Set a configuration setting.

    Args:
        key: Configuration key, e.g. repository.path or placeholders.data_dir
        value: Configuration value
        global_: If True, set in global config. If False, set in local config.
    """
    known = key in KNOWN_KEYS or key.startswith("placeholders.")
    config = get_config(use_global=global_)
    config.set(key, value)
    print(f"Set {key} = {value} ({_scope(global_)})")
    if not known:
        print(f"Warning: {key} is not a recognized setting")


@config_app.command
def unset(key: str, global_: bool = False) -> None:
    """Unset a configuration setting.

    Args:
        key: Configuration key
        global_: If True, unset from global config. If False, unset from local config.
    """
    get_config(use_global=global_).unset(key)
    print(f"Unset {key} ({_scope(global_)})")


@config_app.command
def get(key: str, global_: bool = False) -> None:
    """Get the value of a configuration setting.

    Args:
        key: Configuration key
        global_: If True, get from global config only. If False, get with global fallback.
    """
    value = get_config(use_global=global_).get(key)
    if value is None:
        print(f"{key} is not set")
    else:
        print(f"{key} = {value}")


@config_app.command(name="list")
def list_config(global_: bool = False) -> None:
    """List all configuration settings.

    Args:
        global_: If True, list global config only. If False, list merged config.
    """
    settings = get_config(use_global=global_).list()

    if not settings:
        print(f"No {_scope(global_)} configuration settings")
        return

    print(f"{'Global' if global_ else 'Configuration'} settings:\n")
    for key, value in settings.items():
        print(f"{key} = {value}")


@config_app.command
def keys() -> None:
    """Describe the settings dump and load understand."""
    for key, description in KNOWN_KEYS.items():
        print(f"{key}\n    {description}")
