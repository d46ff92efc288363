"""Placeholder substitution for deployment-specific config values.

Config values may embed ``${name}`` tokens standing in for values that only
make sense on one deployment, such as absolute paths. At import time every
token is replaced from a substitution table. ``$${`` is a literal ``${``,
which is how export keeps stored values that already contain ``${``.
"""

import copy
import getpass
import re
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog

from metarepo.errors import UnresolvedPlaceholderError
from metarepo.models import ConfigValues, EntityKind

logger = structlog.get_logger()

TOKEN_PATTERN = re.compile(r"\$\$\{|\$\{([A-Za-z_][A-Za-z0-9_.-]*)\}")


def default_substitution_table(cwd: Path | None = None) -> dict[str, str]:
    """Build the substitution table for the local deployment.

    Args:
        cwd: Working directory to expose as ``${cwd}`` (defaults to the process cwd)

    Returns:
        Mapping of token name to concrete value
    """
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = ""
    return {
        "cwd": str(cwd or Path.cwd()),
        "home": str(Path.home()),
        "tmp": tempfile.gettempdir(),
        "user": user,
    }


def _map_strings(value: Any, replace: Callable[[str], str]) -> Any:
    if isinstance(value, str):
        return replace(value)
    if isinstance(value, list):
        return [_map_strings(item, replace) for item in value]
    if isinstance(value, dict):
        return {key: _map_strings(item, replace) for key, item in value.items()}
    return value


def escape_values(config: ConfigValues, tokens: dict[str, str] | None = None) -> ConfigValues:
    """Return a copy of ``config`` that substitutes back to the same values.

    Every literal ``${`` becomes ``$${``. Every occurrence of a value listed in
    ``tokens`` becomes the ``${name}`` token for it, longest value first.

    Args:
        config: Values as stored in the source repository
        tokens: Token name to the deployment-specific value it stands for
    """
    by_value = {value: name for name, value in (tokens or {}).items() if value}
    alternatives = [re.escape(value) for value in sorted(by_value, key=len, reverse=True)]
    pattern = re.compile("|".join([re.escape("${"), *alternatives]))

    def replace(match: re.Match[str]) -> str:
        text = match.group(0)
        return "$${" if text == "${" else "${" + by_value[text] + "}"

    escaped = copy.deepcopy(config)
    for _, config_input in escaped.iter_inputs():
        config_input.value = _map_strings(config_input.value, lambda text: pattern.sub(replace, text))
    return escaped


class PlaceholderResolver:
    """Substitutes ``${name}`` tokens using a fixed table."""

    def __init__(self, table: dict[str, str] | None = None) -> None:
        self.table = dict(table or {})

    def substitute(self, text: str, missing: list[str]) -> str:
        """Substitute tokens in one string, appending unknown names to ``missing``."""

        def replace(match: re.Match[str]) -> str:
            name = match.group(1)
            if name is None:
                return "${"
            if name not in self.table:
                if name not in missing:
                    missing.append(name)
                return match.group(0)
            return self.table[name]

        return TOKEN_PATTERN.sub(replace, text)

    def resolve_values(self, config: ConfigValues, kind: EntityKind, name: str) -> ConfigValues:
        """Return a substituted copy of ``config``.

        Raises:
            UnresolvedPlaceholderError: if any token has no entry in the table
        """
        resolved = copy.deepcopy(config)
        missing: list[str] = []
        for group, config_input in resolved.iter_inputs():
            before = config_input.value
            config_input.value = _map_strings(before, lambda text: self.substitute(text, missing))
            if config_input.value != before:
                logger.debug("Substituted placeholders", entity=name, input=f"{group.name}.{config_input.name}")
        if missing:
            raise UnresolvedPlaceholderError(kind, name, missing)
        return resolved
