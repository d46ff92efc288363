"""Tests for placeholder substitution."""

from pathlib import Path

import pytest

from metarepo.errors import UnresolvedPlaceholderError
from metarepo.models import ConfigValues, EntityKind, InputType
from metarepo.placeholders import PlaceholderResolver, default_substitution_table, escape_values


def _config() -> ConfigValues:
    config = ConfigValues()
    config.set("linkConfig", "confDir", InputType.STRING, "${confdir}/hadoop")
    config.set("linkConfig", "uri", InputType.STRING, "hdfs://${host}:8020/")
    config.set("linkConfig", "overrides", InputType.MAP, {"fs.tmp": "${tmp}/sqoop"})
    config.set("linkConfig", "paths", InputType.LIST, ["${confdir}/a", "plain"])
    config.set("linkConfig", "retries", InputType.NUMBER, 3)
    return config


def test_resolve_values_substitutes_every_value_type() -> None:
    """Test substitution inside strings, maps and lists."""
    resolver = PlaceholderResolver({"confdir": "/etc/sqoop", "host": "namenode", "tmp": "/tmp"})
    original = _config()

    resolved = resolver.resolve_values(original, EntityKind.LINK, "hdfsLink1")

    assert resolved.get("linkConfig", "confDir") == "/etc/sqoop/hadoop"
    assert resolved.get("linkConfig", "uri") == "hdfs://namenode:8020/"
    assert resolved.get("linkConfig", "overrides") == {"fs.tmp": "/tmp/sqoop"}
    assert resolved.get("linkConfig", "paths") == ["/etc/sqoop/a", "plain"]
    assert resolved.get("linkConfig", "retries") == 3
    # The input config is left untouched
    assert original.get("linkConfig", "confDir") == "${confdir}/hadoop"


def test_unresolved_token_is_an_error() -> None:
    """Test that unknown tokens are reported, never passed through."""
    resolver = PlaceholderResolver({"confdir": "/etc/sqoop"})

    with pytest.raises(UnresolvedPlaceholderError) as exc_info:
        resolver.resolve_values(_config(), EntityKind.LINK, "hdfsLink1")

    error = exc_info.value
    assert error.kind == EntityKind.LINK
    assert error.name == "hdfsLink1"
    assert error.tokens == ["host", "tmp"]
    assert error.reason == "unresolved placeholder(s): host, tmp"


def test_escaped_token_becomes_literal() -> None:
    """Test that $${name} is emitted as a literal ${name}."""
    resolver = PlaceholderResolver({})
    assert resolver.substitute("cost $${price}", []) == "cost ${price}"


def test_default_substitution_table(tmp_path: Path) -> None:
    """Test the table built from the local deployment."""
    table = default_substitution_table(cwd=tmp_path)
    assert table["cwd"] == str(tmp_path)
    assert table["home"] == str(Path.home())
    assert set(table) == {"cwd", "home", "tmp", "user"}


def test_escape_values_keeps_literal_tokens() -> None:
    """Test that stored ``${`` text survives escaping and substitution unchanged."""
    config = ConfigValues()
    config.set("linkConfig", "overrides", InputType.MAP, {"hadoop.tmp.dir": "/tmp/${user.name}"})
    config.set("linkConfig", "label", InputType.STRING, "cost $${x}")
    config.set("linkConfig", "paths", InputType.LIST, ["${ not a token", "plain"])
    config.set("linkConfig", "retries", InputType.NUMBER, 3)

    escaped = escape_values(config)

    assert escaped.get("linkConfig", "overrides") == {"hadoop.tmp.dir": "/tmp/$${user.name}"}
    assert escaped.get("linkConfig", "label") == "cost $$${x}"
    assert PlaceholderResolver({}).resolve_values(escaped, EntityKind.LINK, "l") == config
    assert config.get("linkConfig", "label") == "cost $${x}"


def test_escape_values_writes_tokens() -> None:
    """Test that deployment-specific values are replaced by their tokens."""
    config = ConfigValues()
    config.set("linkConfig", "confDir", InputType.STRING, "/srv/hadoop/conf")
    config.set("linkConfig", "uri", InputType.STRING, "hdfs://namenode:8020/srv/hadoop")

    escaped = escape_values(config, {"hadoop": "/srv/hadoop", "confdir": "/srv/hadoop/conf"})

    assert escaped.get("linkConfig", "confDir") == "${confdir}"
    assert escaped.get("linkConfig", "uri") == "hdfs://namenode:8020${hadoop}"
    resolver = PlaceholderResolver({"hadoop": "/srv/hadoop", "confdir": "/srv/hadoop/conf"})
    assert resolver.resolve_values(escaped, EntityKind.LINK, "l") == config
