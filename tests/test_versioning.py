"""Tests for version compatibility policies."""

import pytest

from metarepo.errors import VersionMismatchError
from metarepo.versioning import ExactVersionPolicy, MinorCompatiblePolicy, parse_version, policy_for


def test_parse_version() -> None:
    """Test parsing dotted versions, ignoring qualifiers."""
    assert parse_version("1.99.7") == (1, 99, 7)
    assert parse_version("2.0.0-SNAPSHOT") == (2, 0, 0)
    with pytest.raises(ValueError):
        parse_version("latest")


def test_exact_policy() -> None:
    """Test that the exact policy only accepts the same string."""
    policy = ExactVersionPolicy("1.2.0")
    policy.check("1.2.0")
    with pytest.raises(VersionMismatchError) as exc_info:
        policy.check("1.2.1")
    assert exc_info.value.artifact_version == "1.2.1"
    assert exc_info.value.current_version == "1.2.0"


@pytest.mark.parametrize(
    "version,accepted",
    [
        ("1.2.0", True),
        ("1.1.9", True),
        ("1.0", True),
        ("1.3.0", False),
        ("0.9.0", False),
        ("2.0.0", False),
        ("garbage", False),
    ],
)
def test_minor_compatible_policy(version: str, accepted: bool) -> None:
    """Test that older artifacts of the same major version are accepted."""
    assert MinorCompatiblePolicy("1.2.0").accepts(version) is accepted


def test_policy_for() -> None:
    """Test looking up policies by name."""
    assert isinstance(policy_for("exact", "1.0.0"), ExactVersionPolicy)
    assert isinstance(policy_for("minor", "1.0.0"), MinorCompatiblePolicy)
    with pytest.raises(ValueError, match="Unknown version policy"):
        policy_for("loose", "1.0.0")
