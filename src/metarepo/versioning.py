"""Artifact version compatibility policies."""

from abc import ABC, abstractmethod

import structlog

from metarepo.errors import VersionMismatchError

logger = structlog.get_logger()


def parse_version(version: str) -> tuple[int, ...]:
    """Parse a dotted version string into a comparable tuple.

    Non-numeric suffixes on a component (``"7-SNAPSHOT"``) are ignored.

    Raises:
        ValueError: if a component has no leading digits
    """
    parts = []
    for component in version.strip().split("."):
        digits = ""
        for char in component:
            if not char.isdigit():
                break
            digits += char
        if not digits:
            raise ValueError(f"Invalid version: {version!r}")
        parts.append(int(digits))
    return tuple(parts)


class VersionPolicy(ABC):
    """Decides whether an artifact version can be imported."""

    def __init__(self, current: str) -> None:
        self.current = current

    @abstractmethod
    def accepts(self, version: str) -> bool:
        """Return True if an artifact of ``version`` can be imported."""

    def check(self, version: str) -> None:
        """Raise VersionMismatchError unless ``version`` is accepted."""
        if not self.accepts(version):
            logger.error("Artifact version rejected", artifact_version=version, current_version=self.current)
            raise VersionMismatchError(version, self.current)
        logger.debug("Artifact version accepted", artifact_version=version, current_version=self.current)


class ExactVersionPolicy(VersionPolicy):
    """Accepts only artifacts written by exactly the current version."""

    def accepts(self, version: str) -> bool:
        return version == self.current


class MinorCompatiblePolicy(VersionPolicy):
    """Accepts artifacts with the same major version that are not newer than the current one."""

    def accepts(self, version: str) -> bool:
        try:
            artifact = parse_version(version)
            current = parse_version(self.current)
        except ValueError:
            return False
        return artifact[0] == current[0] and artifact <= current


POLICIES: dict[str, type[VersionPolicy]] = {
    "exact": ExactVersionPolicy,
    "minor": MinorCompatiblePolicy,
}


def policy_for(name: str, current: str) -> VersionPolicy:
    """Get a version policy by name."""
    if name not in POLICIES:
        raise ValueError(f"Unknown version policy: {name}. Choose from: {', '.join(POLICIES)}")
    return POLICIES[name](current)
