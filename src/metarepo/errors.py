"""Exceptions raised by export and import."""

from typing import TYPE_CHECKING

from metarepo.models import EntityKind

if TYPE_CHECKING:
    from metarepo.importer import ImportReport
    from metarepo.registry import Violation


class MetarepoError(Exception):
    """Base class for all export/import errors."""


class StructuralError(MetarepoError):
    """Artifact bytes do not decode into the expected envelope shape."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class VersionMismatchError(MetarepoError):
    """Artifact version is outside the supported set."""

    def __init__(self, artifact_version: str, current_version: str) -> None:
        self.artifact_version = artifact_version
        self.current_version = current_version
        super().__init__(
            f"artifact version {artifact_version} is not compatible with version {current_version}"
        )


class SourceReadError(MetarepoError):
    """The source repository could not be read during export."""


class RepositoryError(MetarepoError):
    """A repository store failed to load or save its state."""


class EntityRejected(MetarepoError):
    """Base class for errors that reject a single entity.

    The ``reason`` is stable text that ends up in the import report.
    """

    def __init__(self, kind: EntityKind, name: str, reason: str) -> None:
        self.kind = kind
        self.name = name
        self.reason = reason
        super().__init__(f"{kind.value} '{name}': {reason}")


class UnresolvedReferenceError(EntityRejected):
    """A name-based reference does not resolve in the target repository."""


class UnresolvedPlaceholderError(EntityRejected):
    """A config value holds placeholder tokens missing from the substitution table."""

    def __init__(self, kind: EntityKind, name: str, tokens: list[str]) -> None:
        self.tokens = tokens
        super().__init__(kind, name, f"unresolved placeholder(s): {', '.join(tokens)}")


class ConfigValidationError(EntityRejected):
    """A connector validator rejected one or more config values."""

    def __init__(self, kind: EntityKind, name: str, violations: "list[Violation]") -> None:
        self.violations = violations
        super().__init__(kind, name, "; ".join(str(v) for v in violations))


class PersistenceError(EntityRejected):
    """The target store refused to write an entity."""


class DuplicateNameError(PersistenceError):
    """An entity with the same name already exists."""

    def __init__(self, kind: EntityKind, name: str) -> None:
        super().__init__(kind, name, f"{kind.value} '{name}' already exists")


class AtomicImportError(MetarepoError):
    """An atomic import was aborted because at least one entity was rejected."""

    def __init__(self, report: "ImportReport") -> None:
        self.report = report
        super().__init__(f"atomic import aborted: {len(report.rejected)} entity(ies) rejected")
