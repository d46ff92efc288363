"""Import engine: rebuild repository state from an artifact."""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import structlog

from metarepo import __version__, codec
from metarepo.errors import AtomicImportError, ConfigValidationError, EntityRejected
from metarepo.models import EntityKind, Envelope, Job, Link, Submission
from metarepo.placeholders import PlaceholderResolver
from metarepo.registry import ConnectorRegistry
from metarepo.repository import Repository
from metarepo.resolver import ReferenceResolver
from metarepo.versioning import ExactVersionPolicy, VersionPolicy

logger = structlog.get_logger()


@dataclass
class ImportedEntity:
    """An entity written to the target repository."""

    kind: EntityKind
    name: str
    id: int | None


@dataclass
class Rejection:
    """An entity left out of the import, with the reason."""

    kind: EntityKind
    name: str
    reason: str


@dataclass
class ImportReport:
    """Per-entity outcome of one import."""

    imported: list[ImportedEntity] = field(default_factory=list)
    rejected: list[Rejection] = field(default_factory=list)
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return not self.rejected

    def reject(self, error: EntityRejected) -> None:
        self.rejected.append(Rejection(kind=error.kind, name=error.name, reason=error.reason))

    def summary_lines(self) -> list[str]:
        verb = "would import" if self.dry_run else "imported"
        lines = [f"{verb} {entry.kind.value} '{entry.name}'" for entry in self.imported]
        lines.extend(f"rejected {entry.kind.value} '{entry.name}': {entry.reason}" for entry in self.rejected)
        return lines


@dataclass
class ImportOptions:
    """Options controlling an import.

    Attributes:
        atomic: Reject the whole artifact if any entity is rejected
        dry_run: Resolve and validate everything but persist nothing
        version_policy: Artifact version check (defaults to exact match)
    """

    atomic: bool = False
    dry_run: bool = False
    version_policy: VersionPolicy | None = None


class Stage(ABC):
    """One dependency level of the import pipeline."""

    kind: EntityKind

    @abstractmethod
    def records(self, envelope: Envelope) -> list[Any]:
        pass

    @abstractmethod
    def name_of(self, entity: Any) -> str:
        pass

    @abstractmethod
    def prepare(self, entity: Any, importer: "Importer", resolver: ReferenceResolver) -> None:
        """Substitute placeholders, resolve references and validate one entity.

        Raises:
            EntityRejected: if the entity cannot be imported
        """

    @abstractmethod
    def dependencies(self, entity: Any) -> list[tuple[EntityKind, str]]:
        pass

    @abstractmethod
    def persist(self, entity: Any, repository: Repository) -> int:
        pass


class LinkStage(Stage):
    kind = EntityKind.LINK

    def records(self, envelope: Envelope) -> list[Link]:
        return envelope.links

    def name_of(self, entity: Link) -> str:
        return entity.name

    def prepare(self, entity: Link, importer: "Importer", resolver: ReferenceResolver) -> None:
        entity.config = importer.placeholders.resolve_values(entity.config, self.kind, entity.name)
        resolver.resolve_link(entity)
        violations = importer.registry.validate(entity.connector_name, entity.config, "link")
        if violations:
            raise ConfigValidationError(self.kind, entity.name, violations)

    def dependencies(self, entity: Link) -> list[tuple[EntityKind, str]]:
        return []

    def persist(self, entity: Link, repository: Repository) -> int:
        return repository.create_link(entity)


class JobStage(Stage):
    kind = EntityKind.JOB

    def records(self, envelope: Envelope) -> list[Job]:
        return envelope.jobs

    def name_of(self, entity: Job) -> str:
        return entity.name

    def prepare(self, entity: Job, importer: "Importer", resolver: ReferenceResolver) -> None:
        resolve = importer.placeholders.resolve_values
        entity.from_config = resolve(entity.from_config, self.kind, entity.name)
        entity.to_config = resolve(entity.to_config, self.kind, entity.name)
        entity.driver_config = resolve(entity.driver_config, self.kind, entity.name)
        resolver.resolve_job(entity)
        registry = importer.registry
        violations = registry.validate(entity.from_connector_name, entity.from_config, "from-job")
        violations += registry.validate(entity.to_connector_name, entity.to_config, "to-job")
        violations += registry.validate_driver(entity.driver_config)
        if violations:
            raise ConfigValidationError(self.kind, entity.name, violations)

    def dependencies(self, entity: Job) -> list[tuple[EntityKind, str]]:
        return [(EntityKind.LINK, entity.from_link_name), (EntityKind.LINK, entity.to_link_name)]

    def persist(self, entity: Job, repository: Repository) -> int:
        return repository.create_job(entity)


class SubmissionStage(Stage):
    kind = EntityKind.SUBMISSION

    def records(self, envelope: Envelope) -> list[Submission]:
        return envelope.submissions

    def name_of(self, entity: Submission) -> str:
        return entity.job_name

    def prepare(self, entity: Submission, importer: "Importer", resolver: ReferenceResolver) -> None:
        resolver.resolve_submission(entity)

    def dependencies(self, entity: Submission) -> list[tuple[EntityKind, str]]:
        return [(EntityKind.JOB, entity.job_name)]

    def persist(self, entity: Submission, repository: Repository) -> int:
        return repository.create_submission(entity)


STAGES: tuple[Stage, ...] = (LinkStage(), JobStage(), SubmissionStage())


class Importer:
    """Imports artifacts into a target repository.

    Entities are processed in dependency order: links, then jobs, then
    submissions. Each entity is substituted, resolved and validated on its
    own; a failure rejects that entity and everything that depends on it.
    """

    def __init__(
        self,
        repository: Repository,
        registry: ConnectorRegistry,
        substitutions: dict[str, str] | None = None,
        options: ImportOptions | None = None,
        stages: tuple[Stage, ...] = STAGES,
    ) -> None:
        """Initialize importer.

        Args:
            repository: Target repository
            registry: Live connector registry used for validation
            substitutions: Placeholder substitution table
            options: Import options
            stages: Dependency-ordered pipeline stages
        """
        self.repository = repository
        self.registry = registry
        self.placeholders = PlaceholderResolver(substitutions)
        self.options = options or ImportOptions()
        self.version_policy = self.options.version_policy or ExactVersionPolicy(__version__)
        self.stages = stages

    def import_artifact(self, data: bytes) -> ImportReport:
        """Decode artifact bytes and import them.

        Raises:
            StructuralError: if the artifact is malformed
            VersionMismatchError: if the artifact version is not supported
            AtomicImportError: if the import is atomic and any entity was rejected
        """
        return self.import_envelope(codec.decode(data))

    def import_envelope(self, envelope: Envelope) -> ImportReport:
        """Import an already decoded envelope."""
        self.version_policy.check(envelope.version)
        envelope = copy.deepcopy(envelope)
        report = ImportReport(dry_run=self.options.dry_run)
        resolver = ReferenceResolver(self.repository, self.registry, envelope)
        deferred = self.options.atomic or self.options.dry_run
        logger.info(
            "Starting import",
            version=envelope.version,
            atomic=self.options.atomic,
            dry_run=self.options.dry_run,
        )

        planned = []
        for stage in self.stages:
            accepted = self._plan(stage, envelope, resolver, report)
            if deferred:
                planned.append((stage, accepted))
            else:
                self._commit(stage, accepted, resolver, report)

        if self.options.atomic and report.rejected:
            logger.error("Atomic import aborted", rejected=len(report.rejected))
            raise AtomicImportError(report)

        for stage, accepted in planned:
            if self.options.dry_run:
                report.imported.extend(ImportedEntity(stage.kind, stage.name_of(e), None) for e in accepted)
            else:
                self._commit(stage, accepted, resolver, report)

        logger.info("Import finished", imported=len(report.imported), rejected=len(report.rejected))
        return report

    def _plan(self, stage: Stage, envelope: Envelope, resolver: ReferenceResolver, report: ImportReport) -> list:
        accepted = []
        for entity in stage.records(envelope):
            try:
                stage.prepare(entity, self, resolver)
            except EntityRejected as e:
                logger.warning("Entity rejected", kind=e.kind.value, name=e.name, reason=e.reason)
                report.reject(e)
                continue
            if stage.kind in (EntityKind.LINK, EntityKind.JOB):
                resolver.accept(stage.kind, entity)
            accepted.append(entity)
        logger.info("Stage planned", kind=stage.kind.value, accepted=len(accepted))
        return accepted

    def _commit(self, stage: Stage, accepted: list, resolver: ReferenceResolver, report: ImportReport) -> None:
        with self.repository.write_section(stage.kind):
            for entity in accepted:
                name = stage.name_of(entity)
                failed = [dep for dep in stage.dependencies(entity) if resolver.is_rejected(*dep)]
                try:
                    if failed:
                        dep_kind, dep_name = failed[0]
                        raise EntityRejected(stage.kind, name, f"depends on rejected {dep_kind.value} '{dep_name}'")
                    entity_id = stage.persist(entity, self.repository)
                except EntityRejected as e:
                    logger.warning("Entity not persisted", kind=e.kind.value, name=e.name, reason=e.reason)
                    report.reject(e)
                    if stage.kind in (EntityKind.LINK, EntityKind.JOB):
                        resolver.discard(stage.kind, name)
                    continue
                report.imported.append(ImportedEntity(stage.kind, name, entity_id))
        logger.info("Stage committed", kind=stage.kind.value)
