"""Name-based reference resolution against a target repository.

Local ids never cross the artifact boundary, so every relationship between
imported entities is re-derived by name. A name that the artifact itself
defines resolves only to the artifact's entity, and only if that entity was
accepted. Otherwise the name must resolve to an entity already present in
the target repository.
"""

import structlog

from metarepo.errors import DuplicateNameError, UnresolvedReferenceError
from metarepo.models import Envelope, EntityKind, Job, Link, Submission
from metarepo.registry import ConnectorRegistry
from metarepo.repository import Repository
from metarepo.versioning import parse_version

logger = structlog.get_logger()


class ReferenceResolver:
    """Resolves references for one import, in dependency order."""

    def __init__(self, repository: Repository, registry: ConnectorRegistry, envelope: Envelope) -> None:
        self.repository = repository
        self.registry = registry
        self.envelope = envelope
        self._incoming: dict[EntityKind, set[str]] = {
            EntityKind.LINK: {link.name for link in envelope.links},
            EntityKind.JOB: {job.name for job in envelope.jobs},
        }
        self._accepted: dict[EntityKind, dict[str, Link | Job]] = {EntityKind.LINK: {}, EntityKind.JOB: {}}

    def accept(self, kind: EntityKind, entity: Link | Job) -> None:
        """Record that an artifact entity passed resolution and validation."""
        self._accepted[kind][entity.name] = entity

    def discard(self, kind: EntityKind, name: str) -> None:
        """Record that an artifact entity was rejected, so its dependants are rejected too."""
        self._accepted[kind].pop(name, None)

    def is_rejected(self, kind: EntityKind, name: str) -> bool:
        return name in self._incoming[kind] and name not in self._accepted[kind]

    def _lookup(self, kind: EntityKind, name: str, owner_kind: EntityKind, owner_name: str) -> Link | Job:
        if name in self._incoming[kind]:
            found = self._accepted[kind].get(name)
            if found is None:
                raise UnresolvedReferenceError(owner_kind, owner_name, f"depends on rejected {kind.value} '{name}'")
            return found
        found = self.repository.find_by_name(kind, name)
        if found is None:
            raise UnresolvedReferenceError(owner_kind, owner_name, f"{kind.value} '{name}' does not exist")
        logger.debug("Resolved reference to existing entity", kind=kind.value, name=name, owner=owner_name)
        return found

    def _check_unique(self, kind: EntityKind, name: str) -> None:
        if name in self._accepted[kind] or self.repository.find_by_name(kind, name) is not None:
            raise DuplicateNameError(kind, name)

    def _check_connector(self, link: Link) -> None:
        connector = self.registry.get_connector(link.connector_name)
        if connector is None:
            raise UnresolvedReferenceError(
                EntityKind.LINK, link.name, f"connector '{link.connector_name}' is not registered"
            )
        exported = self.envelope.connector_version(link.connector_name)
        if exported is None or exported == connector.version:
            return
        try:
            newer = parse_version(exported) > parse_version(connector.version)
        except ValueError:
            newer = False
        if newer:
            raise UnresolvedReferenceError(
                EntityKind.LINK,
                link.name,
                f"connector '{link.connector_name}' version {exported} is newer than "
                f"registered version {connector.version}",
            )
        logger.warning(
            "Connector version differs from exported version",
            connector=link.connector_name,
            exported_version=exported,
            registered_version=connector.version,
        )

    def resolve_link(self, link: Link) -> None:
        """Check the link's connector and name against the target."""
        self._check_connector(link)
        self._check_unique(EntityKind.LINK, link.name)

    def resolve_job(self, job: Job) -> None:
        """Resolve both link names and derive the job's connector names."""
        from_link = self._lookup(EntityKind.LINK, job.from_link_name, EntityKind.JOB, job.name)
        to_link = self._lookup(EntityKind.LINK, job.to_link_name, EntityKind.JOB, job.name)
        self._check_unique(EntityKind.JOB, job.name)
        job.from_connector_name = from_link.connector_name
        job.to_connector_name = to_link.connector_name

    def resolve_submission(self, submission: Submission) -> None:
        """Resolve the submission's job name."""
        self._lookup(EntityKind.JOB, submission.job_name, EntityKind.SUBMISSION, submission.job_name)
