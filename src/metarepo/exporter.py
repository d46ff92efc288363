"""Export engine: snapshot a repository into an artifact."""

import copy
from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from metarepo import __version__, codec
from metarepo.errors import SourceReadError
from metarepo.models import ConnectorRef, Envelope, Submission
from metarepo.placeholders import escape_values
from metarepo.repository import Repository

logger = structlog.get_logger()

SubmissionFilter = Callable[[Submission], bool]


def submissions_for_job(job_name: str) -> SubmissionFilter:
    """Build a filter keeping only the submissions of one job."""
    return lambda submission: submission.job_name == job_name


class Exporter:
    """Reads a repository and builds a versioned envelope from it.

    The repository is only read. No lock is held, so a repository that is
    being modified concurrently yields an eventually consistent snapshot.
    """

    def __init__(
        self,
        repository: Repository,
        version: str = __version__,
        clock: Callable[[], datetime] | None = None,
        placeholders: dict[str, str] | None = None,
    ) -> None:
        """Initialize exporter.

        Args:
            repository: Source repository
            version: Version stamped into the artifact
            clock: Source of the generation timestamp
            placeholders: Token name to a deployment-specific value that should
                be written as that token
        """
        self.repository = repository
        self.version = version
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.placeholders = dict(placeholders or {})

    def export(self, submission_filter: SubmissionFilter | None = None) -> Envelope:
        """Export the repository to an envelope.

        Args:
            submission_filter: Predicate selecting which submissions to export

        Returns:
            Envelope holding copies of the repository records without local ids

        Raises:
            SourceReadError: if the repository cannot be read
        """
        logger.info("Starting export", version=self.version)
        try:
            links = copy.deepcopy(self.repository.list_links())
            jobs = copy.deepcopy(self.repository.list_jobs())
            submissions = copy.deepcopy(self.repository.list_submissions())
            connectors = self.repository.list_connectors()
        except Exception as e:
            logger.error("Failed to read source repository", error=str(e))
            raise SourceReadError(f"Failed to read source repository: {e}") from e

        if submission_filter is not None:
            submissions = [submission for submission in submissions if submission_filter(submission)]

        for record in [*links, *jobs, *submissions]:
            record.id = None
        for link in links:
            link.config = escape_values(link.config, self.placeholders)
        for job in jobs:
            job.from_config = escape_values(job.from_config, self.placeholders)
            job.to_config = escape_values(job.to_config, self.placeholders)
            job.driver_config = escape_values(job.driver_config, self.placeholders)

        used = {link.connector_name for link in links}
        refs = [ConnectorRef(name=c.name, version=c.version) for c in connectors if c.name in used]

        envelope = Envelope(
            version=self.version,
            generated=self.clock(),
            links=links,
            jobs=jobs,
            submissions=submissions,
            connectors=refs,
        )
        logger.info(
            "Export finished",
            links=len(links),
            jobs=len(jobs),
            submissions=len(submissions),
            connectors=[ref.name for ref in refs],
        )
        return envelope

    def dump(self, submission_filter: SubmissionFilter | None = None) -> bytes:
        """Export the repository and encode it as artifact bytes."""
        return codec.encode(self.export(submission_filter))
