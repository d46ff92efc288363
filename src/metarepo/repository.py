"""Repository store interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager

from metarepo.models import Connector, EntityKind, Job, Link, Submission


class Repository(ABC):
    """Abstract base class for repository stores."""

    @abstractmethod
    def list_connectors(self) -> list[Connector]:
        """List registered connectors."""
        pass

    @abstractmethod
    def list_links(self) -> list[Link]:
        """List all links."""
        pass

    @abstractmethod
    def list_jobs(self) -> list[Job]:
        """List all jobs."""
        pass

    @abstractmethod
    def list_submissions(self) -> list[Submission]:
        """List all submissions."""
        pass

    @abstractmethod
    def create_link(self, link: Link) -> int:
        """Persist a new link and return its fresh local id.

        Raises:
            DuplicateNameError: if a link with the same name exists
        """
        pass

    @abstractmethod
    def create_job(self, job: Job) -> int:
        """Persist a new job and return its fresh local id.

        Raises:
            DuplicateNameError: if a job with the same name exists
        """
        pass

    @abstractmethod
    def create_submission(self, submission: Submission) -> int:
        """Persist a new submission and return its fresh local id."""
        pass

    @abstractmethod
    def find_by_name(self, kind: EntityKind, name: str) -> Connector | Link | Job | None:
        """Find a connector, link or job by name."""
        pass

    @abstractmethod
    def write_section(self, kind: EntityKind) -> AbstractContextManager[None]:
        """Hold exclusive write access while a batch of ``kind`` entities is persisted."""
        pass
