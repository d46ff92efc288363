"""In-memory repository store."""

import copy
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

import structlog

from metarepo.errors import DuplicateNameError
from metarepo.models import Connector, EntityKind, Job, Link, Submission
from metarepo.repository import Repository

logger = structlog.get_logger()


class InMemoryRepository(Repository):
    """Repository held in process memory.

    Records are copied on the way in and on the way out, so callers never
    share state with the store.
    """

    def __init__(self, connectors: Iterable[Connector] = ()) -> None:
        """Initialize in-memory repository.

        Args:
            connectors: Connectors registered in this repository
        """
        self.connectors: dict[str, Connector] = {}
        self.links: dict[str, Link] = {}
        self.jobs: dict[str, Job] = {}
        self.submissions: list[Submission] = []
        self._next_id = 1
        self._lock = threading.RLock()
        for connector in connectors:
            connector = copy.deepcopy(connector)
            connector.id = self._allocate_id()
            self.connectors[connector.name] = connector
        logger.debug("In-memory repository initialized", connectors=list(self.connectors))

    def _allocate_id(self) -> int:
        allocated = self._next_id
        self._next_id += 1
        return allocated

    def list_connectors(self) -> list[Connector]:
        return copy.deepcopy(list(self.connectors.values()))

    def list_links(self) -> list[Link]:
        return copy.deepcopy(list(self.links.values()))

    def list_jobs(self) -> list[Job]:
        return copy.deepcopy(list(self.jobs.values()))

    def list_submissions(self) -> list[Submission]:
        return copy.deepcopy(self.submissions)

    def create_link(self, link: Link) -> int:
        with self._lock:
            if link.name in self.links:
                raise DuplicateNameError(EntityKind.LINK, link.name)
            stored = copy.deepcopy(link)
            stored.id = self._allocate_id()
            self.links[stored.name] = stored
            logger.debug("Link created", name=stored.name, id=stored.id)
            return stored.id

    def create_job(self, job: Job) -> int:
        with self._lock:
            if job.name in self.jobs:
                raise DuplicateNameError(EntityKind.JOB, job.name)
            stored = copy.deepcopy(job)
            stored.id = self._allocate_id()
            self.jobs[stored.name] = stored
            logger.debug("Job created", name=stored.name, id=stored.id)
            return stored.id

    def create_submission(self, submission: Submission) -> int:
        with self._lock:
            stored = copy.deepcopy(submission)
            stored.id = self._allocate_id()
            self.submissions.append(stored)
            logger.debug("Submission created", job_name=stored.job_name, id=stored.id)
            return stored.id

    def find_by_name(self, kind: EntityKind, name: str) -> Connector | Link | Job | None:
        tables: dict[EntityKind, dict] = {
            EntityKind.CONNECTOR: self.connectors,
            EntityKind.LINK: self.links,
            EntityKind.JOB: self.jobs,
        }
        if kind not in tables:
            raise ValueError(f"Cannot look up {kind.value} by name")
        found = tables[kind].get(name)
        return copy.deepcopy(found) if found is not None else None

    @contextmanager
    def write_section(self, kind: EntityKind) -> Iterator[None]:
        with self._lock:
            logger.debug("Write section entered", kind=kind.value)
            yield
            logger.debug("Write section exited", kind=kind.value)
