"""Repository store backed by a single YAML file."""

import copy
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import structlog
import yaml

from metarepo import codec
from metarepo.errors import DuplicateNameError, MetarepoError, RepositoryError
from metarepo.models import Connector, EntityKind, Job, Link, Submission
from metarepo.repository import Repository

logger = structlog.get_logger()


class YamlRepository(Repository):
    """Repository persisted as one YAML file.

    Links, jobs and submissions are stored with the same record layout the
    artifact codec uses, plus their local ids. Connectors come from the
    connector registry and are not persisted.

    The file is read again before every write (at the start of the outermost
    write section, or per create outside one), so duplicate names written by
    another process in the meantime are refused instead of overwritten.
    """

    def __init__(self, path: Path, connectors: Iterable[Connector] = ()) -> None:
        """Initialize YAML repository.

        Args:
            path: Repository file (created on first write)
            connectors: Connectors registered in this repository
        """
        self.path = Path(path)
        self.connectors: dict[str, Connector] = {c.name: copy.deepcopy(c) for c in connectors}
        self._lock = threading.RLock()
        self._depth = 0
        self._state: dict[str, Any] | None = None
        logger.debug("YAML repository initialized", path=str(self.path))

    def _load(self) -> dict[str, Any]:
        """Load repository state from the YAML file.

        Returns:
            State with ``links``, ``jobs``, ``submissions`` and ``next_id``
        """
        if self._state is not None:
            return self._state

        state: dict[str, Any] = {"next_id": 1, "links": {}, "jobs": {}, "submissions": []}
        if not self.path.exists():
            logger.debug("Repository file does not exist, starting empty")
            self._state = state
            return state

        try:
            with open(self.path, "r") as f:
                raw = yaml.safe_load(f) or {}
            state["next_id"] = int(raw.get("next_id", 1))
            for i, item in enumerate(raw.get("links") or []):
                link = codec.decode_link(item, f"links[{i}]")
                link.id = item.get("id")
                state["links"][link.name] = link
            for i, item in enumerate(raw.get("jobs") or []):
                job = codec.decode_job(item, f"jobs[{i}]")
                job.id = item.get("id")
                state["jobs"][job.name] = job
            for i, item in enumerate(raw.get("submissions") or []):
                submission = codec.decode_submission(item, f"submissions[{i}]")
                submission.id = item.get("id")
                state["submissions"].append(submission)
        except (OSError, yaml.YAMLError, MetarepoError, AttributeError, TypeError, ValueError) as e:
            logger.error("Failed to load repository", path=str(self.path), error=str(e))
            raise RepositoryError(f"Failed to load repository from {self.path}: {e}") from e

        logger.debug(
            "Repository loaded",
            links=len(state["links"]),
            jobs=len(state["jobs"]),
            submissions=len(state["submissions"]),
        )
        self._state = state
        return state

    def _save(self) -> None:
        """Save repository state to the YAML file."""
        state = self._load()
        data = {
            "next_id": state["next_id"],
            "links": [{"id": link.id, **codec.encode_link(link)} for link in state["links"].values()],
            "jobs": [{"id": job.id, **codec.encode_job(job)} for job in state["jobs"].values()],
            "submissions": [{"id": s.id, **codec.encode_submission(s)} for s in state["submissions"]],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            logger.debug("Repository saved", path=str(self.path))
        except OSError as e:
            logger.error("Failed to save repository", path=str(self.path), error=str(e))
            raise RepositoryError(f"Failed to save repository to {self.path}: {e}") from e

    def _allocate_id(self) -> int:
        state = self._load()
        allocated = state["next_id"]
        state["next_id"] += 1
        return allocated

    def _begin_write(self) -> dict[str, Any]:
        if self._depth == 0:
            self._state = None
        return self._load()

    def _committed(self) -> None:
        if self._depth == 0:
            self._save()

    def list_connectors(self) -> list[Connector]:
        return copy.deepcopy(list(self.connectors.values()))

    def list_links(self) -> list[Link]:
        return copy.deepcopy(list(self._load()["links"].values()))

    def list_jobs(self) -> list[Job]:
        return copy.deepcopy(list(self._load()["jobs"].values()))

    def list_submissions(self) -> list[Submission]:
        return copy.deepcopy(self._load()["submissions"])

    def create_link(self, link: Link) -> int:
        with self._lock:
            links = self._begin_write()["links"]
            if link.name in links:
                raise DuplicateNameError(EntityKind.LINK, link.name)
            stored = copy.deepcopy(link)
            stored.id = self._allocate_id()
            links[stored.name] = stored
            self._committed()
            logger.debug("Link created", name=stored.name, id=stored.id)
            return stored.id

    def create_job(self, job: Job) -> int:
        with self._lock:
            jobs = self._begin_write()["jobs"]
            if job.name in jobs:
                raise DuplicateNameError(EntityKind.JOB, job.name)
            stored = copy.deepcopy(job)
            stored.id = self._allocate_id()
            jobs[stored.name] = stored
            self._committed()
            logger.debug("Job created", name=stored.name, id=stored.id)
            return stored.id

    def create_submission(self, submission: Submission) -> int:
        with self._lock:
            submissions = self._begin_write()["submissions"]
            stored = copy.deepcopy(submission)
            stored.id = self._allocate_id()
            submissions.append(stored)
            self._committed()
            logger.debug("Submission created", job_name=stored.job_name, id=stored.id)
            return stored.id

    def find_by_name(self, kind: EntityKind, name: str) -> Connector | Link | Job | None:
        if kind == EntityKind.CONNECTOR:
            found = self.connectors.get(name)
        elif kind == EntityKind.LINK:
            found = self._load()["links"].get(name)
        elif kind == EntityKind.JOB:
            found = self._load()["jobs"].get(name)
        else:
            raise ValueError(f"Cannot look up {kind.value} by name")
        return copy.deepcopy(found) if found is not None else None

    @contextmanager
    def write_section(self, kind: EntityKind) -> Iterator[None]:
        with self._lock:
            self._begin_write()
            self._depth += 1
            logger.debug("Write section entered", kind=kind.value, path=str(self.path))
            try:
                yield
            finally:
                self._depth -= 1
                if self._depth == 0:
                    self._save()
