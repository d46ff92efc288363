"""JSON document codec for repository artifacts.

The envelope has four top-level sections::

    {
      "metadata":    {"version": ..., "generated": ..., "connectors": [...]},
      "links":       {"link": [...]},
      "jobs":        {"job": [...]},
      "submissions": {"submission": [...]}
    }

Records reference each other by name only. Decoding checks structure and
value types with the models in :mod:`metarepo.records`; it never resolves
names or validates configs against a connector.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from metarepo.errors import StructuralError
from metarepo.models import ConfigValues, Envelope, Job, Link, Submission
from metarepo.records import EnvelopeRecord, JobRecord, LinkRecord, SubmissionRecord, first_error

logger = structlog.get_logger()

METADATA = "metadata"
VERSION = "version"
GENERATED = "generated"
CONNECTORS = "connectors"
LINKS = "links"
LINK = "link"
JOBS = "jobs"
JOB = "job"
SUBMISSIONS = "submissions"
SUBMISSION = "submission"

RecordT = TypeVar("RecordT", bound=BaseModel)


# Encoding


def _encode_date(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def encode_config(config: ConfigValues) -> list[dict[str, Any]]:
    return [
        {
            "name": group.name,
            "inputs": [
                {
                    "name": config_input.name,
                    "type": config_input.type.value,
                    "value": config_input.value,
                    "sensitive": config_input.sensitive,
                }
                for config_input in group.inputs
            ],
        }
        for group in config.groups
    ]


def encode_link(link: Link) -> dict[str, Any]:
    return {
        "name": link.name,
        "connector-name": link.connector_name,
        "enabled": link.enabled,
        "creation-user": link.creation_user,
        "creation-date": _encode_date(link.creation_date),
        "update-user": link.update_user,
        "update-date": _encode_date(link.update_date),
        "link-config-values": encode_config(link.config),
    }


def encode_job(job: Job) -> dict[str, Any]:
    return {
        "name": job.name,
        "from-link-name": job.from_link_name,
        "to-link-name": job.to_link_name,
        "from-connector-name": job.from_connector_name,
        "to-connector-name": job.to_connector_name,
        "enabled": job.enabled,
        "creation-user": job.creation_user,
        "creation-date": _encode_date(job.creation_date),
        "update-user": job.update_user,
        "update-date": _encode_date(job.update_date),
        "from-config-values": encode_config(job.from_config),
        "to-config-values": encode_config(job.to_config),
        "driver-config-values": encode_config(job.driver_config),
    }


def encode_submission(submission: Submission) -> dict[str, Any]:
    return {
        "job-name": submission.job_name,
        "status": submission.status.value,
        "progress": submission.progress,
        "counters": submission.counters,
        "creation-user": submission.creation_user,
        "creation-date": _encode_date(submission.creation_date),
        "last-update-date": _encode_date(submission.last_update_date),
        "external-id": submission.external_job_id,
        "external-link": submission.external_link,
        "error-summary": submission.error_summary,
        "error-details": submission.error_details,
    }


def to_document(envelope: Envelope) -> dict[str, Any]:
    """Convert an envelope to a JSON-compatible document."""
    return {
        METADATA: {
            VERSION: envelope.version,
            GENERATED: _encode_date(envelope.generated),
            CONNECTORS: [{"name": ref.name, "version": ref.version} for ref in envelope.connectors],
        },
        LINKS: {LINK: [encode_link(link) for link in envelope.links]},
        JOBS: {JOB: [encode_job(job) for job in envelope.jobs]},
        SUBMISSIONS: {SUBMISSION: [encode_submission(submission) for submission in envelope.submissions]},
    }


def encode(envelope: Envelope) -> bytes:
    """Encode an envelope to artifact bytes."""
    document = to_document(envelope)
    logger.debug(
        "Encoding envelope",
        links=len(envelope.links),
        jobs=len(envelope.jobs),
        submissions=len(envelope.submissions),
    )
    return (json.dumps(document, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


# Decoding


def _validate(model: type[RecordT], data: Any, path: str = "") -> RecordT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        loc, message = first_error(e)
        if path and loc:
            loc = f"{path}{loc}" if loc.startswith("[") else f"{path}.{loc}"
        raise StructuralError(message, loc or path or None) from e


def decode_link(data: Any, path: str) -> Link:
    return _validate(LinkRecord, data, path).to_link()


def decode_job(data: Any, path: str) -> Job:
    return _validate(JobRecord, data, path).to_job()


def decode_submission(data: Any, path: str) -> Submission:
    return _validate(SubmissionRecord, data, path).to_submission()


def from_document(document: Any) -> Envelope:
    """Convert a parsed JSON document to an envelope."""
    return _validate(EnvelopeRecord, document).to_envelope()


def decode(data: bytes) -> Envelope:
    """Decode artifact bytes to an envelope.

    Raises:
        StructuralError: if the bytes are not a well-formed artifact
    """
    try:
        document = json.loads(data.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise StructuralError(f"artifact is not valid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise StructuralError(f"artifact is not valid JSON: {e}") from e
    envelope = from_document(document)
    logger.debug(
        "Decoded envelope",
        version=envelope.version,
        links=len(envelope.links),
        jobs=len(envelope.jobs),
        submissions=len(envelope.submissions),
    )
    return envelope


def load_artifact(path: Path) -> Envelope:
    """Read and decode an artifact file."""
    logger.info("Reading artifact", path=str(path))
    return decode(Path(path).read_bytes())


def write_artifact(path: Path, envelope: Envelope) -> None:
    """Encode an envelope and write it to ``path``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode(envelope))
    logger.info("Artifact written", path=str(path))
