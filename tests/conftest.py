"""Shared fixtures: an HDFS-style connector registry and sample repository content."""

from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

import pytest
import yaml

from metarepo import __version__
from metarepo.backends import InMemoryRepository
from metarepo.models import ConfigValues, Envelope, InputType, Job, Link, Submission, SubmissionStatus
from metarepo.registry import ConnectorRegistry

CONNECTOR_DEFINITIONS = {
    "connectors": [
        {
            "name": "hdfs-connector",
            "version": "1.99.7",
            "link-config": [
                {
                    "name": "linkConfig",
                    "inputs": [
                        {"name": "uri", "type": "STRING", "validators": ["uri"]},
                        {"name": "confDir", "type": "STRING", "required": True, "validators": ["directory-exists"]},
                        {"name": "configOverrides", "type": "MAP"},
                    ],
                }
            ],
            "from-job-config": [
                {
                    "name": "fromJobConfig",
                    "inputs": [{"name": "inputDirectory", "type": "STRING", "required": True, "validators": ["not-empty"]}],
                }
            ],
            "to-job-config": [
                {
                    "name": "toJobConfig",
                    "inputs": [
                        {"name": "outputDirectory", "type": "STRING", "required": True},
                        {"name": "outputFormat", "type": "ENUM", "options": ["TEXT_FILE", "SEQUENCE_FILE"]},
                        {"name": "overrideNullValue", "type": "BOOLEAN"},
                    ],
                }
            ],
        },
        {"name": "generic-jdbc-connector", "version": "1.99.7"},
    ],
    "driver-config": [
        {
            "name": "throttlingConfig",
            "inputs": [
                {"name": "numExtractors", "type": "NUMBER", "validators": [{"name": "range", "min": 1, "max": 100}]},
                {"name": "numLoaders", "type": "NUMBER"},
            ],
        }
    ],
}

GENERATED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def registry() -> ConnectorRegistry:
    """Registry with an HDFS connector and a config-less JDBC connector."""
    return ConnectorRegistry.from_dict(CONNECTOR_DEFINITIONS)


@pytest.fixture
def conf_dir(tmp_path: Path) -> Path:
    """An existing directory for directory-exists validators."""
    path = tmp_path / "config"
    path.mkdir()
    return path


@pytest.fixture
def make_link() -> Callable[..., Link]:
    """Factory for HDFS links."""

    def factory(name: str, conf_dir: str, uri: str = "hdfs://namenode:8020/") -> Link:
        config = ConfigValues()
        config.set("linkConfig", "uri", InputType.STRING, uri)
        config.set("linkConfig", "confDir", InputType.STRING, conf_dir)
        return Link(name=name, connector_name="hdfs-connector", config=config, creation_user="sqoop")

    return factory


@pytest.fixture
def make_job() -> Callable[..., Job]:
    """Factory for HDFS-to-HDFS jobs."""

    def factory(name: str, from_link: str, to_link: str) -> Job:
        from_config = ConfigValues()
        from_config.set("fromJobConfig", "inputDirectory", InputType.STRING, "/data/in")
        to_config = ConfigValues()
        to_config.set("toJobConfig", "outputDirectory", InputType.STRING, "/data/out")
        to_config.set("toJobConfig", "outputFormat", InputType.ENUM, "TEXT_FILE")
        driver_config = ConfigValues()
        driver_config.set("throttlingConfig", "numExtractors", InputType.NUMBER, 3)
        return Job(
            name=name,
            from_link_name=from_link,
            to_link_name=to_link,
            from_config=from_config,
            to_config=to_config,
            driver_config=driver_config,
        )

    return factory


@pytest.fixture
def make_submission() -> Callable[..., Submission]:
    """Factory for finished submissions."""

    def factory(job_name: str, status: SubmissionStatus = SubmissionStatus.SUCCEEDED) -> Submission:
        return Submission(
            job_name=job_name,
            status=status,
            progress=1.0,
            counters={"org.apache.sqoop.submission.counter.SqoopCounters": {"ROWS_READ": 100, "ROWS_WRITTEN": 100}},
            creation_date=GENERATED,
            last_update_date=GENERATED,
            external_job_id="job_1714564800000_0001",
        )

    return factory


@pytest.fixture
def substitutions(conf_dir: Path) -> dict[str, str]:
    """Substitution table pointing ``${confdir}`` at an existing directory."""
    return {"confdir": str(conf_dir)}


@pytest.fixture
def scenario(
    make_link: Callable[..., Link],
    make_job: Callable[..., Job],
    make_submission: Callable[..., Submission],
) -> Envelope:
    """Two HDFS links, one job between them and one succeeded submission."""
    return Envelope(
        version=__version__,
        generated=GENERATED,
        links=[make_link("hdfsLink1", "${confdir}"), make_link("hdfsLink2", "${confdir}")],
        jobs=[make_job("jobName", "hdfsLink1", "hdfsLink2")],
        submissions=[make_submission("jobName")],
    )


@pytest.fixture
def source_repository(
    registry: ConnectorRegistry,
    conf_dir: Path,
    make_link: Callable[..., Link],
    make_job: Callable[..., Job],
    make_submission: Callable[..., Submission],
) -> InMemoryRepository:
    """A populated repository to export from."""
    repository = InMemoryRepository(connectors=registry.connectors())
    repository.create_link(make_link("hdfsLink1", str(conf_dir)))
    repository.create_link(make_link("hdfsLink2", str(conf_dir)))
    repository.create_job(make_job("jobName", "hdfsLink1", "hdfsLink2"))
    repository.create_job(make_job("otherJob", "hdfsLink2", "hdfsLink1"))
    repository.create_submission(make_submission("jobName"))
    repository.create_submission(make_submission("otherJob", SubmissionStatus.FAILED))
    return repository


@pytest.fixture
def connectors_file(tmp_path: Path) -> Path:
    """Connector definitions written to a YAML file."""
    path = tmp_path / "connectors.yaml"
    path.write_text(yaml.safe_dump(CONNECTOR_DEFINITIONS, sort_keys=False))
    return path
