"""Data models for repository entities."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class EntityKind(str, Enum):
    """Entity types stored in a repository."""

    CONNECTOR = "connector"
    LINK = "link"
    JOB = "job"
    SUBMISSION = "submission"


class InputType(str, Enum):
    """Value types a config input can carry."""

    STRING = "STRING"
    NUMBER = "NUMBER"
    BOOLEAN = "BOOLEAN"
    ENUM = "ENUM"
    LIST = "LIST"
    MAP = "MAP"


class SubmissionStatus(str, Enum):
    """Lifecycle status of a job submission."""

    NEVER_EXECUTED = "NEVER_EXECUTED"
    BOOTING = "BOOTING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    FAILURE_ON_SUBMIT = "FAILURE_ON_SUBMIT"
    UNKNOWN = "UNKNOWN"


@dataclass
class ConfigInput:
    """A single named, typed config value."""

    name: str
    type: InputType
    value: Any = None
    sensitive: bool = False


@dataclass
class ConfigGroup:
    """A named, ordered group of config inputs."""

    name: str
    inputs: list[ConfigInput] = field(default_factory=list)

    def get_input(self, name: str) -> ConfigInput | None:
        for config_input in self.inputs:
            if config_input.name == name:
                return config_input
        return None


@dataclass
class ConfigValues:
    """Ordered config groups owned by a single link or job."""

    groups: list[ConfigGroup] = field(default_factory=list)

    def get_group(self, name: str) -> ConfigGroup | None:
        for group in self.groups:
            if group.name == name:
                return group
        return None

    def get(self, group: str, name: str, default: Any = None) -> Any:
        """Get the value of ``group.name`` or ``default`` when absent."""
        config_group = self.get_group(group)
        if config_group is None:
            return default
        config_input = config_group.get_input(name)
        if config_input is None:
            return default
        return config_input.value

    def set(self, group: str, name: str, input_type: InputType, value: Any, sensitive: bool = False) -> None:
        """Set ``group.name``, creating the group or input when needed."""
        config_group = self.get_group(group)
        if config_group is None:
            config_group = ConfigGroup(name=group)
            self.groups.append(config_group)
        config_input = config_group.get_input(name)
        if config_input is None:
            config_group.inputs.append(ConfigInput(name=name, type=input_type, value=value, sensitive=sensitive))
        else:
            config_input.type = input_type
            config_input.value = value
            config_input.sensitive = sensitive

    def iter_inputs(self) -> Iterator[tuple[ConfigGroup, ConfigInput]]:
        for group in self.groups:
            for config_input in group.inputs:
                yield group, config_input


@dataclass
class InputSpec:
    """Schema for one connector config input."""

    name: str
    type: InputType
    required: bool = False
    options: list[str] = field(default_factory=list)
    validators: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class GroupSpec:
    """Schema for one connector config group."""

    name: str
    inputs: list[InputSpec] = field(default_factory=list)

    def get_input(self, name: str) -> InputSpec | None:
        for spec in self.inputs:
            if spec.name == name:
                return spec
        return None


def _name_eq(self: Any, other: object) -> bool:
    if type(other) is not type(self):
        return NotImplemented
    return self.name == other.name


def _name_hash(self: Any) -> int:
    return hash((type(self).__name__, self.name))


@dataclass(eq=False)
class Connector:
    """A connector plugin type and the config schema it defines."""

    name: str
    version: str
    link_config: list[GroupSpec] = field(default_factory=list)
    from_job_config: list[GroupSpec] = field(default_factory=list)
    to_job_config: list[GroupSpec] = field(default_factory=list)
    id: int | None = None

    __eq__ = _name_eq
    __hash__ = _name_hash

    def schema_for(self, kind: str) -> list[GroupSpec]:
        """Return the groups for ``"link"``, ``"from-job"`` or ``"to-job"`` configs."""
        schemas = {
            "link": self.link_config,
            "from-job": self.from_job_config,
            "to-job": self.to_job_config,
        }
        if kind not in schemas:
            raise ValueError(f"Unknown config kind: {kind}")
        return schemas[kind]


@dataclass(eq=False)
class Link:
    """A named, configured connection to an external system."""

    name: str
    connector_name: str
    config: ConfigValues = field(default_factory=ConfigValues)
    enabled: bool = True
    id: int | None = None
    creation_user: str | None = None
    creation_date: datetime | None = None
    update_user: str | None = None
    update_date: datetime | None = None

    __eq__ = _name_eq
    __hash__ = _name_hash


@dataclass(eq=False)
class Job:
    """A named pairing of a source link and a destination link."""

    name: str
    from_link_name: str
    to_link_name: str
    from_config: ConfigValues = field(default_factory=ConfigValues)
    to_config: ConfigValues = field(default_factory=ConfigValues)
    driver_config: ConfigValues = field(default_factory=ConfigValues)
    enabled: bool = True
    id: int | None = None
    from_connector_name: str | None = None
    to_connector_name: str | None = None
    creation_user: str | None = None
    creation_date: datetime | None = None
    update_user: str | None = None
    update_date: datetime | None = None

    __eq__ = _name_eq
    __hash__ = _name_hash


@dataclass
class Submission:
    """One execution attempt of a job."""

    job_name: str
    status: SubmissionStatus = SubmissionStatus.UNKNOWN
    progress: float | None = None
    counters: dict[str, dict[str, float]] = field(default_factory=dict)
    creation_date: datetime | None = None
    last_update_date: datetime | None = None
    external_job_id: str | None = None
    external_link: str | None = None
    error_summary: str | None = None
    error_details: str | None = None
    creation_user: str | None = None
    id: int | None = field(default=None, compare=False)


@dataclass
class ConnectorRef:
    """Name and version of a connector referenced by an exported link."""

    name: str
    version: str


@dataclass
class Envelope:
    """The in-memory form of an exported document."""

    version: str
    generated: datetime
    links: list[Link] = field(default_factory=list)
    jobs: list[Job] = field(default_factory=list)
    submissions: list[Submission] = field(default_factory=list)
    connectors: list[ConnectorRef] = field(default_factory=list)

    def connector_version(self, name: str) -> str | None:
        for ref in self.connectors:
            if ref.name == name:
                return ref.version
        return None
