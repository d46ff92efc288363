"""Pydantic models for the records stored in an artifact.

These validate decoded JSON (or YAML) before anything is turned into entity
dataclasses. Field names map to the hyphenated keys of the document, so
``connector_name`` is read from ``connector-name``.
"""

from datetime import datetime
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from metarepo.models import (
    ConfigGroup,
    ConfigInput,
    ConfigValues,
    ConnectorRef,
    Envelope,
    InputType,
    Job,
    Link,
    Submission,
    SubmissionStatus,
)

Number = StrictInt | StrictFloat
StringMap = dict[StrictStr, StrictStr]

_VALUE_TYPES: dict[InputType, TypeAdapter] = {
    InputType.STRING: TypeAdapter(StrictStr),
    InputType.ENUM: TypeAdapter(StrictStr),
    InputType.NUMBER: TypeAdapter(Number),
    InputType.BOOLEAN: TypeAdapter(StrictBool),
    InputType.MAP: TypeAdapter(StringMap),
    InputType.LIST: TypeAdapter(list[StrictStr | StringMap]),
}


def value_matches_type(input_type: InputType, value: Any) -> bool:
    """Check that a config value has the shape its input type promises."""
    if value is None:
        return True
    try:
        _VALUE_TYPES[input_type].validate_python(value)
    except ValidationError:
        return False
    return True


def format_loc(loc: tuple[int | str, ...]) -> str:
    """Render a pydantic error location as ``links.link[0].name``."""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path


def first_error(error: ValidationError) -> tuple[str, str]:
    """Return the path and message of the first error in ``error``."""
    details = error.errors()[0]
    message = details["msg"]
    if error.error_count() > 1:
        message += f" (and {error.error_count() - 1} more)"
    return format_loc(details["loc"]), message


class Record(BaseModel):
    """Base for artifact records: hyphenated keys, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=lambda name: name.replace("_", "-"),
        populate_by_name=True,
        extra="ignore",
    )


class ConfigInputRecord(Record):
    name: StrictStr
    type: InputType
    value: Any = None
    sensitive: StrictBool = False

    @field_validator("value")
    @classmethod
    def _value_matches_declared_type(cls, value: Any, info: ValidationInfo) -> Any:
        input_type = info.data.get("type")
        if input_type is not None and not value_matches_type(input_type, value):
            raise ValueError(f"value {value!r} does not match type {input_type.value}")
        return value


class ConfigGroupRecord(Record):
    name: StrictStr
    inputs: list[ConfigInputRecord]


def _to_config(groups: list[ConfigGroupRecord]) -> ConfigValues:
    return ConfigValues(
        groups=[
            ConfigGroup(
                name=group.name,
                inputs=[
                    ConfigInput(name=item.name, type=item.type, value=item.value, sensitive=item.sensitive)
                    for item in group.inputs
                ],
            )
            for group in groups
        ]
    )


class LinkRecord(Record):
    name: StrictStr
    connector_name: StrictStr
    enabled: StrictBool = True
    creation_user: StrictStr | None = None
    creation_date: datetime | None = None
    update_user: StrictStr | None = None
    update_date: datetime | None = None
    link_config_values: list[ConfigGroupRecord]

    def to_link(self) -> Link:
        return Link(
            name=self.name,
            connector_name=self.connector_name,
            enabled=self.enabled,
            config=_to_config(self.link_config_values),
            creation_user=self.creation_user,
            creation_date=self.creation_date,
            update_user=self.update_user,
            update_date=self.update_date,
        )


class JobRecord(Record):
    name: StrictStr
    from_link_name: StrictStr
    to_link_name: StrictStr
    from_connector_name: StrictStr | None = None
    to_connector_name: StrictStr | None = None
    enabled: StrictBool = True
    creation_user: StrictStr | None = None
    creation_date: datetime | None = None
    update_user: StrictStr | None = None
    update_date: datetime | None = None
    from_config_values: list[ConfigGroupRecord]
    to_config_values: list[ConfigGroupRecord]
    driver_config_values: list[ConfigGroupRecord] = Field(default_factory=list)

    def to_job(self) -> Job:
        return Job(
            name=self.name,
            from_link_name=self.from_link_name,
            to_link_name=self.to_link_name,
            from_connector_name=self.from_connector_name,
            to_connector_name=self.to_connector_name,
            enabled=self.enabled,
            from_config=_to_config(self.from_config_values),
            to_config=_to_config(self.to_config_values),
            driver_config=_to_config(self.driver_config_values),
            creation_user=self.creation_user,
            creation_date=self.creation_date,
            update_user=self.update_user,
            update_date=self.update_date,
        )


class SubmissionRecord(Record):
    job_name: StrictStr
    status: SubmissionStatus
    progress: StrictFloat | None = Field(None, ge=0.0, le=1.0)
    counters: dict[StrictStr, dict[StrictStr, Number]] = Field(default_factory=dict)
    creation_user: StrictStr | None = None
    creation_date: datetime | None = None
    last_update_date: datetime | None = None
    external_id: StrictStr | None = None
    external_link: StrictStr | None = None
    error_summary: StrictStr | None = None
    error_details: StrictStr | None = None

    @field_validator("counters", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    def to_submission(self) -> Submission:
        return Submission(
            job_name=self.job_name,
            status=self.status,
            progress=self.progress,
            counters=self.counters,
            creation_user=self.creation_user,
            creation_date=self.creation_date,
            last_update_date=self.last_update_date,
            external_job_id=self.external_id,
            external_link=self.external_link,
            error_summary=self.error_summary,
            error_details=self.error_details,
        )


class ConnectorRefRecord(Record):
    name: StrictStr
    version: StrictStr


class MetadataRecord(Record):
    version: StrictStr
    generated: datetime
    connectors: list[ConnectorRefRecord] = Field(default_factory=list)


class LinkSection(Record):
    link: list[LinkRecord]


class JobSection(Record):
    job: list[JobRecord]


class SubmissionSection(Record):
    submission: list[SubmissionRecord]


class EnvelopeRecord(Record):
    """The whole artifact document."""

    metadata: MetadataRecord
    links: LinkSection
    jobs: JobSection
    submissions: SubmissionSection

    def to_envelope(self) -> Envelope:
        return Envelope(
            version=self.metadata.version,
            generated=self.metadata.generated,
            connectors=[ConnectorRef(name=ref.name, version=ref.version) for ref in self.metadata.connectors],
            links=[record.to_link() for record in self.links.link],
            jobs=[record.to_job() for record in self.jobs.job],
            submissions=[record.to_submission() for record in self.submissions.submission],
        )
