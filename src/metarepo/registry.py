"""Connector registry: config schemas and validators."""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import structlog
import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from metarepo.models import ConfigValues, Connector, GroupSpec, InputSpec, InputType
from metarepo.records import first_error, value_matches_type

logger = structlog.get_logger()

Validator = Callable[[Any, dict[str, Any]], str | None]


@dataclass
class Violation:
    """One config value rejected by a validator."""

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


def _not_empty(value: Any, args: dict[str, Any]) -> str | None:
    if value in ("", [], {}):
        return "value must not be empty"
    return None


def _directory_exists(value: Any, args: dict[str, Any]) -> str | None:
    if not Path(str(value)).is_dir():
        return f"directory '{value}' does not exist"
    return None


def _absolute_path(value: Any, args: dict[str, Any]) -> str | None:
    if not Path(str(value)).is_absolute():
        return f"path '{value}' is not absolute"
    return None


def _range(value: Any, args: dict[str, Any]) -> str | None:
    if not value_matches_type(InputType.NUMBER, value):
        return f"value {value!r} is not a number"
    low = args.get("min")
    high = args.get("max")
    if (low is not None and value < low) or (high is not None and value > high):
        return f"value {value} is outside [{low}, {high}]"
    return None


def _uri(value: Any, args: dict[str, Any]) -> str | None:
    if not urlparse(str(value)).scheme:
        return f"'{value}' is not a URI"
    return None


VALIDATORS: dict[str, Validator] = {
    "not-empty": _not_empty,
    "directory-exists": _directory_exists,
    "absolute-path": _absolute_path,
    "range": _range,
    "uri": _uri,
}


# Definition file models


class _Definition(BaseModel):
    model_config = ConfigDict(alias_generator=lambda name: name.replace("_", "-"), populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any, info: ValidationInfo) -> Any:
        # An empty YAML key (``inputs:``) loads as None
        field = cls.model_fields[info.field_name]
        if value is None and field.default_factory is list:
            return []
        return value


class InputDefinition(_Definition):
    name: StrictStr
    type: InputType = InputType.STRING
    required: StrictBool = False
    options: list[StrictStr] = Field(default_factory=list)
    validators: list[StrictStr | dict[str, Any]] = Field(default_factory=list)

    @field_validator("validators")
    @classmethod
    def _known_validators(cls, items: list[str | dict[str, Any]]) -> list[dict[str, Any]]:
        validators = []
        for item in items:
            validator = {"name": item} if isinstance(item, str) else dict(item)
            if validator.get("name") not in VALIDATORS:
                raise ValueError(f"Unknown validator: {validator.get('name')}")
            validators.append(validator)
        return validators

    def to_spec(self) -> InputSpec:
        return InputSpec(
            name=self.name,
            type=self.type,
            required=self.required,
            options=list(self.options),
            validators=list(self.validators),
        )


class GroupDefinition(_Definition):
    name: StrictStr
    inputs: list[InputDefinition] = Field(default_factory=list)

    def to_spec(self) -> GroupSpec:
        return GroupSpec(name=self.name, inputs=[item.to_spec() for item in self.inputs])


class ConnectorDefinition(_Definition):
    name: StrictStr
    version: StrictStr = "1"
    link_config: list[GroupDefinition] = Field(default_factory=list)
    from_job_config: list[GroupDefinition] = Field(default_factory=list)
    to_job_config: list[GroupDefinition] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_text(cls, value: Any) -> Any:
        # YAML reads an unquoted ``version: 2.0`` as a float
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def to_connector(self) -> Connector:
        return Connector(
            name=self.name,
            version=self.version,
            link_config=[group.to_spec() for group in self.link_config],
            from_job_config=[group.to_spec() for group in self.from_job_config],
            to_job_config=[group.to_spec() for group in self.to_job_config],
        )


class RegistryDefinition(_Definition):
    connectors: list[ConnectorDefinition] = Field(default_factory=list)
    driver_config: list[GroupDefinition] = Field(default_factory=list)


def validate_config(config: ConfigValues, schema: list[GroupSpec]) -> list[Violation]:
    """Validate config values against a schema.

    Args:
        config: Values to check
        schema: Groups the values must conform to

    Returns:
        Violations found, empty if the config is valid
    """
    violations = []
    groups = {group.name: group for group in schema}

    for group, config_input in config.iter_inputs():
        path = f"{group.name}.{config_input.name}"
        group_spec = groups.get(group.name)
        if group_spec is None:
            violations.append(Violation(group.name, "unknown config group"))
            continue
        spec = group_spec.get_input(config_input.name)
        if spec is None:
            violations.append(Violation(path, "unknown input"))
            continue
        if config_input.type != spec.type:
            violations.append(Violation(path, f"expected {spec.type.value}, got {config_input.type.value}"))
            continue
        if not value_matches_type(spec.type, config_input.value):
            violations.append(Violation(path, f"value {config_input.value!r} is not a valid {spec.type.value}"))
            continue
        value = config_input.value
        if value is None:
            continue
        if spec.type == InputType.ENUM and spec.options and value not in spec.options:
            violations.append(Violation(path, f"'{value}' is not one of {', '.join(spec.options)}"))
            continue
        for validator in spec.validators:
            message = VALIDATORS[validator["name"]](value, validator)
            if message:
                violations.append(Violation(path, message))

    for group_spec in schema:
        for spec in group_spec.inputs:
            if spec.required and config.get(group_spec.name, spec.name) is None:
                violations.append(Violation(f"{group_spec.name}.{spec.name}", "value is required"))

    return violations


class ConnectorRegistry:
    """Registered connectors and the driver config schema."""

    def __init__(self, connectors: Iterable[Connector] = (), driver_config: list[GroupSpec] | None = None) -> None:
        self._connectors: dict[str, Connector] = {connector.name: connector for connector in connectors}
        self.driver_config = driver_config or []
        logger.debug("Connector registry initialized", connectors=list(self._connectors))

    @classmethod
    def from_dict(cls, data: Any) -> "ConnectorRegistry":
        """Build a registry from a ``{"connectors": [...], "driver-config": [...]}`` mapping."""
        try:
            definitions = RegistryDefinition.model_validate(data)
        except ValidationError as e:
            path, message = first_error(e)
            logger.error("Invalid connector definitions", path=path, error=message)
            where = f" at {path}" if path else ""
            raise ValueError(f"Invalid connector definitions{where}: {message}") from e
        return cls(
            [item.to_connector() for item in definitions.connectors],
            driver_config=[group.to_spec() for group in definitions.driver_config],
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "ConnectorRegistry":
        """Load connector definitions from a YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load connector definitions", path=str(path), error=str(e))
            raise ValueError(f"Failed to load connector definitions from {path}: {e}") from e
        logger.info("Connector definitions loaded", path=str(path))
        return cls.from_dict(data)

    def connectors(self) -> list[Connector]:
        return list(self._connectors.values())

    def get_connector(self, name: str) -> Connector | None:
        return self._connectors.get(name)

    def validate(self, connector_name: str, config: ConfigValues, kind: str) -> list[Violation]:
        """Validate a link or job config against a connector's schema.

        Args:
            connector_name: Connector whose schema applies
            config: Values to check
            kind: ``"link"``, ``"from-job"`` or ``"to-job"``

        Returns:
            Violations found, empty if the config is valid
        """
        connector = self.get_connector(connector_name)
        if connector is None:
            return [Violation(connector_name, "connector is not registered")]
        violations = validate_config(config, connector.schema_for(kind))
        logger.debug("Validated config", connector=connector_name, kind=kind, violations=len(violations))
        return violations

    def validate_driver(self, config: ConfigValues) -> list[Violation]:
        """Validate a job's driver config."""
        return validate_config(config, self.driver_config)
