"""CLI for metarepo."""

import sys
from pathlib import Path
from typing import Annotated, Literal, NoReturn

import structlog
from cyclopts import App, Parameter

from metarepo import __version__, codec
from metarepo.backends import YamlRepository
from metarepo.config import DEFAULT_REPOSITORY_PATH, Config, get_config
from metarepo.config_commands import config_app
from metarepo.errors import AtomicImportError, MetarepoError
from metarepo.exporter import Exporter, submissions_for_job
from metarepo.importer import Importer, ImportOptions, ImportReport
from metarepo.placeholders import default_substitution_table
from metarepo.registry import ConnectorRegistry
from metarepo.repository import Repository
from metarepo.versioning import policy_for

logger = structlog.get_logger()

app = App(
    help="metarepo - dump and load metadata repositories",
    version=__version__,
)

app.command(config_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_registry(config: Config) -> ConnectorRegistry:
    """Load the connector registry named by ``connectors.path``."""
    path = config.get("connectors.path")
    if not path:
        logger.warning("No connector definitions configured, registry is empty")
        return ConnectorRegistry()
    return ConnectorRegistry.from_yaml(Path(path))


def get_repository(config: Config, registry: ConnectorRegistry) -> Repository:
    """Get the configured repository store."""
    path = Path(config.get("repository.path", DEFAULT_REPOSITORY_PATH))
    return YamlRepository(path, connectors=registry.connectors())


def parse_substitutions(pairs: list[str]) -> dict[str, str]:
    """Parse ``name=value`` pairs into a substitution table."""
    table = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Invalid substitution {pair!r}, expected NAME=VALUE")
        name, value = pair.split("=", 1)
        table[name.strip()] = value
    return table


def print_report(report: ImportReport) -> None:
    for line in report.summary_lines():
        print(line)
    imported = len(report.imported)
    rejected = len(report.rejected)
    print(f"\n{imported} imported, {rejected} rejected")


def fail(message: str) -> NoReturn:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


@app.command
def dump(
    output: Annotated[Path, Parameter(name=["--output", "-o"])],
    job: str | None = None,
    placeholder: Annotated[list[str] | None, Parameter(name=["--placeholder", "-p"])] = None,
) -> None:
    """Dump the repository to an artifact file.

    Args:
        output: Artifact file to write
        job: Only export submissions of this job
        placeholder: Write VALUE as the token ${NAME}, given as NAME=VALUE (repeatable)
    """
    config = get_config()
    try:
        repository = get_repository(config, get_registry(config))
        exporter = Exporter(repository, placeholders=parse_substitutions(placeholder or []))
        envelope = exporter.export(submissions_for_job(job) if job else None)
        codec.write_artifact(output, envelope)
    except (MetarepoError, ValueError, OSError) as e:
        logger.error("Dump failed", error=str(e))
        fail(str(e))

    print(f"Dumped {len(envelope.links)} link(s), {len(envelope.jobs)} job(s), {len(envelope.submissions)} submission(s)")
    print(f"Artifact written to {output}")


@app.command
def load(
    input: Annotated[Path, Parameter(name=["--input", "-i"])],
    set: Annotated[list[str] | None, Parameter(name=["--set", "-s"])] = None,
    atomic: bool | None = None,
    dry_run: bool = False,
    version_policy: Literal["exact", "minor"] | None = None,
) -> None:
    """Load an artifact file into the repository.

    Args:
        input: Artifact file to read
        set: Placeholder substitution as NAME=VALUE (repeatable)
        atomic: Reject the whole artifact when any entity is rejected
        dry_run: Validate without writing anything
        version_policy: Artifact version check (exact or minor)
    """
    config = get_config()
    try:
        table = default_substitution_table()
        table.update(config.prefixed("placeholders"))
        table.update(parse_substitutions(set or []))

        options = ImportOptions(
            atomic=config.get_bool("import.atomic") if atomic is None else atomic,
            dry_run=dry_run,
            version_policy=policy_for(version_policy or config.get("import.version_policy", "exact"), __version__),
        )
        registry = get_registry(config)
        importer = Importer(get_repository(config, registry), registry, substitutions=table, options=options)
        report = importer.import_artifact(input.read_bytes())
    except AtomicImportError as e:
        print_report(e.report)
        fail(str(e))
    except (MetarepoError, ValueError, OSError) as e:
        logger.error("Load failed", error=str(e))
        fail(str(e))

    print_report(report)
    if not report.ok:
        sys.exit(1)


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    app(tokens)


if __name__ == "__main__":
    app.meta()
