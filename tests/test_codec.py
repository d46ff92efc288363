"""Tests for the artifact codec."""

import json
from pathlib import Path

import pytest

from metarepo import codec
from metarepo.errors import ConfigValidationError, StructuralError
from metarepo.models import Envelope, InputType, SubmissionStatus


def _document(envelope: Envelope) -> dict:
    return json.loads(codec.encode(envelope))


def test_encode_envelope_layout(scenario: Envelope) -> None:
    """Test the four top-level sections and name-only references."""
    document = _document(scenario)

    assert list(document) == ["metadata", "links", "jobs", "submissions"]
    assert document["metadata"]["version"] == scenario.version
    assert document["metadata"]["generated"] == "2024-05-01T12:00:00+00:00"
    assert [link["name"] for link in document["links"]["link"]] == ["hdfsLink1", "hdfsLink2"]

    job = document["jobs"]["job"][0]
    assert job["from-link-name"] == "hdfsLink1"
    assert job["to-link-name"] == "hdfsLink2"
    assert "id" not in job
    assert document["submissions"]["submission"][0]["job-name"] == "jobName"


def test_encode_config_values(scenario: Envelope) -> None:
    """Test that config is an ordered list of named groups of typed inputs."""
    link = _document(scenario)["links"]["link"][0]
    assert link["link-config-values"] == [
        {
            "name": "linkConfig",
            "inputs": [
                {"name": "uri", "type": "STRING", "value": "hdfs://namenode:8020/", "sensitive": False},
                {"name": "confDir", "type": "STRING", "value": "${confdir}", "sensitive": False},
            ],
        }
    ]


def test_encode_is_deterministic(scenario: Envelope) -> None:
    """Test that encoding the same envelope twice gives identical bytes."""
    assert codec.encode(scenario) == codec.encode(scenario)


def test_decode_restores_envelope(scenario: Envelope) -> None:
    """Test that decoding an encoded envelope restores every field."""
    scenario.links[0].config.set("linkConfig", "configOverrides", InputType.MAP, {"dfs.replication": "2"})
    scenario.jobs[0].to_config.set("toJobConfig", "overrideNullValue", InputType.BOOLEAN, True)
    scenario.jobs[0].to_config.set("toJobConfig", "columns", InputType.LIST, [{"name": "id"}, {"name": "value"}])

    decoded = codec.decode(codec.encode(scenario))

    assert decoded == scenario
    assert decoded.links[0].config == scenario.links[0].config
    assert decoded.jobs[0].to_config == scenario.jobs[0].to_config
    assert decoded.jobs[0].driver_config.get("throttlingConfig", "numExtractors") == 3
    assert decoded.submissions[0].status == SubmissionStatus.SUCCEEDED
    assert decoded.submissions[0].counters == scenario.submissions[0].counters


def test_decode_rejects_invalid_json() -> None:
    """Test that non-JSON bytes are a structural error."""
    with pytest.raises(StructuralError, match="not valid JSON"):
        codec.decode(b"{not json")


def test_decode_rejects_non_object_root() -> None:
    """Test that a JSON array is not an envelope."""
    with pytest.raises(StructuralError, match="valid dictionary") as exc_info:
        codec.decode(b"[]")
    assert exc_info.value.path is None


def test_decode_rejects_missing_section(scenario: Envelope) -> None:
    """Test that a missing section is reported with its path."""
    document = _document(scenario)
    del document["jobs"]

    with pytest.raises(StructuralError) as exc_info:
        codec.decode(json.dumps(document).encode())
    assert exc_info.value.path == "jobs"


def test_decode_rejects_missing_required_field(scenario: Envelope) -> None:
    """Test that a record without a name is rejected."""
    document = _document(scenario)
    del document["links"]["link"][1]["name"]

    with pytest.raises(StructuralError) as exc_info:
        codec.decode(json.dumps(document).encode())
    assert exc_info.value.path == "links.link[1].name"


def test_decode_rejects_type_mismatch(scenario: Envelope) -> None:
    """Test that a value not matching its declared input type is rejected."""
    document = _document(scenario)
    document["jobs"]["job"][0]["driver-config-values"][0]["inputs"][0]["value"] = "three"

    with pytest.raises(StructuralError, match="does not match type NUMBER") as exc_info:
        codec.decode(json.dumps(document).encode())
    assert exc_info.value.path == "jobs.job[0].driver-config-values[0].inputs[0].value"


def test_decode_rejects_bool_as_number(scenario: Envelope) -> None:
    """Test that booleans are not accepted as numbers."""
    document = _document(scenario)
    document["submissions"]["submission"][0]["progress"] = True

    with pytest.raises(StructuralError, match="valid number") as exc_info:
        codec.decode(json.dumps(document).encode())
    assert exc_info.value.path == "submissions.submission[0].progress"


def test_decode_rejects_bool_as_number_value(scenario: Envelope) -> None:
    """Test that a NUMBER input holding a boolean is rejected."""
    document = _document(scenario)
    document["jobs"]["job"][0]["driver-config-values"][0]["inputs"][0]["value"] = True

    with pytest.raises(StructuralError, match="does not match type NUMBER"):
        codec.decode(json.dumps(document).encode())


def test_decode_rejects_string_as_name(scenario: Envelope) -> None:
    """Test that names must be strings, not numbers."""
    document = _document(scenario)
    document["links"]["link"][0]["name"] = 42

    with pytest.raises(StructuralError, match="valid string") as exc_info:
        codec.decode(json.dumps(document).encode())
    assert exc_info.value.path == "links.link[0].name"


def test_decode_rejects_unknown_input_type(scenario: Envelope) -> None:
    """Test that an unknown input type is rejected."""
    document = _document(scenario)
    document["links"]["link"][0]["link-config-values"][0]["inputs"][0]["type"] = "BLOB"

    with pytest.raises(StructuralError) as exc_info:
        codec.decode(json.dumps(document).encode())
    assert exc_info.value.path == "links.link[0].link-config-values[0].inputs[0].type"


def test_decode_rejects_unknown_status(scenario: Envelope) -> None:
    """Test that an unknown submission status is rejected."""
    document = _document(scenario)
    document["submissions"]["submission"][0]["status"] = "EXPLODED"

    with pytest.raises(StructuralError, match="SUCCEEDED") as exc_info:
        codec.decode(json.dumps(document).encode())
    assert exc_info.value.path == "submissions.submission[0].status"


def test_decode_rejects_progress_out_of_range(scenario: Envelope) -> None:
    """Test that progress must be within [0, 1]."""
    document = _document(scenario)
    document["submissions"]["submission"][0]["progress"] = 1.5

    with pytest.raises(StructuralError, match="less than or equal to"):
        codec.decode(json.dumps(document).encode())


def test_decode_accepts_unknown_progress(scenario: Envelope) -> None:
    """Test that a null progress decodes as unknown."""
    document = _document(scenario)
    document["submissions"]["submission"][0]["progress"] = None

    envelope = codec.decode(json.dumps(document).encode())
    assert envelope.submissions[0].progress is None


def test_decode_ignores_unknown_keys(scenario: Envelope) -> None:
    """Test that extra keys written by other tools are ignored."""
    document = _document(scenario)
    document["links"]["link"][0]["comment"] = "migrated"

    assert codec.decode(json.dumps(document).encode()) == scenario


def test_decode_rejects_bad_timestamp(scenario: Envelope) -> None:
    """Test that an unparseable timestamp is rejected."""
    document = _document(scenario)
    document["metadata"]["generated"] = "yesterday"

    with pytest.raises(StructuralError, match="valid datetime") as exc_info:
        codec.decode(json.dumps(document).encode())
    assert exc_info.value.path == "metadata.generated"


def test_decode_record_with_prefix() -> None:
    """Test that record-level decoding reports paths under the given prefix."""
    with pytest.raises(StructuralError) as exc_info:
        codec.decode_link({"name": "a", "link-config-values": []}, "links[3]")
    assert exc_info.value.path == "links[3].connector-name"


def test_structural_error_is_distinct_from_validation_error() -> None:
    """Test that structural and semantic failures are different exception types."""
    assert not issubclass(StructuralError, ConfigValidationError)
    assert not issubclass(ConfigValidationError, StructuralError)


def test_write_and_load_artifact(scenario: Envelope, tmp_path: Path) -> None:
    """Test the file helpers."""
    path = tmp_path / "out" / "repo.json"
    codec.write_artifact(path, scenario)

    assert path.exists()
    assert codec.load_artifact(path) == scenario
