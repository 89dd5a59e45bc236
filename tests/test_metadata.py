"""Tests for profile metadata encoding and validation."""

import json

import pytest

from certreg.registry.exceptions import InvalidInputError, ResolutionFailedError
from certreg.registry.metadata import (
    ProviderMetadata,
    ProviderProfile,
    StudentMetadata,
    encode_metadata,
    parse_metadata,
    validate_profile,
)
from certreg.registry.models import Role


class TestEncodeMetadata:
    def test_student_wire_names(self):
        metadata = StudentMetadata(name="Ada", email="ada@example.edu", student_id="S-1")
        assert encode_metadata(metadata) == b'{"name":"Ada","email":"ada@example.edu","studentId":"S-1"}'

    def test_provider_wire_names(self):
        metadata = ProviderMetadata(
            institution_name="Uni",
            accreditation_number="ACC-9",
            document_pointer="QmDoc",
        )
        assert json.loads(encode_metadata(metadata)) == {
            "institutionName": "Uni",
            "accreditationNumber": "ACC-9",
            "documentCid": "QmDoc",
        }

    def test_extra_student_fields_round_trip(self):
        metadata = StudentMetadata.model_validate(
            {"name": "Ada", "email": "a@x", "studentId": "S-1", "program": "CS"}
        )
        decoded = json.loads(encode_metadata(metadata))
        assert decoded["program"] == "CS"
        assert parse_metadata(decoded) == metadata


class TestParseMetadata:
    def test_infers_student(self):
        parsed = parse_metadata({"name": "Ada", "email": "a@x", "studentId": "S-1"})
        assert isinstance(parsed, StudentMetadata)

    def test_infers_provider(self):
        parsed = parse_metadata(
            {"institutionName": "Uni", "accreditationNumber": "A", "documentCid": "QmDoc"}
        )
        assert isinstance(parsed, ProviderMetadata)
        assert parsed.document_pointer == "QmDoc"

    @pytest.mark.parametrize("data", [
        [1, 2, 3],
        "string",
        {"unrelated": True},
        {"studentId": "S-1"},  # missing name/email
        {"name": "", "email": "a@x", "studentId": "S-1"},
    ])
    def test_malformed_is_resolution_failure(self, data):
        with pytest.raises(ResolutionFailedError):
            parse_metadata(data)

    def test_role_mismatch(self):
        with pytest.raises(ResolutionFailedError):
            parse_metadata({"name": "Ada", "email": "a@x", "studentId": "S-1"}, Role.PROVIDER)


class TestValidateProfile:
    def test_student_ok(self):
        validate_profile(Role.STUDENT, StudentMetadata(name="Ada", email="a@x", student_id="S-1"))

    def test_student_missing(self):
        with pytest.raises(InvalidInputError, match="Missing student data"):
            validate_profile(Role.STUDENT, None)

    def test_provider_missing(self):
        with pytest.raises(InvalidInputError, match="Missing provider data"):
            validate_profile(Role.PROVIDER, StudentMetadata(name="Ada", email="a@x", student_id="S-1"))

    def test_provider_empty_document(self):
        with pytest.raises(InvalidInputError):
            validate_profile(Role.PROVIDER, ProviderProfile("Uni", "ACC", b""))

    def test_unset_role_rejected(self):
        with pytest.raises(InvalidInputError):
            validate_profile(Role.UNSET, None)
