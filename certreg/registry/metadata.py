"""Role-specific profile metadata stored in the content store.

Profiles are a tagged union over student and provider variants. Wire
names are camelCase (``studentId``, ``institutionName``, ...) and are
preserved byte-for-byte through encode/upload/fetch.

Anything a gateway returns that does not validate as the expected variant
is treated as a resolution failure, not a crash.
"""

import json
from dataclasses import dataclass
from typing import Any, ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import InvalidInputError, ResolutionFailedError
from .models import Role


class StudentMetadata(BaseModel):
    """Student profile. Additional keys are kept as-is."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    kind: ClassVar[Role] = Role.STUDENT

    name: str = Field(min_length=1)
    email: str
    student_id: str = Field(alias="studentId", min_length=1)


class ProviderMetadata(BaseModel):
    """Provider (institution) profile."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    kind: ClassVar[Role] = Role.PROVIDER

    institution_name: str = Field(alias="institutionName", min_length=1)
    accreditation_number: str = Field(alias="accreditationNumber", min_length=1)
    document_pointer: str = Field(alias="documentCid", min_length=1)


ProfileMetadata = Union[StudentMetadata, ProviderMetadata]


@dataclass
class ProviderProfile:
    """Registration input for a provider.

    The supporting document is uploaded first; its content identifier
    becomes ``documentCid`` in the stored ProviderMetadata.
    """
    institution_name: str
    accreditation_number: str
    document: bytes
    document_name: str = "accreditation-document"


def encode_metadata(metadata: ProfileMetadata) -> bytes:
    """Serialize metadata deterministically for upload.

    The returned bytes are exactly what gateways will serve back for the
    resulting content identifier.
    """
    return json.dumps(
        metadata.model_dump(by_alias=True),
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def parse_metadata(data: Any, role: Optional[Role] = None) -> ProfileMetadata:
    """Validate a decoded JSON document into a metadata variant.

    Args:
        data: Decoded JSON (expected to be an object).
        role: Expected variant. When None the variant is inferred from
            the document's keys.

    Raises:
        ResolutionFailedError: If the document does not match the variant.
    """
    if not isinstance(data, dict):
        raise ResolutionFailedError(
            f"Metadata is not a JSON object (got {type(data).__name__})"
        )

    if role is None:
        if "studentId" in data or "student_id" in data:
            role = Role.STUDENT
        elif "institutionName" in data or "institution_name" in data:
            role = Role.PROVIDER
        else:
            raise ResolutionFailedError("Metadata matches no known profile variant")

    model = {Role.STUDENT: StudentMetadata, Role.PROVIDER: ProviderMetadata}.get(role)
    if model is None:
        raise ResolutionFailedError(f"No metadata variant for role {role.value}")

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ResolutionFailedError(
            f"Malformed {role.value} metadata: {e.error_count()} validation error(s)"
        ) from e


def validate_profile(role: Role, profile: Any) -> None:
    """Check that the registration payload matches the chosen role.

    Raises:
        InvalidInputError: On missing payload, wrong variant, or an
            unregistrable role.
    """
    if role == Role.STUDENT:
        if not isinstance(profile, StudentMetadata):
            raise InvalidInputError("Missing student data")
    elif role == Role.PROVIDER:
        if not isinstance(profile, ProviderProfile):
            raise InvalidInputError("Missing provider data")
        if not profile.institution_name or not profile.accreditation_number:
            raise InvalidInputError("Provider institution name and accreditation number are required")
        if not profile.document:
            raise InvalidInputError("Provider supporting document is empty")
    else:
        raise InvalidInputError(f"Cannot register with role {role.value}")
