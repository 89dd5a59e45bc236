"""Identity registry, credential ledger and metadata store reconciliation."""

from .authorization import AuthorizationChecker
from .directory import Directory, StudentMatch
from .exceptions import CertRegError
from .issuance import IssuanceWorkflow
from .models import (
    Certificate,
    CertificateRequest,
    IdentityRecord,
    ProviderClassification,
    RequestState,
    Role,
)
from .registration import RegistrationWorkflow
from .session import Session

__all__ = [
    "AuthorizationChecker",
    "CertRegError",
    "Certificate",
    "CertificateRequest",
    "Directory",
    "IdentityRecord",
    "IssuanceWorkflow",
    "ProviderClassification",
    "RegistrationWorkflow",
    "RequestState",
    "Role",
    "Session",
    "StudentMatch",
]
