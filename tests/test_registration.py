"""Tests for the registration workflow."""

import json

import pytest

from certreg.audit import AuditLogger
from certreg.registry.exceptions import (
    AlreadyRegisteredError,
    ContractUnavailableError,
    InvalidInputError,
    TransactionFailedError,
    UploadFailedError,
    WalletNotConnectedError,
)
from certreg.registry.ledger.gateway import LedgerGateway
from certreg.registry.metadata import (
    ProviderMetadata,
    ProviderProfile,
    StudentMetadata,
    encode_metadata,
)
from certreg.registry.models import Role
from certreg.registry.registration import RegistrationWorkflow
from certreg.registry.session import Session


@pytest.fixture
def audit():
    return AuditLogger()


@pytest.fixture
def workflow(ledger, content, audit):
    gateway, _, _ = ledger
    store, _ = content
    return RegistrationWorkflow(gateway, store, audit=audit)


def _student_profile():
    return StudentMetadata(name="Ada Lovelace", email="ada@example.edu", student_id="S-1815")


class TestStudentRegistration:
    @pytest.mark.asyncio
    async def test_round_trip(self, workflow, ledger, content, student):
        """Registered metadata resolves to the exact uploaded bytes."""
        gateway, _, _ = ledger
        _, resolver = content
        profile = _student_profile()

        record = await workflow.register(student, Role.STUDENT, profile)

        assert record.role == Role.STUDENT
        assert record.address == student.account
        assert await resolver.get(record.metadata_pointer) == encode_metadata(profile)
        assert await resolver.get_metadata(record.metadata_pointer, Role.STUDENT) == profile
        assert await gateway.read_identity(student.account) == record

    @pytest.mark.asyncio
    async def test_first_registration_when_get_user_reverts(self, workflow, ledger, audit, student):
        """A registry that reverts getUser for unknown accounts accepts a first registration."""
        _, registry, _ = ledger
        registry.revert_unknown = True

        record = await workflow.register(student, Role.STUDENT, _student_profile())

        assert record.role == Role.STUDENT
        assert [t[1] for t in registry.transactions] == ["registerUser"]
        assert audit.get_recent_events()[0]["status"] == "success"

    @pytest.mark.asyncio
    async def test_role_string_accepted(self, workflow, student):
        record = await workflow.register(student, "student", _student_profile())
        assert record.role == Role.STUDENT

    @pytest.mark.asyncio
    async def test_audit_recorded(self, workflow, audit, student):
        await workflow.register(student, Role.STUDENT, _student_profile())

        events = audit.get_recent_events(action_filter="identity.")
        assert events[0]["status"] == "success"
        assert events[0]["principal"] == student.account


class TestProviderRegistration:
    @pytest.mark.asyncio
    async def test_document_uploaded_first(self, workflow, content, institute):
        store, resolver = content
        profile = ProviderProfile(
            institution_name="Analytical Engine University",
            accreditation_number="ACC-42",
            document=b"%PDF-1.7 accreditation",
            document_name="accreditation.pdf",
        )

        record = await workflow.register(institute, Role.PROVIDER, profile)

        metadata = await resolver.get_metadata(record.metadata_pointer, Role.PROVIDER)
        assert isinstance(metadata, ProviderMetadata)
        assert metadata.institution_name == "Analytical Engine University"
        assert await resolver.get(metadata.document_pointer) == b"%PDF-1.7 accreditation"
        assert len(store.blobs) == 2


class TestRegistrationFailures:
    @pytest.mark.asyncio
    async def test_requires_signer(self, workflow):
        with pytest.raises(WalletNotConnectedError):
            await workflow.register(Session(), Role.STUDENT, _student_profile())

    @pytest.mark.asyncio
    async def test_requires_registry(self, content, student):
        store, _ = content
        workflow = RegistrationWorkflow(LedgerGateway(None, None), store, audit=AuditLogger())
        with pytest.raises(ContractUnavailableError):
            await workflow.register(student, Role.STUDENT, _student_profile())

    @pytest.mark.asyncio
    async def test_missing_payload(self, workflow, ledger, content, student):
        _, registry, _ = ledger
        store, _ = content
        with pytest.raises(InvalidInputError):
            await workflow.register(student, Role.PROVIDER, _student_profile())
        assert store.blobs == {}
        assert registry.transactions == []

    @pytest.mark.asyncio
    async def test_cannot_register_twice(self, workflow, ledger, student):
        _, registry, _ = ledger
        await workflow.register(student, Role.STUDENT, _student_profile())

        with pytest.raises(AlreadyRegisteredError):
            await workflow.register(student, Role.STUDENT, _student_profile())
        assert len(registry.transactions) == 1

    @pytest.mark.asyncio
    async def test_upload_failure_aborts_before_ledger(self, workflow, ledger, content, audit, student):
        _, registry, _ = ledger
        store, _ = content
        store.fail = True

        with pytest.raises(UploadFailedError):
            await workflow.register(student, Role.STUDENT, _student_profile())

        assert registry.transactions == []
        assert audit.get_recent_events(status_filter="error")

    @pytest.mark.asyncio
    async def test_ledger_rejection_leaves_orphaned_blob(self, workflow, ledger, content, student):
        gateway, registry, _ = ledger
        store, _ = content

        async def reject(signer, fn_name, *args):
            raise TransactionFailedError("execution reverted: registry paused")

        registry.transact = reject

        with pytest.raises(TransactionFailedError) as exc_info:
            await workflow.register(student, Role.STUDENT, _student_profile())

        assert exc_info.value.reason == "execution reverted: registry paused"
        assert len(store.blobs) == 1
        assert await gateway.read_identity(student.account) is None
        assert json.loads(next(iter(store.blobs.values())))["studentId"] == "S-1815"
