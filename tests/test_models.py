"""Tests for entity projections, sessions and bounded fan-out."""

import asyncio

import pytest
from eth_account import Account

from certreg.registry.api_models import ErrorCode
from certreg.registry.concurrency import gather_bounded
from certreg.registry.exceptions import (
    AlreadyRegisteredError,
    InvalidInputError,
    LedgerReadError,
    TransactionFailedError,
    WalletNotConnectedError,
)
from certreg.registry.models import (
    Certificate,
    CertificateRequest,
    RequestState,
    Role,
    require_address,
    same_address,
)
from certreg.registry.session import Session

KEY = "0x" + "0a" * 32


class TestRole:
    @pytest.mark.parametrize("value,expected", [
        ("student", Role.STUDENT),
        ("Provider", Role.PROVIDER),
        ("", Role.UNSET),
        (None, Role.UNSET),
        ("admin", Role.UNSET),
    ])
    def test_parse(self, value, expected):
        assert Role.parse(value) == expected


class TestAddresses:
    def test_same_address_case_insensitive(self):
        assert same_address("0xAbC0000000000000000000000000000000000001",
                            "0xabc0000000000000000000000000000000000001")

    def test_same_address_empty(self):
        assert not same_address("", "")
        assert not same_address(None, "0x0")

    def test_require_address(self):
        address = Account.from_key(KEY).address
        assert require_address(address) == address
        with pytest.raises(InvalidInputError):
            require_address("0x123")


class TestProjections:
    def test_request_state(self):
        request = CertificateRequest(1, "0xs", "0xi", "Diploma", "", "Qm", approved=False)
        assert request.state == RequestState.PENDING
        assert request.to_dict()["student_metadata_hash"] == "Qm"

    def test_certificate_with_metadata(self):
        certificate = Certificate("1", "BSc", "Uni", 1700000000, "Diploma", "0xs", "ipfs://Qm")
        enriched = certificate.with_metadata({"image": "x"})
        assert certificate.metadata is None
        assert enriched.metadata == {"image": "x"}
        assert enriched.to_dict()["token_uri"] == "ipfs://Qm"


class TestExceptions:
    def test_recoverability(self):
        assert LedgerReadError().recoverable is True
        assert TransactionFailedError("nope").recoverable is False

    def test_reason_passthrough(self):
        error = TransactionFailedError("execution reverted: Not owner", tx_hash="0xabc")
        assert error.reason == "execution reverted: Not owner"
        assert error.to_detail().message == "execution reverted: Not owner"

    def test_already_registered_is_invalid_input(self):
        error = AlreadyRegisteredError("0x1")
        assert isinstance(error, InvalidInputError)
        assert error.code == ErrorCode.INVALID_INPUT


class TestSession:
    def test_from_private_key(self):
        session = Session.from_private_key(KEY)
        assert session.account == Account.from_key(KEY).address
        assert session.require_signer() is session.signer

    def test_read_only_has_no_signer(self):
        session = Session.read_only("0x0000000000000000000000000000000000000001")
        assert session.connected
        with pytest.raises(WalletNotConnectedError):
            session.require_signer()

    def test_disconnected(self):
        session = Session()
        assert not session.connected
        with pytest.raises(WalletNotConnectedError):
            session.require_account()

    def test_mismatched_account_rejected(self):
        with pytest.raises(InvalidInputError):
            Session(
                account="0x0000000000000000000000000000000000000001",
                signer=Account.from_key(KEY),
            )


class TestGatherBounded:
    @pytest.mark.asyncio
    async def test_order_and_isolation(self):
        async def work(i):
            await asyncio.sleep(0.001 * (5 - i))
            if i == 2:
                raise LedgerReadError("boom")
            return i * 10

        results = await gather_bounded(range(5), work, limit=2)

        assert results[:2] == [0, 10]
        assert isinstance(results[2], LedgerReadError)
        assert results[3:] == [30, 40]

    @pytest.mark.asyncio
    async def test_limit_respected(self):
        in_flight = 0
        peak = 0

        async def work(i):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1
            return i

        await gather_bounded(range(10), work, limit=3)
        assert peak <= 3
