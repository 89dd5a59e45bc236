"""Contract call/transaction clients.

ContractClient is the seam between the typed LedgerGateway and a concrete
ledger connection. Web3ContractClient talks JSON-RPC through web3.py;
tests substitute in-memory implementations with the same contract
semantics.

Writes follow build -> sign locally -> send raw -> wait for receipt. A
revert, a status-0 receipt or a receipt timeout raises
TransactionFailedError carrying the node's reason unmodified. Writes are
never retried here.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted
from web3.logs import DISCARD

from certreg.core.config import (
    TX_RECEIPT_POLL_LATENCY_SECONDS,
    TX_RECEIPT_TIMEOUT_SECONDS,
)

from ..exceptions import LedgerReadError, TransactionFailedError

log = logging.getLogger(__name__)


@dataclass
class TxResult:
    """Outcome of a confirmed ledger write.

    Attributes:
        tx_hash: Transaction hash (0x-prefixed hex).
        block_number: Block that included the transaction.
        events: Decoded event arguments keyed by event name.
    """

    tx_hash: str
    block_number: Optional[int] = None
    events: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    def first_event(self, name: str) -> Optional[Dict[str, Any]]:
        entries = self.events.get(name) or []
        return entries[0] if entries else None


class ContractClient(ABC):
    """Abstract interface to one deployed contract."""

    name: str = "contract"

    @abstractmethod
    async def call(self, fn_name: str, *args: Any) -> Any:
        """Execute a read-only call.

        Raises:
            LedgerReadError: If the call reverts or the node is unreachable.
        """
        ...

    @abstractmethod
    async def transact(self, signer: LocalAccount, fn_name: str, *args: Any) -> TxResult:
        """Sign, submit and await a state-changing call.

        Raises:
            TransactionFailedError: On revert, status 0, or receipt timeout.
        """
        ...


def _revert_reason(error: Exception) -> str:
    message = getattr(error, "message", None)
    return message or str(error) or type(error).__name__


_sender_locks: Dict[str, asyncio.Lock] = {}


def _sender_lock(address: str) -> asyncio.Lock:
    key = address.lower()
    lock = _sender_locks.get(key)
    if lock is None:
        lock = _sender_locks[key] = asyncio.Lock()
    return lock


class Web3ContractClient(ContractClient):
    """ContractClient over an AsyncWeb3 connection."""

    def __init__(
        self,
        w3: AsyncWeb3,
        address: str,
        abi: List[Dict[str, Any]],
        name: str = "contract",
        receipt_timeout: float = TX_RECEIPT_TIMEOUT_SECONDS,
        poll_latency: float = TX_RECEIPT_POLL_LATENCY_SECONDS,
    ):
        self.name = name
        self._w3 = w3
        self._contract = w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(address),
            abi=abi,
        )
        self._event_names = [e["name"] for e in abi if e.get("type") == "event"]
        self._receipt_timeout = receipt_timeout
        self._poll_latency = poll_latency

    @property
    def address(self) -> str:
        return self._contract.address

    async def call(self, fn_name: str, *args: Any) -> Any:
        fn = getattr(self._contract.functions, fn_name)
        try:
            return await fn(*args).call()
        except ContractLogicError as e:
            raise LedgerReadError(f"{self.name}.{fn_name} reverted: {_revert_reason(e)}") from e
        except Exception as e:
            log.warning(f"{self.name}.{fn_name} read failed: {e}")
            raise LedgerReadError(f"{self.name}.{fn_name} failed: {e}") from e

    async def transact(self, signer: LocalAccount, fn_name: str, *args: Any) -> TxResult:
        fn = getattr(self._contract.functions, fn_name)(*args)

        # Nonce read through send is serialized per sender so concurrent
        # writes from one account never reuse a pending nonce
        async with _sender_lock(signer.address):
            tx_hash = await self._build_and_send(signer, fn_name, fn)

        hex_hash = tx_hash.to_0x_hex() if hasattr(tx_hash, "to_0x_hex") else str(tx_hash)
        log.info(f"Submitted {self.name}.{fn_name} tx={hex_hash[:18]}...")

        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self._receipt_timeout,
                poll_latency=self._poll_latency,
            )
        except TimeExhausted as e:
            raise TransactionFailedError(
                f"Timed out waiting for receipt after {self._receipt_timeout}s",
                tx_hash=hex_hash,
            ) from e

        if receipt["status"] == 0:
            log.warning(f"{self.name}.{fn_name} reverted in block {receipt.get('blockNumber')}")
            raise TransactionFailedError("Transaction reverted", tx_hash=hex_hash)

        return TxResult(
            tx_hash=hex_hash,
            block_number=receipt.get("blockNumber"),
            events=self._decode_events(receipt),
        )

    async def _build_and_send(self, signer: LocalAccount, fn_name: str, fn: Any) -> Any:
        try:
            nonce = await self._w3.eth.get_transaction_count(signer.address, "pending")
            tx = await fn.build_transaction({
                "from": signer.address,
                "nonce": nonce,
                "chainId": await self._w3.eth.chain_id,
            })
        except ContractLogicError as e:
            # Gas estimation executes the call, so most reverts surface here
            raise TransactionFailedError(_revert_reason(e)) from e
        except Exception as e:
            log.warning(f"Failed to build {self.name}.{fn_name}: {e}")
            raise TransactionFailedError(str(e)) from e

        signed = signer.sign_transaction(tx)
        try:
            return await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except ContractLogicError as e:
            raise TransactionFailedError(_revert_reason(e)) from e
        except Exception as e:
            log.warning(f"Failed to submit {self.name}.{fn_name}: {e}")
            raise TransactionFailedError(str(e)) from e

    def _decode_events(self, receipt: Any) -> Dict[str, List[Dict[str, Any]]]:
        events: Dict[str, List[Dict[str, Any]]] = {}
        for event_name in self._event_names:
            event = getattr(self._contract.events, event_name)()
            decoded = event.process_receipt(receipt, errors=DISCARD)
            if decoded:
                events[event_name] = [dict(entry["args"]) for entry in decoded]
        return events


def create_web3(rpc_url: str) -> AsyncWeb3:
    """Create an AsyncWeb3 connection; nothing is contacted until first use."""
    return AsyncWeb3(AsyncHTTPProvider(rpc_url))
