"""Ledger access: contract clients and the typed gateway over them."""

from .abi import CREDENTIAL_LEDGER_ABI, IDENTITY_REGISTRY_ABI
from .contracts import ContractClient, TxResult, Web3ContractClient
from .gateway import (
    LedgerGateway,
    build_ledger_gateway,
    get_ledger_gateway,
    reset_ledger_gateway,
)

__all__ = [
    "CREDENTIAL_LEDGER_ABI",
    "IDENTITY_REGISTRY_ABI",
    "ContractClient",
    "LedgerGateway",
    "TxResult",
    "Web3ContractClient",
    "build_ledger_gateway",
    "get_ledger_gateway",
    "reset_ledger_gateway",
]
