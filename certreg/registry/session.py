"""Explicit caller context passed into every workflow call.

A Session names the active account and, when writes are intended, the
signer for that account. Reads never need a signer.
"""

from dataclasses import dataclass
from typing import Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount

from .exceptions import InvalidInputError, WalletNotConnectedError
from .models import same_address


@dataclass(frozen=True)
class Session:
    """Active account and optional signer.

    Attributes:
        account: Address the caller acts as. Defaults to the signer's address.
        signer: Local signing account; required for ledger writes.
    """
    account: Optional[str] = None
    signer: Optional[LocalAccount] = None

    def __post_init__(self):
        if self.signer is not None:
            if self.account is None:
                object.__setattr__(self, "account", self.signer.address)
            elif not same_address(self.account, self.signer.address):
                raise InvalidInputError(
                    "Session account does not match signer address"
                )

    @classmethod
    def from_private_key(cls, private_key: str) -> "Session":
        """Build a signing session from a hex private key."""
        return cls(signer=Account.from_key(private_key))

    @classmethod
    def read_only(cls, account: Optional[str] = None) -> "Session":
        return cls(account=account)

    @property
    def connected(self) -> bool:
        return self.account is not None

    def require_account(self) -> str:
        """Return the active account or raise WalletNotConnectedError."""
        if not self.account:
            raise WalletNotConnectedError()
        return self.account

    def require_signer(self) -> LocalAccount:
        """Return the signer or raise WalletNotConnectedError."""
        if self.signer is None:
            raise WalletNotConnectedError()
        return self.signer
