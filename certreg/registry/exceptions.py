"""Certificate registry exceptions mapped to error codes.

Write-path failures abort the workflow step that raised them. Read-path
failures for a single item of a batch are isolated by the composite that
issued the batch (see directory, authorization and issuance listings).
"""

from certreg.registry.api_models import ERROR_RECOVERABILITY, ErrorCode, ErrorDetail


class CertRegError(Exception):
    """Base exception for registry operations.

    Carries an error code that maps to ErrorCode constants.
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)

    @property
    def recoverable(self) -> bool:
        return ERROR_RECOVERABILITY.get(self.code, False)

    def to_detail(self) -> ErrorDetail:
        """Convert to the serializable error shape."""
        return ErrorDetail(code=self.code, message=self.message, recoverable=self.recoverable)


class WalletNotConnectedError(CertRegError):
    """No active account/signer in the session."""

    def __init__(self, message: str = "Wallet not connected"):
        super().__init__(ErrorCode.WALLET_NOT_CONNECTED, message)


class ContractUnavailableError(CertRegError):
    """Contract address is not configured."""

    def __init__(self, message: str = "Contract address not configured"):
        super().__init__(ErrorCode.CONTRACT_UNAVAILABLE, message)


class NotOwnerError(CertRegError):
    """Caller is not the credential ledger owner.

    Raised before any authorization write is submitted.
    """

    def __init__(self, message: str = "You are not the contract owner"):
        super().__init__(ErrorCode.NOT_OWNER, message)


class NotAuthorizedCallerError(CertRegError):
    """Caller is not allowed to act on this request or resource."""

    def __init__(self, message: str = "Caller is not authorized for this operation"):
        super().__init__(ErrorCode.NOT_AUTHORIZED_CALLER, message)


class RequestNotPendingError(CertRegError):
    """Certificate request is approved, removed, or never existed."""

    def __init__(self, request_id: int, state: str):
        self.request_id = request_id
        self.state = state
        super().__init__(
            ErrorCode.REQUEST_NOT_PENDING,
            f"Certificate request {request_id} is not pending (state={state})",
        )


class NotRegisteredError(CertRegError):
    """Caller holds no identity record in the registry."""

    def __init__(self, message: str = "Account is not registered"):
        super().__init__(ErrorCode.NOT_REGISTERED, message)


class InvalidInputError(CertRegError):
    """Missing or malformed input to a public operation."""

    def __init__(self, message: str = "Invalid input"):
        super().__init__(ErrorCode.INVALID_INPUT, message)


class AlreadyRegisteredError(InvalidInputError):
    """Account already holds an identity record; registration is write-once."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Account already registered: {address}")


class TransactionFailedError(CertRegError):
    """Ledger rejected a write or confirmation timed out.

    The ledger's reason string is carried unmodified in ``reason``.
    """

    def __init__(self, reason: str, tx_hash: str = None):
        self.reason = reason
        self.tx_hash = tx_hash
        super().__init__(ErrorCode.TRANSACTION_FAILED, reason)


class LedgerReadError(CertRegError):
    """A ledger read call failed (revert or transport)."""

    def __init__(self, message: str = "Ledger read failed"):
        super().__init__(ErrorCode.LEDGER_READ_FAILED, message)


class ResolutionFailedError(CertRegError):
    """Content could not be obtained from any gateway, or is malformed."""

    def __init__(self, message: str = "Content resolution failed"):
        super().__init__(ErrorCode.RESOLUTION_FAILED, message)


class UploadFailedError(CertRegError):
    """Authoritative store did not return a content identifier."""

    def __init__(self, message: str = "Upload failed"):
        super().__init__(ErrorCode.UPLOAD_FAILED, message)
