"""Contract ABIs for the identity registry and the credential ledger.

Only the functions and events this package calls are listed.
"""

from typing import Any, Dict, List


def _fn(
    name: str,
    inputs: List[tuple],
    outputs: List[tuple],
    mutability: str = "view",
) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
    }


def _event(name: str, inputs: List[tuple]) -> Dict[str, Any]:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [
            {"name": n, "type": t, "indexed": indexed} for n, t, indexed in inputs
        ],
    }


IDENTITY_REGISTRY_ABI: List[Dict[str, Any]] = [
    _fn("getUser", [("user", "address")], [("role", "string"), ("hash", "string")]),
    _fn("isUserRegistered", [("user", "address")], [("", "bool")]),
    _fn("getAllUsers", [], [("", "address[]")]),
    _fn(
        "registerUser",
        [("role", "string"), ("hash", "string")],
        [],
        mutability="nonpayable",
    ),
]


CREDENTIAL_LEDGER_ABI: List[Dict[str, Any]] = [
    _fn("owner", [], [("", "address")]),
    _fn("authorizedInstitutes", [("institute", "address")], [("", "bool")]),
    _fn("authorizeInstitute", [("institute", "address")], [], mutability="nonpayable"),
    _fn("revokeInstitute", [("institute", "address")], [], mutability="nonpayable"),
    _fn("requestCounter", [], [("", "uint256")]),
    _fn(
        "certificateRequests",
        [("requestId", "uint256")],
        [
            ("student", "address"),
            ("institute", "address"),
            ("name", "string"),
            ("message", "string"),
            ("studentMetadataHash", "string"),
            ("approved", "bool"),
        ],
    ),
    _fn(
        "requestCertificate",
        [
            ("institute", "address"),
            ("name", "string"),
            ("message", "string"),
            ("studentMetadataHash", "string"),
        ],
        [],
        mutability="nonpayable",
    ),
    _fn(
        "approveCertificateRequest",
        [
            ("requestId", "uint256"),
            ("certificateType", "string"),
            ("tokenURI", "string"),
            ("institutionName", "string"),
        ],
        [],
        mutability="nonpayable",
    ),
    _fn(
        "cancelCertificateRequest",
        [("requestId", "uint256")],
        [],
        mutability="nonpayable",
    ),
    _fn("getStudentCertificates", [("student", "address")], [("", "uint256[]")]),
    _fn(
        "getCertificateDetails",
        [("tokenId", "uint256")],
        [
            ("name", "string"),
            ("institute", "string"),
            ("issueDate", "uint256"),
            ("certificateType", "string"),
            ("student", "address"),
        ],
    ),
    _fn("tokenURI", [("tokenId", "uint256")], [("", "string")]),
    _event(
        "CertificateRequested",
        [
            ("requestId", "uint256", True),
            ("student", "address", True),
            ("institute", "address", True),
        ],
    ),
]
