"""Tests for gateway URL handling and content id normalization."""

import pytest

from certreg.registry.content.gateways import (
    GatewayEndpoint,
    build_gateways,
    normalize_content_id,
    validate_gateway_url,
)
from certreg.registry.exceptions import InvalidInputError

CID = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"


class TestValidateGatewayUrl:
    def test_strips_path(self):
        assert validate_gateway_url("https://ipfs.io/ipfs/") == "https://ipfs.io"

    def test_keeps_port(self):
        assert validate_gateway_url("http://127.0.0.1:8080") == "http://127.0.0.1:8080"

    @pytest.mark.parametrize("url", ["", "ftp://ipfs.io", "ipfs.io", "https://"])
    def test_rejects_unusable(self, url):
        assert validate_gateway_url(url) is None


class TestBuildGateways:
    def test_order_preserved_and_deduplicated(self):
        gateways = build_gateways([
            "https://gateway.pinata.cloud",
            "https://ipfs.io/",
            "https://gateway.pinata.cloud/ipfs",
            "not a url",
        ])
        assert gateways == [
            GatewayEndpoint(url="https://gateway.pinata.cloud", position=0),
            GatewayEndpoint(url="https://ipfs.io", position=1),
        ]

    def test_content_url(self):
        assert GatewayEndpoint("https://ipfs.io", 0).content_url(CID) == f"https://ipfs.io/ipfs/{CID}"


class TestNormalizeContentId:
    @pytest.mark.parametrize("value", [
        CID,
        f"  {CID}  ",
        f"ipfs://{CID}",
        f"ipfs://ipfs/{CID}",
        f"/ipfs/{CID}",
        f"https://gateway.pinata.cloud/ipfs/{CID}",
    ])
    def test_forms_reduce_to_bare_id(self, value):
        assert normalize_content_id(value) == CID

    def test_keeps_path(self):
        assert normalize_content_id(f"ipfs://{CID}/metadata.json") == f"{CID}/metadata.json"

    @pytest.mark.parametrize("value", ["", "   ", "ipfs://", f"{CID}/../secret", "Qm bad"])
    def test_rejects_invalid(self, value):
        with pytest.raises(InvalidInputError):
            normalize_content_id(value)
