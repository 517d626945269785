import json

import pytest
import requests

from chainproof import config
from chainproof.ipfs import ipfs_helper
from chainproof.ipfs.ipfs_helper import IPFSError


class FakeResponse:
    def __init__(self, status_code=200, body=None, content=b"", headers=None):
        self.status_code = status_code
        self._body = body
        self.content = content
        self.text = json.dumps(body) if body is not None else ""
        self.reason = "OK" if status_code == 200 else "Error"
        self.headers = headers or {}

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


@pytest.fixture
def pinata(monkeypatch):
    monkeypatch.setattr(config, "PINATA_JWT", "jwt-token")
    calls = []
    return calls


def test_upload_sends_jwt_and_metadata(pinata, monkeypatch):
    def fake_post(url, files, data, headers, timeout):
        pinata.append((url, files, data, headers))
        return FakeResponse(body={"IpfsHash": "QmPinned", "PinSize": 5, "Timestamp": "2024-01-01T00:00:00Z"})

    monkeypatch.setattr(requests, "post", fake_post)
    result = ipfs_helper.upload_to_ipfs(b"hello", "leak.txt", {"evidenceId": "EVD-1"})

    assert result == {"cid": "QmPinned", "size": 5, "timestamp": "2024-01-01T00:00:00Z"}
    url, files, data, headers = pinata[0]
    assert url.endswith("/pinning/pinFileToIPFS")
    assert headers["Authorization"] == "Bearer jwt-token"
    meta = json.loads(data["pinataMetadata"])
    assert meta["name"] == "leak.txt"
    assert meta["keyvalues"]["evidenceId"] == "EVD-1"


def test_upload_errors(pinata, monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse(status_code=401, body={"error": "bad"}))
    with pytest.raises(IPFSError, match="401"):
        ipfs_helper.upload_to_ipfs(b"x", "x.bin")

    monkeypatch.setattr(config, "PINATA_JWT", None)
    with pytest.raises(IPFSError, match="PINATA_JWT"):
        ipfs_helper.upload_to_ipfs(b"x", "x.bin")


def test_get_from_ipfs(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse(content=b"file bytes"))
    assert ipfs_helper.get_from_ipfs("QmOk") == b"file bytes"

    monkeypatch.setattr(requests, "get", lambda url, timeout: FakeResponse(status_code=404))
    with pytest.raises(IPFSError):
        ipfs_helper.get_from_ipfs("QmMissing")


def test_check_ipfs_exists(pinata, monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, params, headers, timeout: FakeResponse(body={"count": 1}))
    assert ipfs_helper.check_ipfs_exists("QmOk") is True

    def down(*args, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(requests, "get", down)
    assert ipfs_helper.check_ipfs_exists("QmOk") is False


def test_gateway_fallback(monkeypatch):
    tried = []

    def fake_get(url, timeout):
        tried.append(url)
        if url.startswith("https://first/"):
            raise requests.Timeout("slow")
        if url.startswith("https://second/"):
            return FakeResponse(status_code=504)
        return FakeResponse(content=b"data", headers={"content-type": "image/png"})

    monkeypatch.setattr(requests, "get", fake_get)
    gateways = ["https://first/", "https://second/", "https://third/"]
    assert ipfs_helper.fetch_via_gateways("QmX", gateways) == (b"data", "image/png")
    assert tried == [g + "QmX" for g in gateways]

    with pytest.raises(IPFSError, match="status 504"):
        ipfs_helper.fetch_via_gateways("QmX", gateways[:2])
