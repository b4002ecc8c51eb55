"""Tests for VaultCodec encode/decode."""

from __future__ import annotations

import json

import pytest

from hostvault.errors import CorruptVault
from hostvault.vault import codec


def _doc(records, fmt=1):
    return json.dumps({"format": fmt, "records": records}).encode()


def _raw(**overrides):
    raw = {
        "id": "0b7c3f4e-1f2a-4c5d-8e9f-a0b1c2d3e4f5",
        "name": "prod",
        "host": "1.2.3.4",
        "port": 22,
        "username": "u",
        "password": "p",
        "description": None,
        "created": 1.5,
        "modified": 2.5,
        "tags": [],
    }
    raw.update(overrides)
    return raw


class TestRoundtrip:
    def test_records_roundtrip_in_order(self, make_record):
        records = [
            make_record("web-prod", "10.0.0.1", password="s3cr3t"),
            make_record("db", "db.internal", port=2222, description="primary"),
            make_record("ünïcode", "host", password="pässwörd ✓"),
        ]
        assert codec.decode(codec.encode(records)) == records

    def test_empty(self):
        assert codec.decode(codec.encode([])) == []

    def test_encode_returns_wipeable_buffer(self, make_record):
        assert isinstance(codec.encode([make_record()]), bytearray)


class TestCorrupt:
    @pytest.mark.parametrize(
        "data",
        [
            b"\xff\xfe not utf8",
            b"{not json",
            b"[]",
            json.dumps({"records": []}).encode(),
            _doc([], fmt=2),
            json.dumps({"format": 1, "records": {}}).encode(),
            _doc(["string"]),
        ],
    )
    def test_malformed_document(self, data):
        with pytest.raises(CorruptVault):
            codec.decode(data)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"name": ""},
            {"host": 5},
            {"port": "22"},
            {"port": True},
            {"port": 70000},
            {"description": 3},
            {"created": "yesterday"},
            {"id": "not-a-uuid"},
            {"id": None},
            {"tags": "prod"},
            {"tags": [1]},
            {"tags": None},
            {"host": "1.2.3.4\n  ProxyCommand touch /tmp/x"},
            {"username": "-oProxyCommand=x"},
        ],
    )
    def test_malformed_field(self, overrides):
        with pytest.raises(CorruptVault):
            codec.decode(_doc([_raw(**overrides)]))

    def test_missing_field(self):
        raw = _raw()
        del raw["username"]
        with pytest.raises(CorruptVault, match="username"):
            codec.decode(_doc([raw]))

    def test_duplicate_names(self):
        with pytest.raises(CorruptVault, match="Duplicate"):
            codec.decode(_doc([_raw(name="A"), _raw(name="a")]))

    def test_duplicate_ids(self):
        with pytest.raises(CorruptVault, match="id"):
            codec.decode(_doc([_raw(name="a"), _raw(name="b")]))
