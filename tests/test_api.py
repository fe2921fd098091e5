"""Tests for the card HTTP API running against the emulated card."""

import pytest
from fastapi.testclient import TestClient

from mcrw.api.cards import get_reader_manager
from mcrw.main import app
from mcrw.reader.manager import ReaderManager
from mcrw.rfid.emulator import EmulatedCard, EmulatedTransport
from mcrw.rfid.errors import ReaderError

KEY = {"key_type": "a", "key": "FFFFFFFFFFFF"}


class NoReaderTransport(EmulatedTransport):
    def connect(self, timeout=None):
        raise ReaderError("No Card Reader Found.")


def client_for(transport):
    manager = ReaderManager(lambda: transport)
    app.dependency_overrides[get_reader_manager] = lambda: manager
    return TestClient(app)


@pytest.fixture
def client():
    yield client_for(EmulatedTransport(EmulatedCard()))
    app.dependency_overrides.clear()


class TestCardRoutes:
    def test_uid(self, client):
        r = client.post("/api/card/uid", json=KEY)
        assert r.status_code == 200
        assert r.json() == {"uid": "DEADBEEF", "type": "Mifare Classic 1K"}

    def test_write_and_read_block(self, client):
        r = client.post("/api/card/blocks/4/write",
                        json={**KEY, "data": "4578616d706c6520537472696e670000"})
        assert r.status_code == 200
        r = client.post("/api/card/blocks/4/read", json=KEY)
        assert r.json()["hex"] == "4578616D706C6520537472696E670000"
        assert r.json()["text"].startswith("Example String")

    def test_write_text_block(self, client):
        r = client.post("/api/card/blocks/5/write",
                        json={**KEY, "data": "Example String", "encoding": "text"})
        assert r.status_code == 200
        r = client.post("/api/card/blocks/5/read", json=KEY)
        assert r.json()["hex"] == "4578616D706C6520537472696E670000"

    def test_clear_block(self, client):
        client.post("/api/card/blocks/4/write", json={**KEY, "data": "AB" * 16})
        client.post("/api/card/blocks/4/clear", json=KEY)
        r = client.post("/api/card/blocks/4/read", json=KEY)
        assert r.json()["hex"] == "00" * 16

    def test_trailer_guard(self, client):
        r = client.post("/api/card/blocks/3/read", json=KEY)
        assert r.status_code == 400
        assert "read-sector-trailer" in r.json()["detail"]

    def test_wrong_key(self, client):
        r = client.post("/api/card/blocks/4/read",
                        json={"key_type": "b", "key": "000000000000"})
        assert r.status_code == 403
        assert "Security status not satisfied" in r.json()["detail"]

    def test_other_status(self, client):
        r = client.post("/api/card/blocks/0/write", json={**KEY, "data": "00" * 16})
        assert r.status_code == 502
        assert "0x6300" in r.json()["detail"]

    def test_invalid_key_rejected(self, client):
        r = client.post("/api/card/uid", json={"key_type": "a", "key": "FFFF"})
        assert r.status_code == 422

    def test_value_block_flow(self, client):
        assert client.post("/api/card/value-blocks/6/format", json=KEY).status_code == 200
        r = client.post("/api/card/value-blocks/6/increment", json={**KEY, "value": 10})
        assert r.json() == {"block": 6, "value": 10}
        r = client.post("/api/card/value-blocks/6/decrement", json={**KEY, "value": 4})
        assert r.json()["value"] == 6
        r = client.post("/api/card/value-blocks/6/read", json=KEY)
        assert r.json()["value"] == 6

    def test_negative_value_rejected(self, client):
        r = client.post("/api/card/value-blocks/6/increment", json={**KEY, "value": -1})
        assert r.status_code == 422

    def test_sector_write_and_read(self, client):
        r = client.post("/api/card/sectors/1/write",
                        json={**KEY, "data": "Example String", "encoding": "text"})
        assert r.status_code == 200
        r = client.post("/api/card/sectors/1/read", json=KEY)
        assert r.json()["hex"] == "4578616D706C6520537472696E67" + "00" * 34

    def test_sector_too_long(self, client):
        r = client.post("/api/card/sectors/1/write", json={**KEY, "data": "00" * 49})
        assert r.status_code == 400
        assert r.json()["detail"] == "Invalid Data Length: 49"

    def test_clear_sector(self, client):
        client.post("/api/card/sectors/2/write", json={**KEY, "data": "FF" * 48})
        assert client.post("/api/card/sectors/2/clear", json=KEY).status_code == 200
        r = client.post("/api/card/sectors/2/read", json=KEY)
        assert r.json()["hex"] == "00" * 48

    def test_sector_info(self, client):
        r = client.post("/api/card/sectors/0/info", json=KEY)
        info = r.json()["info"]
        assert "<UID - Manufacturer Data>" in info
        assert "<Sector Trailer>" in info

    def test_sector_out_of_range(self, client):
        r = client.post("/api/card/sectors/16/info", json=KEY)
        assert r.status_code == 400

    def test_trailer_read(self, client):
        r = client.post("/api/card/sectors/0/trailer/read", json=KEY)
        body = r.json()
        assert body["key_a"] == "000000000000"
        assert body["access_bits"] == "FF078069"
        assert body["key_b"] == "FFFFFFFFFFFF"

    def test_trailer_write(self, client):
        r = client.post("/api/card/sectors/1/trailer/write",
                        json={**KEY, "data": "FFFFFFFFFFFFFF078069B0B1B2B3B4B5"})
        assert r.status_code == 200
        r = client.post("/api/card/sectors/1/trailer/read",
                        json={"key_type": "b", "key": "B0B1B2B3B4B5"})
        assert r.json()["key_b"] == "B0B1B2B3B4B5"

    def test_card_info(self, client):
        r = client.post("/api/card/info", json=KEY)
        assert "Card UID: DEADBEEF" in r.json()["info"]


class TestReaderErrors:
    def teardown_method(self):
        app.dependency_overrides.clear()

    def test_unsupported_card(self):
        client = client_for(EmulatedTransport(EmulatedCard(atr=b"\x3B\x00")))
        r = client.post("/api/card/uid", json=KEY)
        assert r.status_code == 415

    def test_no_reader(self):
        client = client_for(NoReaderTransport())
        r = client.post("/api/card/uid", json=KEY)
        assert r.status_code == 503

    def test_status(self):
        client = client_for(EmulatedTransport())
        r = client.get("/api/reader/status")
        assert r.json() == {"reader": "Emulated PC/SC Reader", "simulated": True, "busy": False}
