"""Tests for the reader manager and transport selection."""

import pytest
from mcrw.reader.manager import ReaderManager, transport_from_config
from mcrw.rfid import transport as transport_module
from mcrw.rfid.emulator import EmulatedTransport
from mcrw.rfid.errors import CardStatusError, ReaderError
from mcrw.rfid.transport import PCSCTransport, select_reader


class FakeReader:
    def __init__(self, name):
        self.name = name

    def __str__(self):
        return self.name


class TestReaderManager:
    def test_open_loads_key_and_disconnects(self):
        transport = EmulatedTransport()
        manager = ReaderManager(lambda: transport)
        with manager.open("a", "FFFFFFFFFFFF") as device:
            assert transport.connected
            assert manager.status["busy"] is True
            assert device.read_block(1) == bytes(16)
        assert not transport.connected
        assert manager.status["busy"] is False

    def test_disconnects_on_error(self):
        transport = EmulatedTransport()
        manager = ReaderManager(lambda: transport)
        with pytest.raises(CardStatusError):
            with manager.open("a", "000000000000") as device:
                device.read_block(1)
        assert not transport.connected
        assert manager.status["busy"] is False

    def test_memory_survives_sessions(self):
        manager = ReaderManager(EmulatedTransport)
        with manager.open("a", "FFFFFFFFFFFF") as device:
            device.write_block_text(4, "kept")
        with manager.open("a", "FFFFFFFFFFFF") as device:
            assert device.read_block_text(4).rstrip("\x00") == "kept"


class TestTransportFromConfig:
    def test_simulated(self):
        assert isinstance(transport_from_config(simulate=True), EmulatedTransport)

    def test_pcsc(self):
        transport = transport_from_config(simulate=False, reader="ACR122")
        assert isinstance(transport, PCSCTransport)
        assert transport.name == "ACR122"


class TestSelectReader:
    def test_no_readers(self, monkeypatch):
        monkeypatch.setattr(transport_module, "readers", lambda: [])
        with pytest.raises(ReaderError, match="No Card Reader Found"):
            select_reader("0")

    def test_by_index(self, monkeypatch):
        available = [FakeReader("ACS ACR122U 00 00"), FakeReader("ACS ACR1252 01 00")]
        monkeypatch.setattr(transport_module, "readers", lambda: available)
        assert select_reader("1") is available[1]

    def test_by_name(self, monkeypatch):
        available = [FakeReader("ACS ACR122U 00 00"), FakeReader("ACS ACR1252 01 00")]
        monkeypatch.setattr(transport_module, "readers", lambda: available)
        assert select_reader("acr1252") is available[1]

    def test_not_found(self, monkeypatch):
        monkeypatch.setattr(transport_module, "readers", lambda: [FakeReader("ACS ACR122U")])
        with pytest.raises(ReaderError, match="Card Reader Not Found: 3"):
            select_reader("3")

    def test_transmit_without_connection(self):
        with pytest.raises(ReaderError):
            PCSCTransport().transmit([0xFF, 0xCA, 0x00, 0x00, 0x00])
