"""
Access to the single card reader shared by the HTTP API.

The channel to a card is half-duplex and stateful (a loaded key applies to
the commands that follow it), so only one request may talk to the reader at
a time. Each request gets its own card session: connect, load the key, run
the operation, disconnect.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Union

from mcrw import config
from mcrw.rfid.apdu import KeyType
from mcrw.rfid.emulator import EmulatedCard, EmulatedTransport
from mcrw.rfid.reader_writer import MifareClassicReaderWriter
from mcrw.rfid.session import CardSession
from mcrw.rfid.transport import CardTransport, PCSCTransport

logger = logging.getLogger(__name__)

SIMULATED_TYPE_CODES = {"1K": "0001", "4K": "0002"}


def transport_from_config(simulate: Optional[bool] = None,
                          reader: Optional[str] = None) -> CardTransport:
    """Build the transport selected by configuration (or the given overrides)."""
    simulate = config.SIMULATE if simulate is None else simulate
    if simulate:
        type_code = SIMULATED_TYPE_CODES.get(config.SIMULATED_CARD, "0001")
        logger.info(f"Using simulated Mifare Classic {config.SIMULATED_CARD} card")
        return EmulatedTransport(EmulatedCard(type_code))
    return PCSCTransport(reader if reader is not None else config.READER)


class ReaderManager:
    """Serialises card sessions on one reader."""

    def __init__(self, transport_factory: Callable[[], CardTransport] = transport_from_config,
                 timeout: Optional[float] = None):
        self._transport_factory = transport_factory
        self._transport: Optional[CardTransport] = None
        self._lock = threading.Lock()
        self.timeout = timeout

    @property
    def transport(self) -> CardTransport:
        if self._transport is None:
            self._transport = self._transport_factory()
        return self._transport

    @property
    def status(self) -> dict:
        return {
            "reader": self.transport.name,
            "simulated": isinstance(self.transport, EmulatedTransport),
            "busy": self._lock.locked(),
        }

    @contextmanager
    def open(self, key_type: Union[KeyType, str], key: Union[bytes, str]) -> Iterator[MifareClassicReaderWriter]:
        """Connect to the card and load a key; yields the reader/writer."""
        with self._lock:
            session = CardSession(self.transport)
            session.connect(self.timeout)
            try:
                device = MifareClassicReaderWriter(session)
                device.load_key(key_type, key)
                yield device
            finally:
                session.disconnect()


# Global singleton
reader_manager = ReaderManager(timeout=config.CARD_TIMEOUT)
