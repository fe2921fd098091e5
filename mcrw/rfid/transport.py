"""
Card transports: the byte-level channel between the protocol layer and a tag.

A transport connects to one reader, exposes the card's ATR, and exchanges a
single command APDU for (data, sw1, sw2). PCSCTransport drives a physical
PC/SC reader through pyscard; mcrw.rfid.emulator provides an in-memory card.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from smartcard.CardRequest import CardRequest
from smartcard.CardType import AnyCardType
from smartcard.Exceptions import (
    CardConnectionException, CardRequestTimeoutException, NoCardException,
)
from smartcard.System import readers

from .errors import ReaderError

logger = logging.getLogger(__name__)


class CardTransport(ABC):
    """One half-duplex channel to a card: one command outstanding at a time."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def connect(self, timeout: Optional[float] = None) -> None:
        """Block until a card is present (or timeout seconds pass) and open it."""

    @abstractmethod
    def get_atr(self) -> bytes:
        ...

    @abstractmethod
    def transmit(self, apdu: list[int]) -> tuple[list[int], int, int]:
        ...

    @abstractmethod
    def disconnect(self) -> None:
        ...


def list_readers() -> list:
    """Return available PC/SC readers."""
    try:
        return readers()
    except Exception as e:
        logger.error(f"Error listing readers: {e}")
        return []


def select_reader(selector: str = "0"):
    """
    Pick a reader by list index ("0", "1", ...) or by a fragment of its name.

    Raises ReaderError when nothing matches.
    """
    available = list_readers()
    if not available:
        raise ReaderError("No Card Reader Found.")
    if selector.isdigit():
        index = int(selector)
        if index < len(available):
            return available[index]
    else:
        for reader in available:
            if selector.lower() in str(reader).lower():
                return reader
    raise ReaderError(f"Card Reader Not Found: {selector}")


class PCSCTransport(CardTransport):
    """Physical PC/SC reader accessed through pyscard."""

    def __init__(self, selector: str = "0"):
        self.selector = selector
        self._reader = None
        self._connection = None

    @property
    def name(self) -> str:
        return str(self._reader) if self._reader is not None else self.selector

    def connect(self, timeout: Optional[float] = None) -> None:
        self._reader = select_reader(self.selector)
        logger.info(f"Waiting for card on {self._reader}")
        request = CardRequest(timeout=timeout, readers=[self._reader], cardType=AnyCardType())
        try:
            service = request.waitforcard()
            service.connection.connect()
        except CardRequestTimeoutException:
            raise ReaderError("Timed out waiting for a card.") from None
        except (NoCardException, CardConnectionException) as e:
            raise ReaderError(f"Card connection failed: {e}") from e
        self._connection = service.connection
        logger.info(f"Card connected on {self._reader}")

    def get_atr(self) -> bytes:
        if self._connection is None:
            raise ReaderError("No card connected.")
        atr = self._connection.getATR()
        return bytes(atr) if atr else b""

    def transmit(self, apdu: list[int]) -> tuple[list[int], int, int]:
        if self._connection is None:
            raise ReaderError("No card connected.")
        try:
            return self._connection.transmit(apdu)
        except CardConnectionException as e:
            raise ReaderError(f"Card transmission failed: {e}") from e

    def disconnect(self) -> None:
        if self._connection is None:
            return
        try:
            self._connection.disconnect()
        except CardConnectionException as e:
            logger.warning(f"Card disconnect failed: {e}")
        finally:
            self._connection = None
            logger.info("Card disconnected")
