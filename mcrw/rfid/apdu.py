"""
APDU commands for MIFARE Classic tags behind a PC/SC contactless reader.

The reader exposes the tag through the PC/SC part 3 pseudo-APDUs (class 0xFF):

    GET UID           FF CA 00 00 00
    LOAD KEY          FF 82 00 <60|61> 06 <6-byte key>
    READ BINARY       FF B0 00 <block> 10
    UPDATE BINARY     FF D6 00 <block> 10 <16 bytes>
    VALUE BLOCK       FF F0 00 <block> 06 <C1|C0> <block> <LE32 value>

Every exchange answers with a status word; 0x9000 means success.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union

from .errors import CardStatusError, CardUsageError
from .mifare import BYTES_PER_BLOCK, KEY_LENGTH
from .value_block import pack_value

logger = logging.getLogger(__name__)

CLASS = 0xFF
GET_UID = 0xCA
LOAD_KEY = 0x82
READ_BLOCK = 0xB0
WRITE_BLOCK = 0xD6
VALUE_BLOCK_COMMAND = 0xF0
BLOCK_BYTES = 0x10

SW_SUCCESS = 0x9000
SW_SECURITY_STATUS = 0x6982

STATUS_MESSAGES = {
    SW_SECURITY_STATUS: "Security status not satisfied.",
}


class KeyType(IntEnum):
    """Key slot selector sent in P2 of LOAD KEY."""
    A = 0x60
    B = 0x61

    @classmethod
    def parse(cls, value: Union["KeyType", int, str]) -> "KeyType":
        """Accept a KeyType, its byte value, or "a"/"b"."""
        if isinstance(value, str):
            name = value.strip().upper()
            if name in cls.__members__:
                return cls[name]
        elif isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                pass
        raise CardUsageError(f"Invalid Key: {value}")


class ValueOperation(IntEnum):
    DECREMENT = 0xC0
    INCREMENT = 0xC1


@dataclass
class ApduResponse:
    """Outcome of one command exchange: response data plus status word."""
    data: bytes
    sw1: int
    sw2: int

    @property
    def status(self) -> int:
        return (self.sw1 << 8) | self.sw2

    @property
    def ok(self) -> bool:
        return self.status == SW_SUCCESS

    @property
    def message(self) -> str:
        """Human-readable status, e.g. "0x6982 - Security status not satisfied."."""
        text = f"0x{self.status:04x}"
        reason = STATUS_MESSAGES.get(self.status)
        if reason:
            text = f"{text} - {reason}"
        return text

    def raise_for_status(self) -> "ApduResponse":
        if not self.ok:
            raise CardStatusError(self.status, self.message)
        return self


class CommandSet(ABC):
    """Builds the raw command frames for one reader family."""

    @abstractmethod
    def get_uid(self) -> list[int]:
        ...

    @abstractmethod
    def load_key(self, key_type: KeyType, key: bytes) -> list[int]:
        ...

    @abstractmethod
    def read_block(self, block: int) -> list[int]:
        ...

    @abstractmethod
    def write_block(self, block: int, data: bytes) -> list[int]:
        ...

    @abstractmethod
    def value_block(self, operation: ValueOperation, block: int, value: int) -> list[int]:
        ...


class PCSCCommandSet(CommandSet):
    """PC/SC part 3 storage card commands (ACR122U, ACR1252U and friends)."""

    def get_uid(self) -> list[int]:
        # Le=0x00 asks for the full UID (256 in short APDU encoding)
        return [CLASS, GET_UID, 0x00, 0x00, 0x00]

    def load_key(self, key_type: KeyType, key: bytes) -> list[int]:
        return [CLASS, LOAD_KEY, 0x00, int(key_type), len(key)] + list(key)

    def read_block(self, block: int) -> list[int]:
        return [CLASS, READ_BLOCK, 0x00, block, BLOCK_BYTES]

    def write_block(self, block: int, data: bytes) -> list[int]:
        return [CLASS, WRITE_BLOCK, 0x00, block, len(data)] + list(data)

    def value_block(self, operation: ValueOperation, block: int, value: int) -> list[int]:
        payload = [int(operation), block] + list(pack_value(value))
        return [CLASS, VALUE_BLOCK_COMMAND, 0x00, block, len(payload)] + payload


def format_apdu(apdu: list[int]) -> str:
    return " ".join(f"{b:02X}" for b in apdu)


class CardProtocol:
    """
    Sends one command per call through a card transport and checks the status.

    transmit() never raises on a status word; it hands back an ApduResponse.
    The named operations call raise_for_status() and surface CardStatusError
    to the caller without retrying.
    """

    def __init__(self, transport, command_set: Optional[CommandSet] = None):
        self.transport = transport
        self.command_set = command_set or PCSCCommandSet()

    def transmit(self, apdu: list[int]) -> ApduResponse:
        logger.debug(f"> {format_apdu(apdu)}")
        data, sw1, sw2 = self.transport.transmit(apdu)
        response = ApduResponse(bytes(data), sw1, sw2)
        logger.debug(f"< {response.data.hex().upper()} {response.status:04X}")
        return response

    def get_uid(self) -> bytes:
        return self.transmit(self.command_set.get_uid()).raise_for_status().data

    def load_key(self, key_type: KeyType, key: bytes) -> None:
        if len(key) != KEY_LENGTH:
            raise CardUsageError(f"Invalid Key Length: {len(key)}")
        self.transmit(self.command_set.load_key(key_type, key)).raise_for_status()

    def read_block(self, block: int) -> bytes:
        return self.transmit(self.command_set.read_block(block)).raise_for_status().data

    def write_block(self, block: int, data: bytes) -> None:
        if len(data) != BYTES_PER_BLOCK:
            raise CardUsageError(f"Invalid Data Length: {len(data)}")
        self.transmit(self.command_set.write_block(block, data)).raise_for_status()

    def value_block(self, operation: ValueOperation, block: int, value: int) -> None:
        self.transmit(self.command_set.value_block(operation, block, value)).raise_for_status()
