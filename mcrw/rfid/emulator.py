"""
In-memory MIFARE Classic tag behind a PC/SC reader.

Answers the same pseudo-APDUs as a real reader so the whole stack can run
without hardware: used by the test-suite and by the simulation mode of the
CLI and HTTP API (MCRW_SIMULATE=1).

Behaviour modelled after a real 1K/4K tag:
- Block 0 (UID + BCC + manufacturer data) is read-only.
- Every access needs the last loaded key to match the sector trailer's
  Key A or Key B for the slot it was loaded in, otherwise 0x6982.
- Key A always reads back as zeros from a sector trailer.
- Value commands only work on well-formed value blocks.
"""

import logging
import struct
from typing import Optional

from .apdu import (
    CLASS, GET_UID, LOAD_KEY, READ_BLOCK, VALUE_BLOCK_COMMAND, WRITE_BLOCK,
    KeyType, ValueOperation,
)
from .errors import ReaderError
from .mifare import (
    BYTES_PER_BLOCK, CARD_PROFILES, KEY_LENGTH, block_to_sector,
    build_sector_trailer, is_sector_trailer, parse_sector_trailer, resolve_sector,
)
from .transport import CardTransport
from .value_block import decode_address, decode_value, encode_value_block, is_value_block

logger = logging.getLogger(__name__)

SW_OK = (0x90, 0x00)
SW_WRONG_LENGTH = (0x67, 0x00)
SW_SECURITY = (0x69, 0x82)
SW_NOT_FOUND = (0x6A, 0x82)
SW_BAD_INS = (0x6D, 0x00)
SW_BAD_CLASS = (0x6E, 0x00)
SW_FAILED = (0x63, 0x00)

DEFAULT_UID = bytes.fromhex("DEADBEEF")
MANUFACTURER_DATA = bytes.fromhex("08040062636465666768696A")


def build_atr(type_code: str) -> bytes:
    """PC/SC storage card ATR carrying the given card name code."""
    body = bytes.fromhex("8001804F0CA00000030603" + type_code + "00000000")
    checksum = 0
    for b in body:
        checksum ^= b
    return bytes([0x3B, 0x8F]) + body + bytes([checksum ^ 0x8F])


def wrap_int32(value: int) -> int:
    return struct.unpack("<i", struct.pack("<I", value & 0xFFFFFFFF))[0]


class EmulatedCard:
    """Memory and identity of one simulated tag."""

    def __init__(self, type_code: str = "0001", uid: bytes = DEFAULT_UID,
                 atr: Optional[bytes] = None):
        profile = CARD_PROFILES.get(type_code)
        blocks_number = profile.blocks_number if profile else 64
        self.uid = uid
        self.atr = atr if atr is not None else build_atr(type_code)
        self.blocks = [bytes(BYTES_PER_BLOCK) for _ in range(blocks_number)]

        bcc = 0
        for b in uid[:4]:
            bcc ^= b
        self.blocks[0] = (uid[:4] + bytes([bcc]) + MANUFACTURER_DATA)[:BYTES_PER_BLOCK]
        for block in range(blocks_number):
            if is_sector_trailer(block):
                self.blocks[block] = build_sector_trailer()

    @property
    def blocks_number(self) -> int:
        return len(self.blocks)


class EmulatedTransport(CardTransport):
    """CardTransport backed by an EmulatedCard; records every APDU it gets."""

    def __init__(self, card: Optional[EmulatedCard] = None, name: str = "Emulated PC/SC Reader"):
        self.card = card or EmulatedCard()
        self._name = name
        self.connected = False
        self.history: list[list[int]] = []
        self._loaded_key: Optional[tuple[KeyType, bytes]] = None

    @property
    def name(self) -> str:
        return self._name

    def connect(self, timeout: Optional[float] = None) -> None:
        self.connected = True
        self._loaded_key = None
        logger.debug("Emulated card connected")

    def get_atr(self) -> bytes:
        return self.card.atr

    def disconnect(self) -> None:
        self.connected = False
        self._loaded_key = None

    def transmit(self, apdu: list[int]) -> tuple[list[int], int, int]:
        if not self.connected:
            raise ReaderError("No card connected.")
        self.history.append(list(apdu))
        data, (sw1, sw2) = self._dispatch(list(apdu))
        return list(data), sw1, sw2

    def _dispatch(self, apdu: list[int]) -> tuple[bytes, tuple[int, int]]:
        if len(apdu) < 5:
            return b"", SW_WRONG_LENGTH
        cla, ins, _p1, p2, lc = apdu[:5]
        body = bytes(apdu[5:])
        if cla != CLASS:
            return b"", SW_BAD_CLASS

        if ins == GET_UID:
            return self.card.uid, SW_OK
        if ins == LOAD_KEY:
            return self._load_key(p2, body, lc)
        if ins == READ_BLOCK:
            return self._read(p2)
        if ins == WRITE_BLOCK:
            return self._write(p2, body, lc)
        if ins == VALUE_BLOCK_COMMAND:
            return self._value(p2, body, lc)
        return b"", SW_BAD_INS

    def _load_key(self, slot: int, key: bytes, lc: int) -> tuple[bytes, tuple[int, int]]:
        if lc != KEY_LENGTH or len(key) != KEY_LENGTH:
            return b"", SW_WRONG_LENGTH
        try:
            key_type = KeyType(slot)
        except ValueError:
            return b"", SW_NOT_FOUND
        self._loaded_key = (key_type, key)
        return b"", SW_OK

    def _authenticated(self, block: int) -> bool:
        if self._loaded_key is None:
            return False
        key_type, key = self._loaded_key
        trailer = parse_sector_trailer(
            self.card.blocks[resolve_sector(block_to_sector(block)).trailer_block])
        expected = trailer["key_a"] if key_type == KeyType.A else trailer["key_b"]
        return key == expected

    def _check_access(self, block: int) -> Optional[tuple[int, int]]:
        if not 0 <= block < self.card.blocks_number:
            return SW_NOT_FOUND
        if not self._authenticated(block):
            return SW_SECURITY
        return None

    def _read(self, block: int) -> tuple[bytes, tuple[int, int]]:
        error = self._check_access(block)
        if error:
            return b"", error
        data = self.card.blocks[block]
        if is_sector_trailer(block):
            data = bytes(KEY_LENGTH) + data[KEY_LENGTH:]
        return data, SW_OK

    def _write(self, block: int, data: bytes, lc: int) -> tuple[bytes, tuple[int, int]]:
        if lc != BYTES_PER_BLOCK or len(data) != BYTES_PER_BLOCK:
            return b"", SW_WRONG_LENGTH
        error = self._check_access(block)
        if error:
            return b"", error
        if block == 0:
            return b"", SW_FAILED
        self.card.blocks[block] = data
        return b"", SW_OK

    def _value(self, block: int, body: bytes, lc: int) -> tuple[bytes, tuple[int, int]]:
        if lc != 6 or len(body) != 6:
            return b"", SW_WRONG_LENGTH
        error = self._check_access(block)
        if error:
            return b"", error
        current = self.card.blocks[block]
        if block == 0 or is_sector_trailer(block) or not is_value_block(current):
            return b"", SW_FAILED

        operation, operand = body[0], struct.unpack("<i", body[2:6])[0]
        value = decode_value(current)
        if operation == ValueOperation.INCREMENT:
            value = wrap_int32(value + operand)
        elif operation == ValueOperation.DECREMENT:
            value = wrap_int32(value - operand)
        else:
            return b"", SW_BAD_INS
        self.card.blocks[block] = encode_value_block(value, decode_address(current))
        return b"", SW_OK
