"""
MIFARE Classic value block layout.

A value block stores a signed 32-bit counter three times plus its address
byte four times, so the card can detect corruption:

    | [0:4[ | [4:8[  | [8:12[ | 12 | 13 | 14 | 15 |
    | VALUE | ~VALUE | VALUE  |  A | ~A |  A | ~A |

All values are Little Endian.
"""

import struct

from .codec import concat
from .mifare import BYTES_PER_BLOCK

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1

# value=0, address=0
FORMAT_VALUE_BLOCK = bytes.fromhex("00000000FFFFFFFF0000000000FF00FF")


def pack_value(value: int) -> bytes:
    """Pack a signed 32-bit value as 4 little-endian bytes."""
    if not INT32_MIN <= value <= INT32_MAX:
        raise ValueError(f"Value out of 32-bit range: {value}")
    return struct.pack("<i", value)


def encode_value_block(value: int, address: int = 0) -> bytes:
    """Build the 16-byte value block for value stored at address."""
    if not 0 <= address <= 0xFF:
        raise ValueError(f"Address must be a single byte, got {address}")
    packed = pack_value(value)
    inverted = bytes(b ^ 0xFF for b in packed)
    inverted_address = address ^ 0xFF
    return concat(packed, inverted, packed,
                  bytes([address, inverted_address, address, inverted_address]))


def decode_value(data: bytes) -> int:
    """Read the value from the first 4 bytes; redundancy is not checked."""
    if len(data) < 4:
        raise ValueError(f"Value block needs at least 4 bytes, got {len(data)}")
    return struct.unpack("<i", bytes(data[0:4]))[0]


def decode_address(data: bytes) -> int:
    if len(data) != BYTES_PER_BLOCK:
        raise ValueError(f"Value block must be {BYTES_PER_BLOCK} bytes, got {len(data)}")
    return data[12]


def is_value_block(data: bytes) -> bool:
    """Check the value and address copies against each other."""
    if len(data) != BYTES_PER_BLOCK:
        return False
    value, inverted, copy = data[0:4], data[4:8], data[8:12]
    if value != copy or any(a ^ b != 0xFF for a, b in zip(value, inverted)):
        return False
    address = data[12]
    return (data[14] == address
            and data[13] == address ^ 0xFF
            and data[15] == address ^ 0xFF)
