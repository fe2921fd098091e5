"""
Byte/text conversions used by the card operations.

Hex strings are emitted uppercase; text is UTF-8.
"""

from typing import Optional

from .errors import CardUsageError
from .mifare import BYTES_PER_BLOCK

REPLACEMENT_CHAR = "�"


def encode_hex(data: bytes) -> str:
    """Return data as an uppercase hex string."""
    return bytes(data).hex().upper()


def decode_hex(hex_string: str) -> bytes:
    """Parse a hex string, ignoring spaces and line breaks."""
    clean = hex_string.replace(" ", "").replace("\n", "").replace("\r", "")
    try:
        return bytes.fromhex(clean)
    except ValueError:
        raise CardUsageError(f"Invalid Hex String: {hex_string}") from None


def concat(*parts: bytes) -> bytes:
    return b"".join(bytes(p) for p in parts)


def encode_text(text: str, size: Optional[int] = None) -> bytes:
    """
    Encode text as UTF-8, zero-padded to size when one is given.

    Raises CardUsageError when the encoded text does not fit.
    """
    data = text.encode("utf-8")
    if size is None:
        return data
    if len(data) > size:
        raise CardUsageError(f"Invalid String Length: {len(data)}")
    return data.ljust(size, b"\x00")


def decode_text(data: bytes) -> str:
    return bytes(data).decode("utf-8", errors="replace")


def printable_text(data: bytes) -> str:
    """Decode data as UTF-8 with every non-printable character shown as a space."""
    text = decode_text(data)
    return "".join(
        " " if ch == REPLACEMENT_CHAR or not ch.isprintable() else ch
        for ch in text
    )


def split_blocks(data: bytes) -> list[bytes]:
    """Split data into 16-byte blocks (the last one may be shorter)."""
    return [data[i:i + BYTES_PER_BLOCK] for i in range(0, len(data), BYTES_PER_BLOCK)]
