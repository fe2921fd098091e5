"""
Block, sector and value-block operations on a connected MIFARE Classic tag.

Plain block access never touches a sector trailer; trailers are only read
and written through the *_sector_trailer operations. Every block and sector
number is checked against the card profile before anything is sent.
"""

import logging
from typing import Union

from .apdu import KeyType, ValueOperation
from .codec import (
    decode_hex, decode_text, encode_hex, encode_text, printable_text, split_blocks,
)
from .errors import CardUsageError, MifareClassicError, ReaderError
from .mifare import BYTES_PER_BLOCK, Sector, is_sector_trailer, resolve_sector
from .session import CardSession
from .value_block import FORMAT_VALUE_BLOCK, INT32_MAX, decode_value

logger = logging.getLogger(__name__)

EMPTY_BLOCK = bytes(BYTES_PER_BLOCK)


class MifareClassicReaderWriter:
    """Reads and writes a MIFARE Classic 1K/4K tag over a CardSession."""

    def __init__(self, session: CardSession):
        self.session = session

    @property
    def protocol(self):
        return self.session.protocol

    @property
    def profile(self):
        return self.session.profile

    # ──────────────────────────────────────────────
    # Validation
    # ──────────────────────────────────────────────

    def _check_block(self, block: int) -> None:
        if not 0 <= block < self.profile.blocks_number:
            raise CardUsageError(f"Invalid Block: {block}")

    def _sector(self, sector: Union[int, Sector]) -> Sector:
        number = sector.number if isinstance(sector, Sector) else sector
        if not 0 <= number < self.profile.sectors_number:
            raise CardUsageError(f"Invalid Sector: {number}")
        return resolve_sector(number)

    # ──────────────────────────────────────────────
    # Card
    # ──────────────────────────────────────────────

    def get_uid(self) -> bytes:
        return self.protocol.get_uid()

    def get_uid_hex(self) -> str:
        return encode_hex(self.get_uid())

    def load_key(self, key_type: Union[KeyType, int, str], key: Union[bytes, str]) -> None:
        """Load Key A or Key B into the reader for the sectors accessed next."""
        key_type = KeyType.parse(key_type)
        if isinstance(key, str):
            if len(key) != 12:
                raise CardUsageError(f"Invalid Key Length: {len(key)}")
            key = decode_hex(key)
        self.protocol.load_key(key_type, bytes(key))
        logger.debug(f"Loaded key {key_type.name}")

    # ──────────────────────────────────────────────
    # Blocks
    # ──────────────────────────────────────────────

    def read_block(self, block: int, allow_trailer: bool = False) -> bytes:
        self._check_block(block)
        if not allow_trailer and is_sector_trailer(block):
            raise CardUsageError(
                'Sector trailer must be read with the "read-sector-trailer" action.')
        return self.protocol.read_block(block)

    def read_block_hex(self, block: int) -> str:
        return encode_hex(self.read_block(block))

    def read_block_text(self, block: int) -> str:
        return decode_text(self.read_block(block))

    def write_block(self, block: int, data: bytes, allow_trailer: bool = False) -> None:
        self._check_block(block)
        if not allow_trailer and is_sector_trailer(block):
            raise CardUsageError(
                'Sector trailer must be written with the "write-sector-trailer" action.')
        if len(data) != BYTES_PER_BLOCK:
            raise CardUsageError(f"Invalid Data Length: {len(data)}")
        self.protocol.write_block(block, bytes(data))

    def write_block_hex(self, block: int, data: str) -> None:
        self.write_block(block, decode_hex(data))

    def write_block_text(self, block: int, data: str) -> None:
        self.write_block(block, encode_text(data, BYTES_PER_BLOCK))

    def clear_block(self, block: int) -> None:
        self.write_block(block, EMPTY_BLOCK)

    # ──────────────────────────────────────────────
    # Value blocks
    # ──────────────────────────────────────────────

    def read_value_block(self, block: int) -> int:
        return decode_value(self.read_block(block))

    def format_value_block(self, block: int) -> None:
        """Turn a data block into a value block holding 0."""
        self.write_block(block, FORMAT_VALUE_BLOCK)

    def increment_value_block(self, block: int, value: int) -> None:
        self._value_block_command(ValueOperation.INCREMENT, block, value)

    def decrement_value_block(self, block: int, value: int) -> None:
        self._value_block_command(ValueOperation.DECREMENT, block, value)

    def _value_block_command(self, operation: ValueOperation, block: int, value: int) -> None:
        self._check_block(block)
        # The direction is carried by the command, the operand is a magnitude
        if not 0 <= value <= INT32_MAX:
            raise CardUsageError(f"Invalid Value: {value}")
        self.protocol.value_block(operation, block, value)

    # ──────────────────────────────────────────────
    # Sectors
    # ──────────────────────────────────────────────

    def read_sector(self, sector: Union[int, Sector]) -> bytes:
        """Read every data block of a sector, trailer excluded."""
        sector = self._sector(sector)
        return b"".join(self.read_block(block) for block in sector.data_blocks)

    def read_sector_hex(self, sector: Union[int, Sector]) -> str:
        return encode_hex(self.read_sector(sector))

    def read_sector_text(self, sector: Union[int, Sector]) -> str:
        return decode_text(self.read_sector(sector))

    def write_sector(self, sector: Union[int, Sector], data: bytes) -> None:
        """
        Write data across the sector's data blocks.

        Data shorter than the sector is padded with zero bytes; longer data
        is rejected before anything is written.
        """
        sector = self._sector(sector)
        if len(data) > sector.data_bytes:
            raise CardUsageError(f"Invalid Data Length: {len(data)}")
        padded = bytes(data).ljust(sector.data_bytes, b"\x00")
        for block, chunk in zip(sector.data_blocks, split_blocks(padded)):
            self.write_block(block, chunk)

    def write_sector_hex(self, sector: Union[int, Sector], data: str) -> None:
        self.write_sector(sector, decode_hex(data))

    def write_sector_text(self, sector: Union[int, Sector], data: str) -> None:
        self.write_sector(sector, encode_text(data))

    def clear_sector(self, sector: Union[int, Sector]) -> None:
        sector = self._sector(sector)
        for block in sector.data_blocks:
            self.clear_block(block)

    # ──────────────────────────────────────────────
    # Sector trailers
    # ──────────────────────────────────────────────

    def read_sector_trailer(self, sector: Union[int, Sector]) -> bytes:
        sector = self._sector(sector)
        return self.read_block(sector.trailer_block, allow_trailer=True)

    def read_sector_trailer_hex(self, sector: Union[int, Sector]) -> str:
        return encode_hex(self.read_sector_trailer(sector))

    def write_sector_trailer(self, sector: Union[int, Sector], data: Union[bytes, str]) -> None:
        sector = self._sector(sector)
        if isinstance(data, str):
            data = decode_hex(data)
        logger.info(f"Writing sector trailer of sector {sector.number}")
        self.write_block(sector.trailer_block, data, allow_trailer=True)

    # ──────────────────────────────────────────────
    # Reports
    # ──────────────────────────────────────────────

    def read_sector_info(self, sector: Union[int, Sector]) -> str:
        """
        Dump every block of a sector, trailer included, one line per block.

        A block that cannot be read is reported inline as "Error: ..." so
        the rest of the sector is still dumped.
        """
        sector = self._sector(sector)
        digits = len(str(self.profile.blocks_number))
        lines = [f"Sector {sector.number}:"]

        for index, block in enumerate(sector.blocks):
            line = f"{block:>{digits}}:"
            try:
                data = self.read_block(block, allow_trailer=True)
            except ReaderError:
                raise
            except MifareClassicError as e:
                logger.debug(f"Block {block} unreadable: {e}")
                lines.append(f"{line}Error: {e}")
                continue

            if block == 0:
                note = "<UID - Manufacturer Data>"
            elif block == sector.trailer_block:
                note = "<Sector Trailer>"
            else:
                note = printable_text(data)
            lines.append(f"{line}{encode_hex(data)} - {note}")

        return "\n".join(lines) + "\n"

    def read_card_info(self) -> str:
        """Reader, card identification and a dump of every sector."""
        profile = self.profile
        parts = [
            f"Reader: {self.session.transport.name}\n",
            f"Card ATR: {self.session.atr_hex}\n",
            f"Card Type: {profile.type_name}\n",
            f"Card UID: {self.get_uid_hex()}\n",
            "Card Data:\n",
        ]
        for sector in range(profile.sectors_number):
            parts.append(self.read_sector_info(sector) + "\n")
        return "".join(parts)
