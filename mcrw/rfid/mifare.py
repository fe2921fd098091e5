"""
MIFARE Classic 1K/4K structure definitions.

A MIFARE Classic tag is split into 16-byte blocks grouped into sectors:
- Sectors 0-31 have 4 blocks each (blocks 0-127)
- Sectors 32-39 (4K only) have 16 blocks each (blocks 128-255)
- Block 0: manufacturer data (read-only, contains UID)
- The last block of every sector is the sector trailer (Key A + access bits + Key B)

The card type is read from the ATR the PC/SC reader builds for the tag:
the two bytes at hex offset 26-30 carry the PC/SC card name code.
"""

from dataclasses import dataclass

from .errors import CardTypeError

# Tag geometry
BYTES_PER_BLOCK = 16
SMALL_SECTORS = 32
SMALL_SECTOR_BLOCKS = 4
LARGE_SECTOR_BLOCKS = 16
SMALL_SECTORS_BLOCKS = SMALL_SECTORS * SMALL_SECTOR_BLOCKS  # 128

# Sector trailer layout within a 16-byte block
KEY_A_OFFSET = 0
KEY_A_LENGTH = 6
ACCESS_BITS_OFFSET = 6
ACCESS_BITS_LENGTH = 4
KEY_B_OFFSET = 10
KEY_B_LENGTH = 6
KEY_LENGTH = 6

# Transport configuration of a blank tag
DEFAULT_KEY = bytes([0xFF] * KEY_LENGTH)
DEFAULT_ACCESS_BITS = bytes.fromhex("FF078069")

# ATR card name codes (PC/SC part 3)
ATR_TYPE_START = 26
ATR_TYPE_END = 30


@dataclass(frozen=True)
class Sector:
    """Physical block range of one sector."""
    number: int
    start_block: int
    blocks_number: int

    @property
    def data_blocks_number(self) -> int:
        return self.blocks_number - 1

    @property
    def trailer_block(self) -> int:
        return self.start_block + self.blocks_number - 1

    @property
    def data_blocks(self) -> list[int]:
        return [self.start_block + i for i in range(self.data_blocks_number)]

    @property
    def blocks(self) -> list[int]:
        return [self.start_block + i for i in range(self.blocks_number)]

    @property
    def data_bytes(self) -> int:
        return self.data_blocks_number * BYTES_PER_BLOCK


@dataclass(frozen=True)
class CardProfile:
    """Capacity of the connected tag, derived once from its ATR."""
    type_code: str
    type_name: str
    blocks_number: int
    sectors_number: int


CARD_PROFILES = {
    "0001": CardProfile("0001", "Mifare Classic 1K", 64, 16),
    "0002": CardProfile("0002", "Mifare Classic 4K", 256, 40),
}


def resolve_sector(sector: int) -> Sector:
    """Return the block range for a sector number."""
    if sector < SMALL_SECTORS:
        return Sector(sector, sector * SMALL_SECTOR_BLOCKS, SMALL_SECTOR_BLOCKS)
    start = SMALL_SECTORS_BLOCKS + (sector - SMALL_SECTORS) * LARGE_SECTOR_BLOCKS
    return Sector(sector, start, LARGE_SECTOR_BLOCKS)


def block_to_sector(block: int) -> int:
    """Return the sector number for a given block."""
    if block < SMALL_SECTORS_BLOCKS:
        return block // SMALL_SECTOR_BLOCKS
    return SMALL_SECTORS + (block - SMALL_SECTORS_BLOCKS) // LARGE_SECTOR_BLOCKS


def is_sector_trailer(block: int) -> bool:
    """Check if a block number is a sector trailer."""
    if block < SMALL_SECTORS_BLOCKS:
        return (block + 1) % SMALL_SECTOR_BLOCKS == 0
    return (block + 1) % LARGE_SECTOR_BLOCKS == 0


def sector_trailer_block(sector: int) -> int:
    """Return the sector trailer block number for a given sector."""
    return resolve_sector(sector).trailer_block


def data_blocks_for_sector(sector: int) -> list[int]:
    """Return the data block numbers (non-trailer) for a given sector."""
    return resolve_sector(sector).data_blocks


def profile_from_atr(atr: bytes) -> CardProfile:
    """
    Identify the card from its ATR.

    Raises CardTypeError when the ATR is too short or the card name code
    is not a MIFARE Classic 1K/4K.
    """
    atr_hex = bytes(atr).hex().upper()
    if len(atr_hex) < ATR_TYPE_END:
        raise CardTypeError("Unknown Card Type.")
    type_code = atr_hex[ATR_TYPE_START:ATR_TYPE_END]
    profile = CARD_PROFILES.get(type_code)
    if profile is None:
        raise CardTypeError(f"Unsupported Card Type: {type_code}")
    return profile


def build_sector_trailer(key_a: bytes = DEFAULT_KEY,
                         access_bits: bytes = DEFAULT_ACCESS_BITS,
                         key_b: bytes = DEFAULT_KEY) -> bytes:
    """Assemble a 16-byte sector trailer block."""
    if len(key_a) != KEY_A_LENGTH or len(key_b) != KEY_B_LENGTH:
        raise ValueError(f"Keys must be {KEY_LENGTH} bytes")
    if len(access_bits) != ACCESS_BITS_LENGTH:
        raise ValueError(f"Access bits must be {ACCESS_BITS_LENGTH} bytes")
    return bytes(key_a) + bytes(access_bits) + bytes(key_b)


def parse_sector_trailer(data: bytes) -> dict:
    """
    Parse a 16-byte sector trailer block.

    Returns dict with key_a, access_bits, and key_b as bytes.
    """
    if len(data) != BYTES_PER_BLOCK:
        raise ValueError(f"Sector trailer must be {BYTES_PER_BLOCK} bytes, got {len(data)}")
    return {
        "key_a": data[KEY_A_OFFSET:KEY_A_OFFSET + KEY_A_LENGTH],
        "access_bits": data[ACCESS_BITS_OFFSET:ACCESS_BITS_OFFSET + ACCESS_BITS_LENGTH],
        "key_b": data[KEY_B_OFFSET:KEY_B_OFFSET + KEY_B_LENGTH],
    }
