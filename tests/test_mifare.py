"""Tests for MIFARE Classic sector addressing and card identification."""

import pytest
from mcrw.rfid.errors import CardTypeError
from mcrw.rfid.mifare import (
    resolve_sector, block_to_sector, is_sector_trailer, sector_trailer_block,
    data_blocks_for_sector, parse_sector_trailer, build_sector_trailer,
    profile_from_atr, DEFAULT_KEY, DEFAULT_ACCESS_BITS,
)

# ACR122U answer for a MIFARE Classic 1K
ACR122_1K_ATR = bytes.fromhex("3B8F8001804F0CA000000306030001000000006A")


class TestResolveSector:
    def test_small_sectors(self):
        for n in range(32):
            sector = resolve_sector(n)
            assert sector.start_block == 4 * n
            assert sector.blocks_number == 4
            assert sector.data_blocks_number == 3

    def test_large_sectors(self):
        for n in range(32, 40):
            sector = resolve_sector(n)
            assert sector.start_block == 128 + 16 * (n - 32)
            assert sector.blocks_number == 16
            assert sector.data_blocks_number == 15

    def test_trailer_block(self):
        assert resolve_sector(0).trailer_block == 3
        assert resolve_sector(31).trailer_block == 127
        assert resolve_sector(32).trailer_block == 143
        assert resolve_sector(39).trailer_block == 255

    def test_data_blocks_exclude_trailer(self):
        sector = resolve_sector(1)
        assert sector.data_blocks == [4, 5, 6]
        assert sector.blocks == [4, 5, 6, 7]
        assert sector.trailer_block not in sector.data_blocks
        assert sector.data_bytes == 48

    def test_sector_trailer_block(self):
        assert sector_trailer_block(0) == 3
        assert sector_trailer_block(15) == 63
        assert sector_trailer_block(33) == 159

    def test_data_blocks_for_sector(self):
        assert data_blocks_for_sector(0) == [0, 1, 2]
        assert data_blocks_for_sector(15) == [60, 61, 62]
        assert data_blocks_for_sector(32) == list(range(128, 143))


class TestBlockRole:
    def test_block_to_sector(self):
        assert block_to_sector(0) == 0
        assert block_to_sector(3) == 0
        assert block_to_sector(4) == 1
        assert block_to_sector(127) == 31
        assert block_to_sector(128) == 32
        assert block_to_sector(255) == 39

    def test_is_sector_trailer(self):
        assert is_sector_trailer(3) is True
        assert is_sector_trailer(127) is True
        assert is_sector_trailer(143) is True
        assert is_sector_trailer(0) is False
        # 4-block rule no longer applies above block 128
        assert is_sector_trailer(131) is False

    def test_trailer_matches_addressing(self):
        for block in range(256):
            sector = resolve_sector(block_to_sector(block))
            assert is_sector_trailer(block) == (block == sector.trailer_block)


class TestSectorTrailer:
    def test_parse(self):
        data = bytes(range(16))
        result = parse_sector_trailer(data)
        assert result["key_a"] == bytes([0, 1, 2, 3, 4, 5])
        assert result["access_bits"] == bytes([6, 7, 8, 9])
        assert result["key_b"] == bytes([10, 11, 12, 13, 14, 15])

    def test_invalid_length_raises(self):
        with pytest.raises(ValueError):
            parse_sector_trailer(bytes(10))

    def test_build_default(self):
        trailer = build_sector_trailer()
        assert trailer.hex().upper() == "FFFFFFFFFFFFFF078069FFFFFFFFFFFF"
        fields = parse_sector_trailer(trailer)
        assert fields["key_a"] == DEFAULT_KEY
        assert fields["access_bits"] == DEFAULT_ACCESS_BITS

    def test_build_rejects_short_key(self):
        with pytest.raises(ValueError):
            build_sector_trailer(key_a=bytes(4))


class TestProfileFromAtr:
    def test_mifare_1k(self):
        profile = profile_from_atr(ACR122_1K_ATR)
        assert profile.type_code == "0001"
        assert profile.type_name == "Mifare Classic 1K"
        assert profile.blocks_number == 64
        assert profile.sectors_number == 16

    def test_mifare_4k(self):
        atr = bytes.fromhex("3B8F8001804F0CA0000003060300020000000069")
        profile = profile_from_atr(atr)
        assert profile.type_name == "Mifare Classic 4K"
        assert profile.blocks_number == 256
        assert profile.sectors_number == 40

    def test_short_atr(self):
        with pytest.raises(CardTypeError, match="Unknown Card Type"):
            profile_from_atr(bytes.fromhex("3B8F8001804F0CA0"))

    def test_empty_atr(self):
        with pytest.raises(CardTypeError):
            profile_from_atr(b"")

    def test_unsupported_type(self):
        # Mifare Ultralight
        atr = bytes.fromhex("3B8F8001804F0CA0000003060300030000000068")
        with pytest.raises(CardTypeError, match="Unsupported Card Type: 0003"):
            profile_from_atr(atr)
