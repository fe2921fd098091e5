"""API routes for card operations: blocks, sectors, value blocks and trailers."""

import logging
from contextlib import contextmanager
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from mcrw.reader.manager import ReaderManager, reader_manager
from mcrw.rfid.codec import decode_text, encode_hex
from mcrw.rfid.errors import (
    CardStatusError, CardTypeError, CardUsageError, MifareClassicError, ReaderError,
)
from mcrw.rfid.mifare import parse_sector_trailer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/card", tags=["card"])
status_router = APIRouter(tags=["reader"])


def get_reader_manager() -> ReaderManager:
    return reader_manager


# ──────────────────────────────────────────────
# Request models
# ──────────────────────────────────────────────

class KeyRequest(BaseModel):
    key_type: Literal["a", "b", "A", "B"] = "a"
    key: str = Field("FFFFFFFFFFFF", min_length=12, max_length=12)  # 6-byte hex key


class WriteRequest(KeyRequest):
    data: str
    encoding: Literal["hex", "text"] = "hex"


class TrailerWriteRequest(KeyRequest):
    data: str  # 32 hex chars: Key A + access bits + Key B


class ValueRequest(KeyRequest):
    value: int = Field(..., ge=0)


# ──────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────

@contextmanager
def card_errors():
    """Translate card failures into HTTP errors."""
    try:
        yield
    except CardUsageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CardTypeError as e:
        raise HTTPException(status_code=415, detail=str(e))
    except CardStatusError as e:
        code = 403 if e.status == 0x6982 else 502
        raise HTTPException(status_code=code, detail=str(e))
    except ReaderError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except MifareClassicError as e:
        raise HTTPException(status_code=500, detail=str(e))


def trailer_dict(data: bytes) -> dict:
    fields = parse_sector_trailer(data)
    return {
        "hex": encode_hex(data),
        "key_a": encode_hex(fields["key_a"]),
        "access_bits": encode_hex(fields["access_bits"]),
        "key_b": encode_hex(fields["key_b"]),
    }


# ──────────────────────────────────────────────
# Routes
# ──────────────────────────────────────────────

@router.post("/uid")
def read_uid(req: KeyRequest, manager: ReaderManager = Depends(get_reader_manager)):
    """Read the card UID."""
    with card_errors(), manager.open(req.key_type, req.key) as device:
        return {"uid": device.get_uid_hex(), "type": device.profile.type_name}


@router.post("/info")
def read_card_info(req: KeyRequest, manager: ReaderManager = Depends(get_reader_manager)):
    """Dump every sector of the card as a text report."""
    with card_errors(), manager.open(req.key_type, req.key) as device:
        return {"info": device.read_card_info()}


@router.post("/blocks/{block}/read")
def read_block(block: int, req: KeyRequest,
               manager: ReaderManager = Depends(get_reader_manager)):
    with card_errors(), manager.open(req.key_type, req.key) as device:
        data = device.read_block(block)
        return {"block": block, "hex": encode_hex(data), "text": decode_text(data)}


@router.post("/blocks/{block}/write")
def write_block(block: int, req: WriteRequest,
                manager: ReaderManager = Depends(get_reader_manager)):
    with card_errors(), manager.open(req.key_type, req.key) as device:
        if req.encoding == "text":
            device.write_block_text(block, req.data)
        else:
            device.write_block_hex(block, req.data)
        logger.info(f"Block {block} written")
        return {"block": block, "written": True}


@router.post("/blocks/{block}/clear")
def clear_block(block: int, req: KeyRequest,
                manager: ReaderManager = Depends(get_reader_manager)):
    with card_errors(), manager.open(req.key_type, req.key) as device:
        device.clear_block(block)
        return {"block": block, "cleared": True}


@router.post("/value-blocks/{block}/read")
def read_value_block(block: int, req: KeyRequest,
                     manager: ReaderManager = Depends(get_reader_manager)):
    with card_errors(), manager.open(req.key_type, req.key) as device:
        return {"block": block, "value": device.read_value_block(block)}


@router.post("/value-blocks/{block}/format")
def format_value_block(block: int, req: KeyRequest,
                       manager: ReaderManager = Depends(get_reader_manager)):
    with card_errors(), manager.open(req.key_type, req.key) as device:
        device.format_value_block(block)
        return {"block": block, "value": 0}


@router.post("/value-blocks/{block}/increment")
def increment_value_block(block: int, req: ValueRequest,
                          manager: ReaderManager = Depends(get_reader_manager)):
    with card_errors(), manager.open(req.key_type, req.key) as device:
        device.increment_value_block(block, req.value)
        return {"block": block, "value": device.read_value_block(block)}


@router.post("/value-blocks/{block}/decrement")
def decrement_value_block(block: int, req: ValueRequest,
                          manager: ReaderManager = Depends(get_reader_manager)):
    with card_errors(), manager.open(req.key_type, req.key) as device:
        device.decrement_value_block(block, req.value)
        return {"block": block, "value": device.read_value_block(block)}


@router.post("/sectors/{sector}/read")
def read_sector(sector: int, req: KeyRequest,
                manager: ReaderManager = Depends(get_reader_manager)):
    with card_errors(), manager.open(req.key_type, req.key) as device:
        data = device.read_sector(sector)
        return {"sector": sector, "hex": encode_hex(data),
                "text": decode_text(data)}


@router.post("/sectors/{sector}/info")
def read_sector_info(sector: int, req: KeyRequest,
                     manager: ReaderManager = Depends(get_reader_manager)):
    with card_errors(), manager.open(req.key_type, req.key) as device:
        return {"sector": sector, "info": device.read_sector_info(sector)}


@router.post("/sectors/{sector}/write")
def write_sector(sector: int, req: WriteRequest,
                 manager: ReaderManager = Depends(get_reader_manager)):
    with card_errors(), manager.open(req.key_type, req.key) as device:
        if req.encoding == "text":
            device.write_sector_text(sector, req.data)
        else:
            device.write_sector_hex(sector, req.data)
        logger.info(f"Sector {sector} written")
        return {"sector": sector, "written": True}


@router.post("/sectors/{sector}/clear")
def clear_sector(sector: int, req: KeyRequest,
                 manager: ReaderManager = Depends(get_reader_manager)):
    with card_errors(), manager.open(req.key_type, req.key) as device:
        device.clear_sector(sector)
        return {"sector": sector, "cleared": True}


@router.post("/sectors/{sector}/trailer/read")
def read_sector_trailer(sector: int, req: KeyRequest,
                        manager: ReaderManager = Depends(get_reader_manager)):
    with card_errors(), manager.open(req.key_type, req.key) as device:
        return {"sector": sector, **trailer_dict(device.read_sector_trailer(sector))}


@router.post("/sectors/{sector}/trailer/write")
def write_sector_trailer(sector: int, req: TrailerWriteRequest,
                         manager: ReaderManager = Depends(get_reader_manager)):
    with card_errors(), manager.open(req.key_type, req.key) as device:
        device.write_sector_trailer(sector, req.data)
        return {"sector": sector, "written": True}


@status_router.get("/api/reader/status")
def reader_status(manager: ReaderManager = Depends(get_reader_manager)):
    """Report which reader is configured and whether it is busy."""
    with card_errors():
        return manager.status
