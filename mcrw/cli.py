"""
Command-line front end.

Usage:
    mcrw a|b key action block|sector [data|value]
    echo $data | mcrw a|b key action block|sector

Examples:
    mcrw a 08429a71b536 write-block 4 4578616d706c6520537472696e670000
    mcrw b 05c4f163e7d2 write-block-string 5 "Example String"
    mcrw b 05c4f163e7d2 increment-value-block 6 10
"""

import argparse
import logging
import os
import sys
from typing import Optional

from mcrw import config
from mcrw.reader.manager import transport_from_config
from mcrw.rfid.apdu import KeyType
from mcrw.rfid.errors import CardUsageError, MifareClassicError
from mcrw.rfid.reader_writer import MifareClassicReaderWriter
from mcrw.rfid.session import CardSession
from mcrw.rfid.transport import CardTransport

logger = logging.getLogger(__name__)

# action -> (target kind, needs data, handler)
ACTIONS = {
    "read-block": ("block", None, lambda d, n, _: d.read_block_hex(n)),
    "read-block-string": ("block", None, lambda d, n, _: d.read_block_text(n)),
    "write-block": ("block", "data", lambda d, n, v: d.write_block_hex(n, v)),
    "write-block-string": ("block", "data", lambda d, n, v: d.write_block_text(n, v)),
    "clear-block": ("block", None, lambda d, n, _: d.clear_block(n)),

    "format-value-block": ("block", None, lambda d, n, _: d.format_value_block(n)),
    "read-value-block": ("block", None, lambda d, n, _: d.read_value_block(n)),
    "increment-value-block": ("block", "value", lambda d, n, v: d.increment_value_block(n, v)),
    "decrement-value-block": ("block", "value", lambda d, n, v: d.decrement_value_block(n, v)),

    "read-sector": ("sector", None, lambda d, n, _: d.read_sector_hex(n)),
    "read-sector-string": ("sector", None, lambda d, n, _: d.read_sector_text(n)),
    "read-sector-info": ("sector", None, lambda d, n, _: d.read_sector_info(n)),
    "write-sector": ("sector", "data", lambda d, n, v: d.write_sector_hex(n, v)),
    "write-sector-string": ("sector", "data", lambda d, n, v: d.write_sector_text(n, v)),
    "clear-sector": ("sector", None, lambda d, n, _: d.clear_sector(n)),

    "read-sector-trailer": ("sector", None, lambda d, n, _: d.read_sector_trailer_hex(n)),
    "write-sector-trailer": ("sector", "data", lambda d, n, v: d.write_sector_trailer(n, v)),

    "read-card-info": (None, None, lambda d, n, v: d.read_card_info()),
}

# Reports that already end with a newline
RAW_OUTPUT = {"read-sector-info", "read-card-info"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcrw",
        description="Read and write MIFARE Classic 1K/4K tags through a PC/SC reader.",
        epilog="Actions: " + ", ".join(ACTIONS),
    )
    parser.add_argument("key_type", metavar="a|b", help="Key slot used to authenticate")
    parser.add_argument("key", help="6-byte key as 12 hex characters")
    parser.add_argument("action", choices=list(ACTIONS), metavar="action")
    parser.add_argument("target", nargs="?", help="Block or sector number")
    parser.add_argument("data", nargs="?", help="Data or value (read from stdin when omitted)")
    parser.add_argument("--reader", default=config.READER,
                        help="Reader index or name fragment (default: %(default)s)")
    parser.add_argument("--timeout", type=float, default=config.CARD_TIMEOUT,
                        help="Seconds to wait for a card (default: wait forever)")
    parser.add_argument("--simulate", action="store_true", default=config.SIMULATE,
                        help="Use an in-memory card instead of a reader")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log APDU traffic")
    return parser


def read_data(data: Optional[str]) -> str:
    """Return the data argument, or everything on stdin without line breaks."""
    if data is not None:
        return data
    return sys.stdin.read().replace(os.linesep, "").replace("\n", "")


def parse_number(value: Optional[str], what: str) -> int:
    if value is None:
        raise CardUsageError(f"Missing {what}")
    try:
        return int(value)
    except ValueError:
        raise CardUsageError(f"Invalid {what.capitalize()}: {value}") from None


def run(args: argparse.Namespace, transport: Optional[CardTransport] = None) -> Optional[object]:
    """Connect, load the key and run one action; returns what the action produced."""
    key_type = KeyType.parse(args.key_type)
    if len(args.key) != 12:
        raise CardUsageError(f"Invalid Key Length: {len(args.key)}")

    kind, needs, handler = ACTIONS[args.action]
    logger.debug(f"Action {args.action}")
    number = parse_number(args.target, kind) if kind else None
    value = None
    if needs == "data":
        value = read_data(args.data)
    elif needs == "value":
        value = parse_number(args.data, "value")

    if transport is None:
        transport = transport_from_config(simulate=args.simulate, reader=args.reader)
    session = CardSession(transport)
    session.connect(args.timeout)
    try:
        device = MifareClassicReaderWriter(session)
        device.load_key(key_type, args.key)
        return handler(device, number, value)
    finally:
        session.disconnect()


def main(argv: Optional[list[str]] = None, transport: Optional[CardTransport] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.LOG_LEVEL,
        format=config.LOG_FORMAT,
    )
    try:
        result = run(args, transport)
    except MifareClassicError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if result is not None:
        print(result, end="" if args.action in RAW_OUTPUT else "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
