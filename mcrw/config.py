"""Application configuration."""

import os

# PC/SC reader: list index ("0", "1", ...) or a fragment of the reader name
READER = os.getenv("MCRW_READER", "0")

# Seconds to wait for a card; empty waits forever
_card_timeout = os.getenv("MCRW_CARD_TIMEOUT", "")
CARD_TIMEOUT = float(_card_timeout) if _card_timeout else None

# Use the in-memory card instead of a reader
SIMULATE = os.getenv("MCRW_SIMULATE", "").lower() in ("1", "true", "yes")
SIMULATED_CARD = os.getenv("MCRW_SIMULATED_CARD", "1K").upper()

LOG_LEVEL = os.getenv("MCRW_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

