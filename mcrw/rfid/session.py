"""Card session: an open channel to one card plus the profile read from its ATR."""

import logging
from typing import Optional

from .apdu import CardProtocol, CommandSet
from .errors import ReaderError
from .mifare import CardProfile, profile_from_atr
from .transport import CardTransport

logger = logging.getLogger(__name__)


class CardSession:
    """
    Disconnected -> connected (profile known) -> disconnected.

    The profile is set once by connect() and cleared by disconnect(). A card
    type error on connect leaves the session disconnected.
    """

    def __init__(self, transport: CardTransport, command_set: Optional[CommandSet] = None):
        self.transport = transport
        self.protocol = CardProtocol(transport, command_set)
        self.atr: bytes = b""
        self._profile: Optional[CardProfile] = None

    @property
    def is_connected(self) -> bool:
        return self._profile is not None

    @property
    def profile(self) -> CardProfile:
        if self._profile is None:
            raise ReaderError("No card connected.")
        return self._profile

    @property
    def atr_hex(self) -> str:
        return self.atr.hex().upper()

    def connect(self, timeout: Optional[float] = None) -> CardProfile:
        self.transport.connect(timeout)
        try:
            atr = self.transport.get_atr()
            profile = profile_from_atr(atr)
        except Exception:
            self.transport.disconnect()
            raise
        self.atr = atr
        self._profile = profile
        logger.info(f"Connected to {profile.type_name} (ATR {self.atr_hex})")
        return profile

    def disconnect(self) -> None:
        self.transport.disconnect()
        self.atr = b""
        self._profile = None

    def __enter__(self) -> "CardSession":
        if not self.is_connected:
            self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()
