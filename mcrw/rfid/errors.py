"""Exception hierarchy shared by the card layers."""


class MifareClassicError(Exception):
    """Base class for every failure raised while talking to a card."""


class CardTypeError(MifareClassicError):
    """The ATR is missing, too short, or names an unsupported card type."""


class CardStatusError(MifareClassicError):
    """A command returned a status word other than 0x9000."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status


class CardUsageError(MifareClassicError, ValueError):
    """The caller asked for something the card layout does not allow."""


class ReaderError(MifareClassicError, ConnectionError):
    """No reader, no card, or the channel to the card broke."""
