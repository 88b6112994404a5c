"""Exception hierarchy for the payments ledger."""

from models import RejectionReason


class LedgerError(Exception):
    """Base exception for all ledger errors."""


class TransactionRejected(LedgerError):
    """Raised when a transaction fails validation against current ledger state.

    Carries the reason so the caller can report it without parsing the message.
    """

    def __init__(self, reason: RejectionReason, message: str):
        super().__init__(message)
        self.reason = reason


class MalformedRecordError(LedgerError):
    """Raised when an input line cannot be turned into a transaction."""

    reason = RejectionReason.MALFORMED_RECORD


class InputSourceError(LedgerError):
    """Raised when the input cannot be read at all. Ends the run."""


class ConfigurationError(LedgerError):
    """Raised when settings are invalid."""
