"""Custom exceptions for the trade history synchronizer.

All storage, fetch and validation exceptions live here to avoid
circular imports between modules.
"""


class TradeSyncError(Exception):
    """Base exception for all synchronizer errors."""


class FetchError(TradeSyncError):
    """Raised when an upstream page request fails (network, auth, non-2xx)."""


class MalformedHistoryError(TradeSyncError):
    """Raised when a history file exists but cannot be parsed."""


class MissingHistoryError(TradeSyncError):
    """Raised when an operation needs a pair history that was never stored."""


class InvalidInputError(TradeSyncError):
    """Raised for rejected caller input, before any I/O happens."""


class InvalidLastRecordError(TradeSyncError):
    """Raised when a page's last record has no usable timestamp.

    The cursor cannot advance past such a page; the run stops cleanly
    with stop reason ``invalid_last``.
    """
