"""
Contract-violation errors, raised at the engine boundary before any state changes.

Runtime failures (e.g. the initial load failing) are never raised; they are
recorded on the store snapshot instead.
"""


class TokenSyncError(ValueError):
    """Base class for malformed commands and updates."""


class InvalidSortKeyError(TokenSyncError):
    """Sort key is not a Token field."""


class InvalidFilterError(TokenSyncError):
    """Filter changes name an unknown option or an unknown status."""


class InvalidUpdateError(TokenSyncError):
    """Update payload names fields that cannot be merged."""
