"""
Error kinds raised by the FoundIt operations.

Each kind carries the HTTP status the API reports it with; the app installs a
single handler that turns any ``FoundItError`` into a JSON ``detail`` response.
"""

from __future__ import annotations


class FoundItError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(FoundItError):
    """Input rejected before any collaborator call."""

    status_code = 400


class NotAuthenticated(FoundItError):
    status_code = 401


class NotAuthorized(FoundItError):
    """Caller is signed in but may not perform the action."""

    status_code = 403


class NotFound(FoundItError):
    status_code = 404


class Conflict(FoundItError):
    status_code = 409


class AlreadyApplied(Conflict):
    def __init__(self, message: str = "You have already applied for this item."):
        super().__init__(message)


class ItemAlreadyClaimed(Conflict):
    def __init__(self, message: str = "Item is already claimed."):
        super().__init__(message)


class EmailTaken(Conflict):
    def __init__(self, message: str = "User already registered"):
        super().__init__(message)


class WinnerSelectionIncomplete(FoundItError):
    """
    Raised when a stepwise winner selection fails after clearing the previous
    winner flags. The item is left ``found`` with no winning claim until the
    founder selects again.
    """

    def __init__(self, item_id: str, claim_id: str, step: int, cause: Exception):
        super().__init__(
            f"Winner selection for item {item_id} stopped at step {step}: {cause}"
        )
        self.item_id = item_id
        self.claim_id = claim_id
        self.step = step
        self.cause = cause


class StoreError(FoundItError):
    """Relational store failure; message is the store's own."""

    status_code = 502


class StorageError(FoundItError):
    """Object store failure; message is the store's own."""

    status_code = 502
