"""Error kinds raised by the short-link engine.

Every failure carries an :class:`~shortlinks.enums.ErrorKind` so the HTTP
boundary can map it to a stable response without string matching.
"""

from shortlinks.enums import ErrorKind

__all__ = [
    "ShortLinkError",
    "InvalidInputError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "InactiveError",
    "UpgradeRequiredError",
    "ConflictError",
    "AllocationExhaustedError",
    "PersistenceError",
    "AliasCollisionError",
]


class ShortLinkError(Exception):
    kind: ErrorKind = ErrorKind.PERSISTENCE
    default_message = "Short link operation failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def upgrade_required(self) -> bool:
        return self.kind is ErrorKind.UPGRADE_REQUIRED


class InvalidInputError(ShortLinkError):
    kind = ErrorKind.INVALID_INPUT
    default_message = "Invalid input."


class UnauthorizedError(ShortLinkError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Unauthorized."


class ForbiddenError(ShortLinkError):
    kind = ErrorKind.FORBIDDEN
    default_message = "Forbidden."


class NotFoundError(ShortLinkError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Link not found."


class InactiveError(ShortLinkError):
    kind = ErrorKind.INACTIVE
    default_message = "Link inactive."


class UpgradeRequiredError(ShortLinkError):
    kind = ErrorKind.UPGRADE_REQUIRED
    default_message = "Upgrade required."


class ConflictError(ShortLinkError):
    kind = ErrorKind.CONFLICT
    default_message = "Custom alias is already taken."


class AllocationExhaustedError(ShortLinkError):
    kind = ErrorKind.ALLOCATION_EXHAUSTED
    default_message = "Could not generate a unique alias. Try again."


class PersistenceError(ShortLinkError):
    kind = ErrorKind.PERSISTENCE
    default_message = "Storage operation failed."


class AliasCollisionError(PersistenceError):
    """The live-alias unique index rejected an insert."""

    default_message = "Short code collides with an existing live link."
