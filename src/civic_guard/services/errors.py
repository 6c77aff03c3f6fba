"""Exception taxonomy for the moderation pipeline.

Services raise these; the HTTP layer translates them into status codes.
"""

from __future__ import annotations


class ModerationError(RuntimeError):
    """Base exception for every pipeline failure surfaced to a caller."""


class ValidationError(ModerationError):
    """Raised when a submission is malformed and never enters the pipeline."""


class ItemNotFound(ModerationError):
    """Raised when an item, or an anonymous protocol, does not exist."""


class PermissionDenied(ModerationError):
    """Raised when an actor lacks the role an operation requires."""


class InvalidState(ModerationError):
    """Raised when an operation targets an item in the wrong or a terminal state."""


class AlreadyVoted(ModerationError):
    """Raised when an identity casts a second ballot of the same kind.

    This is an idempotent rejection: the tally is left untouched.
    """


class AlreadyDecided(ModerationError):
    """Raised when a terminal decision already exists for the item."""


class ScoringFailure(ModerationError):
    """Raised by scorers that cannot produce a result.

    The pipeline catches it and fails open; it never reaches a caller.
    """
