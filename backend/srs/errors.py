"""Exceptions raised by the review scheduling engine.

Every engine error is local and recoverable: the caller fixes the input
and retries. None of them leave partially updated state behind.
"""


class InvalidReviewInput(ValueError):
    """A review input was rejected before any state was touched."""


class InvalidRatingError(InvalidReviewInput):
    """The rating is not one of forgot, hard, good or easy."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid rating {value!r}: expected forgot, hard, good or easy")
        self.value = value


class InvalidMethodError(InvalidReviewInput):
    """The retrieval method is not a known review method."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid review method {value!r}")
        self.value = value


class InvalidDirectionError(InvalidReviewInput):
    """The direction is neither forward nor reverse."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid direction {value!r}: expected forward or reverse")
        self.value = value


class UnknownSessionItemError(InvalidReviewInput):
    """An outcome was submitted for an item that is not part of the session."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"Item {item_id!r} is not part of this session")
        self.item_id = item_id


class SessionStateError(RuntimeError):
    """A session operation is not allowed in the session's current state."""
