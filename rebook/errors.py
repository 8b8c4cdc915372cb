"""Exception types raised by the reader core."""


class RebookError(Exception):
    """Base class for all rebook errors."""


class NarrationFailure(RebookError):
    """The narration provider failed or returned unusable audio."""


class SelectionNotFound(RebookError):
    """No sentence matches the selected text."""


class PositionOutOfRange(RebookError):
    """A stored position no longer fits the current pagination.

    Recovered by clamping; never surfaced to callers.
    """


class BookNotFound(RebookError, KeyError):
    """The requested book is not in the library."""
