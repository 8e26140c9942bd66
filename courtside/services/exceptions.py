"""
Service-layer exceptions.

Routes map ConflictError to 409, NotFoundError to 404 and InvalidRequestError
to 400. All of them are ValueErrors so older ``except ValueError`` call sites
keep working.
"""


class ConflictError(ValueError):
    """The request clashes with the current state of the store."""

    code = "CONFLICT"


class NotFoundError(ValueError):
    """A referenced record does not exist."""


class InvalidRequestError(ValueError):
    """The request itself is malformed."""


# --- Conflicts ---


class SlotTakenError(ConflictError):
    """Another pending/confirmed booking overlaps the requested interval."""

    code = "SLOT_TAKEN"

    def __init__(self, message: str = "This time slot is already booked"):
        super().__init__(message)


class SlotBlockedError(ConflictError):
    """A court block overlaps the requested interval."""

    code = "SLOT_BLOCKED"

    def __init__(self, message: str = "This time slot is blocked"):
        super().__init__(message)


class AlreadyVoidedError(ConflictError):
    """Raised when voiding a point movement that is already voided."""

    code = "ALREADY_VOIDED"


class DuplicateConfirmationError(ConflictError):
    """Raised when a tournament category result is confirmed twice."""

    code = "DUPLICATE_CONFIRMATION"


class BookingStateError(ConflictError):
    """Raised when a booking cannot make the requested transition."""

    code = "INVALID_BOOKING_STATE"


class MatchFullError(ConflictError):
    """Raised when a match has no free seats."""

    code = "MATCH_FULL"


class MatchStateError(ConflictError):
    """Raised when a match or seat cannot make the requested transition."""

    code = "INVALID_MATCH_STATE"


class CorrectionStateError(ConflictError):
    """Raised when a correction request was already resolved."""

    code = "CORRECTION_ALREADY_RESOLVED"


class LocalityExistsError(ConflictError):
    """Raised when a locality with the same name already exists."""

    code = "LOCALITY_EXISTS"


# --- Not found ---


class CourtNotFoundError(NotFoundError):
    """Raised when a court is missing or inactive."""


class BlockNotFoundError(NotFoundError):
    """Raised when a court block is missing."""


class BookingNotFoundError(NotFoundError):
    """Raised when a booking is missing."""


class PointMovementNotFoundError(NotFoundError):
    """Raised when a point movement is missing."""


class PlayerNotFoundError(NotFoundError):
    """Raised when a player is missing."""


class TournamentNotFoundError(NotFoundError):
    """Raised when a tournament or its category result is missing."""


class MatchNotFoundError(NotFoundError):
    """Raised when a match or participant is missing."""


class CorrectionNotFoundError(NotFoundError):
    """Raised when a correction request is missing."""


# --- Invalid input ---


class InvalidBookingError(InvalidRequestError):
    """Raised when a booking interval is empty or in the past."""


class InvalidScheduleError(InvalidRequestError):
    """Raised when a weekly schedule entry or block is malformed."""


class InvalidVoidError(InvalidRequestError):
    """Raised when a void is attempted without a reason."""


class InvalidMatchError(InvalidRequestError):
    """Raised when a match cannot be built on the given booking or invitees."""


class InvalidCorrectionError(InvalidRequestError):
    """Raised when a correction request or its resolution is malformed."""


class InvalidResultError(InvalidRequestError):
    """Raised when submitted tournament results are malformed."""


class InvalidLocalityError(InvalidRequestError):
    """Raised when a locality name is blank."""
