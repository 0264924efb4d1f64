"""
Error kinds raised by the lifecycle handlers.
None of them are retried by the core; the caller decides what to do.
"""


class MovieClubError(Exception):
    """Base class for locally detected lifecycle errors."""

    status_code = 400
    error_type = "MOVIE_CLUB_ERROR"

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class InvalidPhase(MovieClubError):
    """Operation attempted outside its valid phase."""

    error_type = "INVALID_PHASE"


class ConflictError(MovieClubError):
    """Slot already occupied."""

    status_code = 409
    error_type = "CONFLICT"


class NoVettingItem(MovieClubError):
    """No proposal is currently in vetting."""

    status_code = 404
    error_type = "NO_VETTING_ITEM"


class MovieNotAvailable(MovieClubError):
    """Proposal is missing or not open for voting."""

    status_code = 404
    error_type = "MOVIE_NOT_AVAILABLE"


class VettingIncomplete(MovieClubError):
    """Not every member has completed vetting for this proposal."""

    error_type = "VETTING_INCOMPLETE"


class InvalidScore(MovieClubError):
    """Score must be an integer between 0 and 10."""

    error_type = "INVALID_SCORE"


class InvalidProposal(MovieClubError):
    """Proposal data is invalid."""

    error_type = "INVALID_PROPOSAL"


class MemberNotFound(MovieClubError):
    """Member does not exist."""

    status_code = 404
    error_type = "MEMBER_NOT_FOUND"


class InvalidMember(MovieClubError):
    """Member data is invalid."""

    error_type = "INVALID_MEMBER"
