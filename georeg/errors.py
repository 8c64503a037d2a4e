class AppError(Exception):
    """Base application error for the geo-registration service."""

    code = "app_error"


class LocationSourceError(AppError):
    """Base error for location source failures (recovered by the aggregator)."""

    code = "location_source_error"


class PermissionDeniedError(LocationSourceError):
    """Raised when the user or platform refused access to the location capability."""

    code = "permission_denied"


class PositionUnavailableError(LocationSourceError):
    """Raised when the location sensor/service could not produce a fix."""

    code = "position_unavailable"


class LocationTimeoutError(LocationSourceError):
    """Raised when no position arrived before the precise request timed out."""

    code = "timeout"


class ResolutionInProgressError(LocationSourceError):
    """Raised when a precise request is made while another one is outstanding."""

    code = "resolution_in_progress"


class NetworkLookupError(LocationSourceError):
    """Raised when a reverse-geocoding or network/IP lookup fails."""

    code = "network_error"


class LookupQuotaExceededError(NetworkLookupError):
    """Raised when a lookup provider rejects the call because of rate limits or quota."""

    code = "quota_exceeded"


class SubmissionError(AppError):
    """Base error for registration submission failures (surfaced to the user)."""

    code = "submission_error"


class LocationNotSettledError(SubmissionError):
    """Raised when submission is attempted before location resolution has settled."""

    code = "location_not_settled"


class NoLocationAvailableError(SubmissionError):
    """Raised locally when no usable location source exists; no request is sent."""

    code = "no_location"


class SubmissionValidationError(SubmissionError):
    """Raised when the registration backend rejects the payload (4xx with a message)."""

    code = "validation_error"


class ServiceUnavailableError(SubmissionError):
    """Raised when the registration backend is unreachable or returns 5xx."""

    code = "service_unavailable"


class UnknownSubmissionError(SubmissionError):
    """Raised for any other submission failure."""

    code = "unknown_error"
