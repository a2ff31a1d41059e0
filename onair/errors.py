"""Error taxonomy shared by services and routers."""


class OnAirError(Exception):
    """Base class for errors surfaced to the caller."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(OnAirError):
    """A referenced event, session, submission or poll does not exist."""
    status_code = 404


class ValidationError(OnAirError):
    """Required input is missing or malformed."""
    status_code = 400


class InvalidState(OnAirError):
    """The operation does not apply to the document in its current kind or state."""
    status_code = 409


class UpstreamError(OnAirError):
    """The spreadsheet webhook or the document store failed."""
    status_code = 502
