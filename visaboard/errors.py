"""Domain errors raised by the engine and mapped to JSON responses in main."""


class VisaboardError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(VisaboardError):
    status_code = 404


class InvalidArgument(VisaboardError):
    status_code = 400


class Conflict(VisaboardError):
    status_code = 400


class InvalidState(VisaboardError):
    status_code = 400


class UpstreamFailure(VisaboardError):
    status_code = 502


class QuotaExceeded(VisaboardError):
    status_code = 429

    def __init__(self, message: str, payload: dict):
        super().__init__(message)
        self.payload = payload
