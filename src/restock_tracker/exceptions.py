"""Exceptions raised by the restock tracker."""


class RestockTrackerError(Exception):
    """Base class for restock tracker errors."""


class ConfigurationError(RestockTrackerError):
    """Required credentials or settings are missing."""


class UpstreamUnavailable(RestockTrackerError):
    """An upstream API could not be reached or refused the request."""

    def __init__(self, service: str, message: str, status_code: int | None = None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")
