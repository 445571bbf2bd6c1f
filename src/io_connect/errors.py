"""Exception hierarchy for the io-connect client."""

from typing import Any, Optional


class IoConnectError(Exception):
    """Base exception for io-connect."""

    pass


class InvalidRequestError(IoConnectError):
    """Request rejected before any network call."""

    pass


class InvalidTimeRangeError(InvalidRequestError):
    """Start time falls after end time."""

    pass


class InvalidTimeUnitError(InvalidRequestError):
    """Unix timestamp supplied in seconds where milliseconds are required."""

    pass


class NoSensorDataError(InvalidRequestError):
    """No sensors were given and none could be resolved from metadata."""

    pass


class DeviceNotFoundError(InvalidRequestError):
    """Device id is not part of the account's device list."""

    def __init__(self, device_id: str):
        super().__init__(f"Device {device_id} not added in account")
        self.device_id = device_id


class TransportError(IoConnectError):
    """HTTP request failed or returned a non-2xx status."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        body: Any = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.status = status
        self.body = body
        self.url = url


class ApplicationError(IoConnectError):
    """Server answered 2xx but reported a failure in the body."""

    def __init__(self, message: str, *, body: Any = None, url: Optional[str] = None):
        super().__init__(message)
        self.body = body
        self.url = url


class MalformedResponseError(IoConnectError):
    """Response body has a shape the client cannot use."""

    pass


class RetryExhaustedError(IoConnectError):
    """A retried operation kept failing until the attempt budget ran out."""

    def __init__(self, attempts: int, last_error: BaseException, description: str = "request"):
        super().__init__(f"Max retries ({attempts}) reached while calling {description}: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
        self.description = description
