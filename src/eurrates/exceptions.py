"""Custom exceptions for the EUR rates service.

Every error carries a ``retryable`` flag. RetryExecutor reads the flag
instead of matching on transport-library exception types, so the HTTP
client can change without touching the retry classification.

Only client-side faults are fatal: a 4xx answer from the exchange, or a
request rejected locally before it was sent. Everything else is retried.
"""


class RatesError(Exception):
    """Base exception for all rates service errors."""

    retryable: bool = True


class ValidationError(RatesError):
    """Raised on bad pair/date input or when no rate can be computed."""

    def __init__(self, message: str, supported_pairs: list[str] | None = None) -> None:
        super().__init__(message)
        self.supported_pairs = supported_pairs or []


class InvalidRequestError(RatesError, ValueError):
    """Raised when a request to the exchange is malformed before it is sent.

    The local counterpart of a 4xx answer: sending it again cannot help.
    """

    retryable = False


class NetworkError(RatesError):
    """Raised on transport failure or timeout talking to the exchange."""


class DecodeError(RatesError):
    """Raised when the exchange response is malformed or empty."""


class RemoteStatusError(RatesError):
    """Raised when the exchange answers with a non-2xx HTTP status.

    Client errors (4xx) are not retryable: repeating the same request will
    not change the answer. Any other status is.
    """

    def __init__(self, status_code: int, message: str = "") -> None:
        detail = f"HTTP {status_code} from exchange"
        if message:
            detail = f"{detail}: {message}"
        super().__init__(detail)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return not 400 <= self.status_code < 500


class NotFoundError(RatesError):
    """Raised when a requested pair is absent from a freshly computed rate set."""


class RetryExhausted(RatesError):
    """Raised when a retried operation gives up.

    Carries the last underlying failure and the number of attempts made.
    """

    def __init__(self, last_error: BaseException, attempts: int) -> None:
        super().__init__(f"Operation failed after {attempts} attempt(s): {last_error}")
        self.last_error = last_error
        self.attempts = attempts
