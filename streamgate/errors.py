"""Exception hierarchy for the payment and access engine.

The payment flow catches every error below at its boundary and reports it
through ``FlowState``; only ``InvalidTransitionError`` escapes, since it
signals a programming error rather than a payment outcome.
"""

from typing import Optional


class StreamgateError(Exception):
    """Base exception for all engine errors."""

    pass


class ConfigurationError(StreamgateError):
    """Raised when configuration is invalid or missing."""

    pass


class PricingError(StreamgateError):
    """Raised when a price cannot be computed for the requested option."""

    pass


class PaymentValidationError(StreamgateError):
    """Bad input from the user (phone number, missing selection).

    Recovered locally: the user is re-prompted and the flow does not move
    past CONFIRMING.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class SubmissionError(StreamgateError):
    """The Transaction Store rejected or never received a charge request."""

    def __init__(
        self,
        message: str,
        user_correctable: bool = False,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.user_correctable = user_correctable
        self.status_code = status_code


class GatewayDeclineError(StreamgateError):
    """The store reported the charge as FAILED. Terminal."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class VerificationTimeoutError(StreamgateError):
    """The poll budget ran out before the gateway settled. Terminal."""

    pass


class TransientLookupError(StreamgateError):
    """A status lookup failed at the network level. Retried by the poller."""

    pass


class InvalidTransitionError(StreamgateError):
    """Raised when the payment flow is asked to take an illegal edge."""

    pass


class AuthenticationRequiredError(StreamgateError):
    """Raised when a purchase question is asked for an anonymous viewer."""

    pass


class TransactionStoreError(StreamgateError):
    """Error talking to the Transaction Store.

    Attributes:
        status_code: HTTP status when the store answered, None on network failure
        payload: Decoded error body, if any
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}

    @property
    def is_network_error(self) -> bool:
        return self.status_code is None


class CatalogError(StreamgateError):
    """Error fetching content metadata from the catalog service."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
