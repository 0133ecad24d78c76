"""Error taxonomy for the subscription core."""


class SubscriptionError(Exception):
    """Base class for subscription lifecycle failures."""


class SubscriptionNotFoundError(SubscriptionError, LookupError):
    """A mutator required an existing record and none was found."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"No subscription record for user {user_id}")
        self.user_id = user_id


class InvalidTransitionError(SubscriptionError, ValueError):
    """The requested state change is not allowed from the current state."""


class ExternalVerificationError(SubscriptionError):
    """A payment gateway event failed its authenticity check."""


class StoreUnavailableError(SubscriptionError):
    """The backing store could not be read or written."""


class PaymentGatewayError(SubscriptionError):
    """The payment gateway rejected or failed a request."""
