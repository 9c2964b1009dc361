"""Domain-specific exceptions."""


class ServiceError(Exception):
    pass


class MalformedSegment(ServiceError):
    """Raised when a transport segment lacks its header or carries bad base64."""


class QuotaStoreUnavailable(ServiceError):
    """Raised when the quota store cannot complete a read or an update."""


class FetchFailed(ServiceError):
    """Raised when a content service cannot produce text for a request."""


class SendFailed(ServiceError):
    """Raised when a transport refuses or cannot deliver outbound messages."""


class SubscriptionError(ServiceError):
    pass


class SubscriptionNotFound(SubscriptionError):
    pass


class SubscriptionStoreUnavailable(SubscriptionError):
    """Raised when subscription rows cannot be read or written."""


class SubscriptionRetierFailed(SubscriptionError):
    """Raised when a stored status change could not be applied to every linked identity."""

    def __init__(self, message: str, pending: list[str]) -> None:
        super().__init__(message)
        self.pending = pending


class WebhookRejected(ServiceError):
    """Raised when a payment provider callback fails verification."""
