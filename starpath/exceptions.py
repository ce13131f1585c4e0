class DomainError(Exception):
    """Base exception class for all domain-specific exceptions."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class ResourceNotFoundError(DomainError):
    """Exception raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type} with ID {resource_id} not found"
        super().__init__(message)


class ValidationError(DomainError):
    """Malformed input. Raised before any state is touched."""

    code = "validation"


class KindMismatchError(ValidationError):
    """A completion signal whose kind does not match the content item."""

    code = "kind-mismatch"

    def __init__(self, content_item_id: str, expected: str, received: str) -> None:
        self.content_item_id = content_item_id
        self.expected = expected
        self.received = received
        super().__init__(f"Content item {content_item_id} is a {expected}, not a {received}")


class NotApplicableError(DomainError):
    """Signal for content the child cannot currently progress on.

    Covers items not required by any accessible course and courses that are
    still locked.
    """

    code = "not-applicable"


class StoreUnavailableError(DomainError):
    """Transient persistence failure; safe to retry end to end."""

    code = "store-unavailable"
    retryable = True
