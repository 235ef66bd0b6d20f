class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class NotFoundError(DomainError):
    """Raised when a referenced member, dependent or record does not exist."""


class StoreError(DomainError):
    """Raised when the document store is unreachable or rejects a write."""


class ConcurrentUpdateError(StoreError):
    """Raised when a document changed between the read and the guarded write."""
