"""
Custom exception hierarchy for the catalog sync engine.

Exceptions are categorized as:
- RetryableError: Transient errors where a later attempt might succeed
- NonRetryableError: Permanent errors that need a data or config fix

The engine itself never retries; the split tells callers (Celery tasks,
routes) how to report a failure.
"""
from typing import List, Optional


class CatalogSyncException(Exception):
    """Base exception for the catalog sync engine."""
    pass


# ============================================
# RETRYABLE ERRORS
# ============================================
class RetryableError(CatalogSyncException):
    """Base class for transient errors."""
    pass


class RemoteError(RetryableError):
    """
    Transport failure or non-success response from the recommendation service.

    status_code is None when the request never got a response.
    """
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        if status_code is not None:
            super().__init__(f"{message} (HTTP {status_code})")
        else:
            super().__init__(message)


# ============================================
# NON-RETRYABLE ERRORS
# ============================================
class NonRetryableError(CatalogSyncException):
    """Base class for permanent errors."""
    pass


class ConfigurationError(NonRetryableError):
    """
    Credential or endpoint missing.

    Raised before any job state is created.
    """
    pass


class RecordValidationError(NonRetryableError):
    """A single mapped record failed validation and was left out of its batch."""
    def __init__(self, item_id: int, errors: List[str]):
        self.item_id = item_id
        self.errors = errors
        super().__init__(f"Item {item_id} failed validation: {'; '.join(errors)}")


class ProgressConflictError(NonRetryableError):
    """The persisted job changed between load and save."""
    def __init__(self, expected_version: Optional[int], actual_version: Optional[int]):
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Sync job version conflict: expected {expected_version}, found {actual_version}"
        )
