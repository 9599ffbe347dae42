from coach.resilience.errors import (
    AllProvidersFailedError,
    NoHealthyProvidersError,
    ProviderError,
    ProviderTimeoutError,
    ReportGenerationError,
)
from coach.resilience.retry import (
    BulkResult,
    RetryOptions,
    execute_with_retry,
    is_retryable_error,
    retry_api_call,
    retry_bulk_operations,
)

__all__ = [
    "AllProvidersFailedError",
    "BulkResult",
    "NoHealthyProvidersError",
    "ProviderError",
    "ProviderTimeoutError",
    "ReportGenerationError",
    "RetryOptions",
    "execute_with_retry",
    "is_retryable_error",
    "retry_api_call",
    "retry_bulk_operations",
]
