"""
Resilience infrastructure - handles retry logic for model provider calls.
"""

from .retry_service import (
    RETRIABLE_ERRORS,
    NON_RETRIABLE_ERRORS,
    exponential_backoff_delay,
    retry_with_backoff
)

__all__ = [
    'RETRIABLE_ERRORS',
    'NON_RETRIABLE_ERRORS',
    'exponential_backoff_delay',
    'retry_with_backoff'
]
