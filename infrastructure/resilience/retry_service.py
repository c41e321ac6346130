"""
Resilience service for retrying calls to the language model provider.
Chat replies and summaries go through here; store writes and document
fetches are not retried at this layer.
"""

import time
import random
from typing import Callable, Any, Optional
import openai

from utils.logging_config import get_logger

logger = get_logger(__name__)

# Define which errors should trigger retries (transient errors)
RETRIABLE_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.InternalServerError,  # Server-side issues
)

# Define which errors should NOT be retried (permanent errors)
NON_RETRIABLE_ERRORS = (
    openai.AuthenticationError,  # API key issues
    openai.BadRequestError,      # Prompt issues
    openai.ContentFilterFinishReasonError,  # Content policy violations
)


def exponential_backoff_delay(attempt: int, base_delay: float = 1.0, max_delay: float = 60.0) -> float:
    """
    Calculate exponential backoff delay with jitter

    Args:
        attempt: Current attempt number (0-indexed)
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds

    Returns:
        Delay in seconds
    """
    delay = min(base_delay * (2 ** attempt), max_delay)

    # Add jitter to avoid thundering herd effect
    jitter = random.uniform(0, 0.1 * delay)

    return delay + jitter


def retry_with_backoff(
    func: Callable,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    on_retry: Optional[Callable[[int, Exception], None]] = None,
    sleep: Callable[[float], None] = time.sleep
) -> Any:
    """
    Execute a function with retry logic and exponential backoff

    Args:
        func: Function to execute
        max_retries: Maximum number of retry attempts
        base_delay: Base delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        on_retry: Optional callback for retry events (attempt_number, exception)
        sleep: Sleep function, replaceable in tests

    Returns:
        Function result if successful

    Raises:
        The last exception if all retries are exhausted
    """
    for attempt in range(max_retries + 1):  # +1 for initial attempt
        try:
            result = func()

            if attempt > 0:
                logger.info(f"Function succeeded after {attempt} retries")

            return result

        except RETRIABLE_ERRORS as e:
            if attempt == max_retries:
                logger.error(f"Function failed after {max_retries} retries: {str(e)}")
                raise

            delay = exponential_backoff_delay(attempt, base_delay, max_delay)

            logger.warning(f"Attempt {attempt + 1} failed ({e.__class__.__name__}), retrying in {delay:.2f}s")

            if on_retry:
                on_retry(attempt + 1, e)

            sleep(delay)

        except NON_RETRIABLE_ERRORS as e:
            logger.warning(f"Non-retriable error encountered: {e.__class__.__name__}: {str(e)}")
            raise
