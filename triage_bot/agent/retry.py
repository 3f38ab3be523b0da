"""
Retrying Call Wrapper
=====================

Wraps every outbound model call with a per-attempt timeout and a bounded
exponential backoff:

    attempt 1 ──fail──▶ sleep 1s ──▶ attempt 2 ──fail──▶ sleep 2s ──▶ attempt 3 ──fail──▶ ModelCallError

Timeouts, connection errors, rate limits and server errors are retried.
Requests the provider rejects outright (4xx other than 408/409/429: bad
request, authentication, not found, ...) fail on the first attempt;
sending the same malformed request again cannot succeed.

No state is kept between calls, so one RetryingCaller is shared by all
agents and all concurrent events.
"""

import asyncio
from typing import Any, Awaitable, Callable

from openai import APIStatusError
from tenacity import AsyncRetrying, RetryError, retry_if_exception, stop_after_attempt, wait_exponential

from triage_bot.agent.model import ModelClient, ModelRequest
from triage_bot.errors import ModelCallError
from triage_bot.utils.logger import Logger

logger = Logger("RetryingCaller")

# Client errors that are still worth retrying
RETRYABLE_STATUS_CODES = frozenset({408, 409, 429})


def is_transient(error: BaseException) -> bool:
    """
    Decide whether a failed call may succeed if retried.

    Args:
        error: The exception raised by the attempt

    Returns:
        False for cancellation and permanent provider rejections
    """
    if not isinstance(error, Exception):
        return False
    if isinstance(error, APIStatusError):
        status = error.status_code
        return status >= 500 or status in RETRYABLE_STATUS_CODES
    return True


class RetryingCaller:
    """
    Sends model requests with timeout and retry.

    Example:
        caller = RetryingCaller(OpenAIModelClient(api_key), max_attempts=3)
        response = await caller.call(request)
    """

    def __init__(
        self,
        client: ModelClient,
        max_attempts: int = 3,
        timeout: float = 120.0,
        base_backoff: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """
        Initialize the wrapper.

        Args:
            client: The model client to call
            max_attempts: Total attempts per call, including the first
            timeout: Seconds allowed per attempt
            base_backoff: Wait after the first failure; doubled after each
                further failure
            sleep: Coroutine used to wait between attempts
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.client = client
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.base_backoff = base_backoff
        self._sleep = sleep

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_backoff, min=0),
            retry=retry_if_exception(is_transient),
            sleep=self._sleep,
        )

    async def call(self, request: ModelRequest) -> Any:
        """
        Send a request, retrying transient failures.

        Args:
            request: The request to send

        Returns:
            The model response

        Raises:
            ModelCallError: When every attempt failed, or the provider
                rejected the request permanently
        """
        attempt_number = 0

        try:
            async for attempt in self._retrying():
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    try:
                        response = await asyncio.wait_for(
                            self.client.create_response(request),
                            timeout=self.timeout,
                        )
                    except asyncio.TimeoutError:
                        logger.warning(
                            f"Attempt {attempt_number}/{self.max_attempts} to {request.model} "
                            f"timed out after {self.timeout}s"
                        )
                        raise
                    except Exception as e:
                        logger.warning(
                            f"Attempt {attempt_number}/{self.max_attempts} to {request.model} "
                            f"failed: {type(e).__name__}: {e}"
                        )
                        raise

                    logger.debug(
                        f"Attempt {attempt_number}/{self.max_attempts} to {request.model} succeeded"
                    )
                    return response

        except RetryError as e:
            last_error = e.last_attempt.exception()
            raise ModelCallError(
                f"Model call to {request.model} failed: {last_error!r}",
                attempts=attempt_number,
            ) from last_error

        except Exception as e:
            # Not retried: permanent rejection
            raise ModelCallError(
                f"Model call to {request.model} was rejected: {e!r}",
                attempts=attempt_number,
            ) from e

        # AsyncRetrying always returns or raises above
        raise ModelCallError(f"Model call to {request.model} made no attempt", attempts=0)
