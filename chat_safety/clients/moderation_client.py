"""HTTP client for the moderation provider endpoint."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from chat_safety.config import Settings

logger = logging.getLogger(__name__)

# Statuses worth retrying; other 4xx responses fail immediately
RETRYABLE_STATUS_CODES = {408, 429}


class ModerationError(Exception):
    """Base exception for moderation provider failures."""
    pass


class ModerationNotConfiguredError(ModerationError):
    """Raised when no API key is available for the provider."""

    def __init__(self, provider: str = "openai"):
        self.provider = provider
        super().__init__(f"Moderation provider '{provider}' is not configured (missing API key)")


class ModerationTransportError(ModerationError):
    """Raised when the provider cannot be reached or answers with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)


class ModerationTimeoutError(ModerationTransportError):
    """Raised when a moderation call exceeds the configured timeout."""
    pass


class ModerationResponseError(ModerationError):
    """Raised when the provider response is malformed or unexpected."""
    pass


class ModerationClient:
    """Client for the moderation endpoint.

    Sends ``{"input": text, "model": model}`` with bearer authorization and
    returns the decoded JSON body. Each call is bounded by ``timeout`` and
    retried up to ``max_retries`` times on transport errors, timeouts and
    408 / 429 / 5xx responses.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        model: str = "omni-moderation-latest",
        organization_id: Optional[str] = None,
        timeout: float = 3.0,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        use_exponential_backoff: bool = True,
        max_backoff_multiplier: float = 8.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize moderation client.

        Args:
            endpoint: Full URL of the moderation endpoint
            api_key: Bearer token
            model: Moderation model name
            organization_id: Optional OpenAI organization header
            timeout: Per-request timeout in seconds
            max_retries: Retries after the first attempt
            retry_delay: Base delay between retries in seconds
            use_exponential_backoff: Double the delay on each retry
            max_backoff_multiplier: Cap for the exponential multiplier
            transport: Optional httpx transport (used by tests)
            sleep: Coroutine used to wait between retries
        """
        self.endpoint = endpoint
        self.api_key = api_key
        self.model = model
        self.organization_id = organization_id
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.use_exponential_backoff = use_exponential_backoff
        self.max_backoff_multiplier = max_backoff_multiplier
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "ModerationClient":
        """Create a client from application settings."""
        return cls(
            endpoint=settings.endpoint,
            api_key=settings.resolved_api_key,
            model=settings.model,
            organization_id=settings.organization_id,
            timeout=settings.timeout_seconds,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay_ms / 1000,
            use_exponential_backoff=settings.use_exponential_backoff,
            max_backoff_multiplier=settings.max_backoff_multiplier,
            **kwargs,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the HTTP client."""
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.api_key}"}
            if self.organization_id:
                headers["OpenAI-Organization"] = self.organization_id

            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def moderate(self, text: str) -> Dict[str, Any]:
        """Send text to the moderation endpoint.

        Args:
            text: Text to moderate

        Returns:
            Decoded JSON response body

        Raises:
            ModerationNotConfiguredError: If no API key is set
            ModerationTransportError: If the call fails after all retries
            ModerationResponseError: If the body is not valid JSON
        """
        if not self.api_key:
            raise ModerationNotConfiguredError()

        payload = {"input": text, "model": self.model}
        attempt = 0

        while True:
            try:
                return await self._post_with_deadline(payload)
            except ModerationTransportError as e:
                if not e.retryable or attempt >= self.max_retries:
                    raise
                delay = self._backoff_delay(attempt)
                attempt += 1
                logger.warning(
                    f"Moderation call failed ({e}); retry {attempt}/{self.max_retries} in {delay:.2f}s"
                )
                await self._sleep(delay)

    async def _post_with_deadline(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        # httpx timeouts are per phase; this bounds the whole request
        try:
            return await asyncio.wait_for(self._post(payload), self.timeout)
        except asyncio.TimeoutError as e:
            raise ModerationTimeoutError(
                f"Moderation request timed out after {self.timeout}s"
            ) from e

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self.client.post(self.endpoint, json=payload)
        except httpx.TimeoutException as e:
            raise ModerationTimeoutError(
                f"Moderation request timed out after {self.timeout}s"
            ) from e
        except httpx.RequestError as e:
            raise ModerationTransportError(
                f"Failed to reach moderation API: {type(e).__name__}: {e}"
            ) from e

        if response.status_code >= 400:
            status = response.status_code
            raise ModerationTransportError(
                f"Moderation API returned HTTP {status}",
                status_code=status,
                retryable=status >= 500 or status in RETRYABLE_STATUS_CODES,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ModerationResponseError("Moderation response is not valid JSON") from e

    def _backoff_delay(self, attempt: int) -> float:
        if not self.use_exponential_backoff:
            return self.retry_delay
        multiplier = min(2 ** attempt, self.max_backoff_multiplier)
        return self.retry_delay * multiplier

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
