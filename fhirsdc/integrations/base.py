"""
Base classes for fhirsdc server integrations.

Async httpx clients for remote form-definition stores share the same
error mapping and retry behaviour defined here.

Design Principles:
1. Async-first: All I/O operations are async
2. Type-safe: Pydantic models for response bodies
3. Resilient: Built-in retry with exponential backoff
4. Testable: `_request` is the single seam to patch in tests

Retry Strategy:
    - Retryable errors: timeouts, network errors, 429, 5xx
    - Non-retryable: 4xx (except 429), auth errors
    - Backoff: exponential with jitter, Retry-After honoured, capped at 60s
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

logger = logging.getLogger(__name__)

MAX_BACKOFF = 60.0


# =============================================================================
# Exceptions
# =============================================================================


class IntegrationError(Exception):
    """Base exception for integration errors."""

    def __init__(
        self,
        message: str,
        integration: str,
        *,
        status_code: int | None = None,
        response_body: str | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.integration = integration
        self.status_code = status_code
        self.response_body = response_body
        self.retryable = retryable

    def __str__(self) -> str:
        parts = [f"[{self.integration}] {self.args[0]}"]
        if self.status_code:
            parts.append(f"(status={self.status_code})")
        return " ".join(parts)


class AuthenticationError(IntegrationError):
    """Raised when authentication fails (401/403)."""

    def __init__(self, message: str, integration: str, **kwargs):
        super().__init__(message, integration, retryable=False, **kwargs)


class RateLimitError(IntegrationError):
    """Raised when rate limit is exceeded (429)."""

    def __init__(
        self,
        message: str,
        integration: str,
        *,
        retry_after: float | None = None,
        **kwargs,
    ):
        super().__init__(message, integration, retryable=True, **kwargs)
        self.retry_after = retry_after


class NotFoundError(IntegrationError):
    """Raised when a resource is not found (404)."""

    def __init__(self, message: str, integration: str, **kwargs):
        super().__init__(message, integration, retryable=False, **kwargs)


class ValidationError(IntegrationError):
    """Raised when the server rejects a request (400/422)."""

    def __init__(self, message: str, integration: str, **kwargs):
        super().__init__(message, integration, retryable=False, **kwargs)


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True, slots=True)
class IntegrationConfig:
    """Configuration for an integration client."""

    # Connection
    base_url: str = ""
    timeout: float = 30.0
    headers: dict[str, str] = field(default_factory=dict)

    # Authentication
    access_token: str | None = None

    # Retry
    max_retries: int = 3
    retry_delay: float = 1.0

    # Observability
    log_requests: bool = False
    log_responses: bool = False


def parse_retry_after(value: str | None) -> float | None:
    """
    Seconds to wait according to a Retry-After header.

    Accepts delay-seconds or an HTTP-date. Returns None when the header is
    missing or unparseable.
    """
    if not value:
        return None

    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        seconds = None
    if seconds is not None:
        return max(seconds, 0.0) if math.isfinite(seconds) else None

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


# =============================================================================
# Base Client
# =============================================================================


class IntegrationClient(ABC):
    """
    Abstract base class for integration clients.

    Provides common functionality:
    - HTTP client management
    - Authentication header injection
    - Error handling and mapping
    - Retry with backoff

    Subclasses must implement:
    - name: Integration identifier
    - _get_auth_headers(): Return authentication headers

    Subclasses may override:
    - _default_headers(): Content negotiation headers
    - _error_message(): Extract a readable message from an error response
    """

    def __init__(self, config: IntegrationConfig):
        """
        Initialize the integration client.

        Args:
            config: Integration configuration
        """
        self.config = config
        self._client: httpx.AsyncClient | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this integration."""
        ...

    @abstractmethod
    def _get_auth_headers(self) -> dict[str, str]:
        """Return authentication headers for requests."""
        ...

    def _default_headers(self) -> dict[str, str]:
        """Headers sent with every request."""
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                headers={
                    **self._default_headers(),
                    **self.config.headers,
                    **self._get_auth_headers(),
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Make an HTTP request with retry and exponential backoff.

        Args:
            method: HTTP method (GET, POST, PUT)
            path: URL path (appended to base_url)
            params: Query parameters
            json: JSON body
            headers: Additional headers

        Returns:
            httpx.Response

        Raises:
            IntegrationError: On any non-retryable error or after max retries
        """
        for attempt in range(self.config.max_retries + 1):
            try:
                return await self._do_request(
                    method, path, params=params, json=json, headers=headers
                )
            except IntegrationError as e:
                if not e.retryable:
                    raise

                if attempt >= self.config.max_retries:
                    logger.warning(
                        f"[{self.name}] Max retries ({self.config.max_retries}) "
                        f"reached for {method} {path}"
                    )
                    raise

                backoff = self._calculate_backoff(attempt, e)
                logger.info(
                    f"[{self.name}] Retry {attempt + 1}/{self.config.max_retries} "
                    f"for {method} {path} after {backoff:.2f}s"
                )
                await asyncio.sleep(backoff)

        raise IntegrationError("Unknown error", self.name)

    def _calculate_backoff(
        self,
        attempt: int,
        error: IntegrationError,
    ) -> float:
        """
        Calculate backoff delay with exponential growth and jitter.

        Args:
            attempt: Current attempt number (0-indexed)
            error: The error that triggered the retry

        Returns:
            Delay in seconds
        """
        if isinstance(error, RateLimitError) and error.retry_after:
            return min(error.retry_after, MAX_BACKOFF)

        # delay * (2 ^ attempt), ±25% jitter, capped at 60s
        base_delay = self.config.retry_delay * (2 ** attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return min(base_delay + jitter, MAX_BACKOFF)

    async def _do_request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute a single HTTP request (wrapped by `_request` for retries)."""
        client = await self._get_client()

        if self.config.log_requests:
            logger.debug(f"[{self.name}] {method} {path} params={params}")

        try:
            response = await client.request(
                method=method,
                url=path,
                params=params,
                json=json,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise IntegrationError(
                f"Request timeout: {e}",
                self.name,
                retryable=True,
            ) from e
        except httpx.NetworkError as e:
            raise IntegrationError(
                f"Network error: {e}",
                self.name,
                retryable=True,
            ) from e

        if self.config.log_responses:
            logger.debug(
                f"[{self.name}] Response: status={response.status_code} "
                f"body={response.text[:500] if response.text else 'empty'}"
            )

        self._check_response(response)
        return response

    def _error_message(self, response: httpx.Response) -> str:
        """Readable message for an error response."""
        return response.text or f"HTTP {response.status_code}"

    def _check_response(self, response: httpx.Response) -> None:
        """
        Check response for errors and raise appropriate exceptions.

        Raises:
            AuthenticationError: For 401/403
            RateLimitError: For 429
            NotFoundError: For 404
            ValidationError: For 400/422
            IntegrationError: For other errors
        """
        if response.is_success:
            return

        status = response.status_code
        body = response.text
        message = self._error_message(response)

        if status in (401, 403):
            raise AuthenticationError(
                f"Authentication failed: {message}",
                self.name,
                status_code=status,
                response_body=body,
            )

        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "Rate limit exceeded",
                self.name,
                status_code=status,
                response_body=body,
                retry_after=parse_retry_after(retry_after),
            )

        if status == 404:
            raise NotFoundError(
                f"Resource not found: {message}",
                self.name,
                status_code=status,
                response_body=body,
            )

        if status in (400, 422):
            raise ValidationError(
                f"Request rejected: {message}",
                self.name,
                status_code=status,
                response_body=body,
            )

        raise IntegrationError(
            f"Request failed: {message}",
            self.name,
            status_code=status,
            response_body=body,
            retryable=status >= 500,
        )

    async def health_check(self) -> bool:
        """Check if the integration is reachable. Subclasses override."""
        return True

    async def __aenter__(self) -> IntegrationClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
