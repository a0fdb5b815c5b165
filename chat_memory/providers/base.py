"""Completion provider base class with shared retry logic."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

import httpx

from ..types import CompletionError, CompletionRequest

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BACKOFF = [1.0, 2.0, 4.0]


class BaseProvider(ABC):
    """Abstract base for completion providers. Subclasses override hook methods;
    the retry loop in ``complete()`` is shared.

    Only 429 and 5xx responses and transport errors are retried. Any other
    non-200 status raises immediately, and nothing from a failed response is
    trusted.
    """

    def __init__(
        self,
        timeout: float = 60.0,
        max_retries: int = MAX_RETRIES,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._transport = transport

    # -- hook methods subclasses must implement --

    @abstractmethod
    def _provider_name(self) -> str: ...

    @abstractmethod
    def _get_url(self) -> str: ...

    @abstractmethod
    def _get_headers(self) -> dict: ...

    @abstractmethod
    def _build_payload(self, request: CompletionRequest) -> dict: ...

    @abstractmethod
    def _extract_text(self, data: dict) -> str: ...

    # -- shared retry logic --

    def _parse_ok(self, response: httpx.Response) -> str:
        """Text of a 200 response. A body that is not a completion is a failure, not a retry."""
        try:
            return self._extract_text(response.json())
        except (ValueError, AttributeError, TypeError, KeyError, IndexError) as e:
            raise CompletionError(
                f"Malformed completion response: {e}",
                provider=self._provider_name(),
                status_code=200,
            ) from e

    def _backoff(self, attempt: int) -> None:
        if attempt < self.max_retries - 1:
            time.sleep(RETRY_BACKOFF[min(attempt, len(RETRY_BACKOFF) - 1)])

    def complete(self, request: CompletionRequest) -> str:
        """Send a completion request with automatic retry on transient errors."""
        url = self._get_url()
        headers = self._get_headers()
        payload = self._build_payload(request)

        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                    response = client.post(url, headers=headers, json=payload)

                if response.status_code == 200:
                    return self._parse_ok(response)

                if response.status_code == 429 or response.status_code >= 500:
                    last_error = CompletionError(
                        f"HTTP {response.status_code}: {response.text}",
                        provider=self._provider_name(),
                        status_code=response.status_code,
                    )
                    logger.warning(
                        "%s returned %d (attempt %d/%d)",
                        self._provider_name(), response.status_code,
                        attempt + 1, self.max_retries,
                    )
                    self._backoff(attempt)
                    continue

                raise CompletionError(
                    f"HTTP {response.status_code}: {response.text}",
                    provider=self._provider_name(),
                    status_code=response.status_code,
                )

            except httpx.HTTPError as e:
                last_error = CompletionError(
                    f"HTTP error: {e}",
                    provider=self._provider_name(),
                )
                logger.warning(
                    "%s transport error (attempt %d/%d): %s",
                    self._provider_name(), attempt + 1, self.max_retries, e,
                )
                self._backoff(attempt)
                continue

        raise last_error or CompletionError(
            "Max retries exceeded", provider=self._provider_name()
        )
