# prospect_pipeline/adapters/clients/http_resilience.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from ...config import settings
from ...errors import FatalProviderError, TransientProviderError

log = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_base_s: float = 1.0
    max_backoff_s: float = 30.0
    timeout_s: float = 30.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=int(settings.HTTP_MAX_ATTEMPTS),
            backoff_base_s=float(settings.HTTP_BACKOFF_BASE_S),
            timeout_s=float(settings.HTTP_TIMEOUT_S),
        )

    def backoff(self, attempt: int) -> float:
        # attempt is 0-based: 1s, 2s, 4s, ...
        return min(self.max_backoff_s, self.backoff_base_s * (2**attempt))


def _is_retryable(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS or status_code >= 500


async def resilient_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    policy: RetryPolicy | None = None,
    sleep: Sleep = asyncio.sleep,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json: Any | None = None,
) -> httpx.Response:
    """
    One logical call with retries.

    429/5xx, timeouts and network errors are retried with exponential backoff
    up to `policy.max_attempts` total attempts, then surface as
    TransientProviderError. Any other 4xx raises FatalProviderError at once.
    The timeout applies to each attempt, not to the whole call.
    """
    policy = policy or RetryPolicy.from_settings()
    timeout = httpx.Timeout(policy.timeout_s)

    last_exc: TransientProviderError | None = None
    for attempt in range(policy.max_attempts):
        try:
            resp = await client.request(method, url, headers=headers, params=params, json=json, timeout=timeout)
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            last_exc = TransientProviderError(f"{method} {url}: {type(e).__name__}: {e}")
        else:
            if resp.status_code < 400:
                return resp
            if not _is_retryable(resp.status_code):
                raise FatalProviderError(
                    f"{method} {url} returned {resp.status_code}", status_code=resp.status_code
                )
            last_exc = TransientProviderError(
                f"{method} {url} returned {resp.status_code}", status_code=resp.status_code
            )

        if attempt + 1 >= policy.max_attempts:
            break
        delay = policy.backoff(attempt)
        log.warning("retrying %s %s in %.1fs (attempt %d): %s", method, url, delay, attempt + 1, last_exc)
        await sleep(delay)

    assert last_exc is not None
    raise last_exc
