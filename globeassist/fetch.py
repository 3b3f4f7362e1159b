"""Provider HTTP calls that rotate keys and retry transient failures."""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Union, cast

import httpx

from globeassist.dispatcher import RateLimitedDispatcher
from globeassist.errors import (
    ConfigurationError,
    FatalProviderError,
    ProviderExhaustedError,
    TransientProviderError,
)
from globeassist.key_pool import KeyPool
from globeassist.models import ApiKey

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({502, 503})

# Epoch values above this are milliseconds.
_MILLISECOND_THRESHOLD = 1e11


@dataclass
class Ok:
    data: Any


@dataclass
class Retryable:
    reason: str
    rate_limited: bool = False
    resume_at: Optional[float] = None


@dataclass
class Fatal:
    status: int
    reason: str


AttemptResult = Union[Ok, Retryable, Fatal]

AuthStrategy = Callable[[str], Dict[str, str]]
ResetParser = Callable[[httpx.Response, float], Optional[float]]


def bearer_auth(api_key: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {api_key}"}


def api_key_header_auth(api_key: str) -> Dict[str, str]:
    return {"X-API-KEY": api_key}


def _epoch_seconds(raw: Any) -> Optional[float]:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if value <= 0:
        return None
    return value / 1000.0 if value > _MILLISECOND_THRESHOLD else value


def parse_reset_time(response: httpx.Response, now: float) -> Optional[float]:
    """Work out when a rate-limited key may be used again (epoch seconds).

    Checks, in order, OpenRouter's ``error.metadata.headers.X-RateLimit-Reset``
    (epoch milliseconds) in the body, the ``X-RateLimit-Reset`` response header
    and ``Retry-After`` (seconds from now). Returns None when nothing usable is
    present so the pool applies its default cooldown.
    """
    try:
        body = cast(Dict[str, Any], response.json())
    except ValueError:
        body = {}

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            metadata = error.get("metadata")
            if isinstance(metadata, dict):
                headers = metadata.get("headers")
                if isinstance(headers, dict):
                    resume_at = _epoch_seconds(headers.get("X-RateLimit-Reset"))
                    if resume_at is not None:
                        return resume_at

    resume_at = _epoch_seconds(response.headers.get("x-ratelimit-reset"))
    if resume_at is not None:
        return resume_at

    retry_after = response.headers.get("retry-after")
    if retry_after:
        try:
            return now + float(retry_after)
        except ValueError:
            return None
    return None


class ResilientClient:
    """POSTs JSON to one provider with key rotation, backoff and a throttle.

    Every call is queued on the provider's dispatcher, so concurrent callers
    never hit the provider faster than the dispatcher's minimum interval.
    """

    def __init__(
        self,
        name: str,
        http_client: httpx.AsyncClient,
        key_pool: KeyPool,
        dispatcher: RateLimitedDispatcher,
        max_retries: int = 3,
        timeout_seconds: float = 45.0,
        backoff_base_seconds: float = 1.0,
        backoff_max_seconds: float = 20.0,
        max_cooldown_wait_seconds: float = 5.0,
        auth: AuthStrategy = bearer_auth,
        reset_parser: ResetParser = parse_reset_time,
        extra_headers: Optional[Mapping[str, str]] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self.name = name
        self.http_client = http_client
        self.key_pool = key_pool
        self.dispatcher = dispatcher
        self.max_retries = max_retries
        self.timeout = httpx.Timeout(timeout_seconds)
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.max_cooldown_wait_seconds = max_cooldown_wait_seconds
        self.auth = auth
        self.reset_parser = reset_parser
        self.extra_headers: Dict[str, str] = dict(extra_headers or {})
        self._clock = clock
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return self.key_pool.enabled

    async def post_json(self, path: str, payload: Dict[str, Any]) -> Any:
        """Queue a POST on the dispatcher and return the decoded JSON body.

        Raises:
            ConfigurationError: The provider has no credentials.
            FatalProviderError: The provider answered with a non-retryable status.
            ProviderExhaustedError: Every credential failed or is cooling down.
        """
        if not self.key_pool.enabled:
            raise ConfigurationError(f"No API keys configured for {self.name}")
        return await self.dispatcher.enqueue(
            lambda: self._post_with_rotation(path, payload)
        )

    async def open_stream(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        """Open a streaming POST with the next key; the caller must aclose() it.

        Only opening the connection takes a dispatch slot. There is no retry:
        a streamed answer cannot be replayed once chunks reach the client.
        """
        if not self.key_pool.enabled:
            raise ConfigurationError(f"No API keys configured for {self.name}")
        return await self.dispatcher.enqueue(lambda: self._open_stream(path, payload))

    async def _open_stream(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        key = await self.key_pool.select_key()
        headers = {**self.extra_headers, **self.auth(key.key)}
        request = self.http_client.build_request(
            "POST",
            path,
            json=payload,
            headers=headers,
            timeout=self.timeout,
        )
        try:
            response = await self.http_client.send(request, stream=True)
        except httpx.RequestError as exc:
            await self.key_pool.record_error(key.id)
            raise TransientProviderError(f"{self.name} stream failed: {exc}") from exc

        if response.status_code == 200:
            await self.key_pool.record_success(key.id)
            return response

        body = await response.aread()
        await response.aclose()
        await self.key_pool.record_error(key.id)
        if response.status_code == 429:
            await self.key_pool.report_rate_limited(
                key.id, self.reset_parser(response, self._clock())
            )
            raise TransientProviderError(
                f"{self.name} stream rate limited", rate_limited=True
            )
        if response.status_code in RETRYABLE_STATUSES:
            raise TransientProviderError(
                f"{self.name} stream returned {response.status_code}"
            )
        raise FatalProviderError(response.status_code, body.decode(errors="replace"))

    async def _post_with_rotation(self, path: str, payload: Dict[str, Any]) -> Any:
        last_error = ""
        rate_limited = False

        for _ in range(len(self.key_pool)):
            key = await self.key_pool.select_key()
            wait = self.key_pool.seconds_until_available(key)
            if wait > 0:
                if wait > self.max_cooldown_wait_seconds:
                    logger.warning(
                        "%s: every key cooling down, soonest in %.1fs; giving up",
                        self.name,
                        wait,
                    )
                    rate_limited = True
                    break
                await self._sleep(wait)

            for attempt in range(self.max_retries):
                result = await self._attempt(key, path, payload)

                if isinstance(result, Ok):
                    await self.key_pool.record_success(key.id)
                    return result.data

                await self.key_pool.record_error(key.id)

                if isinstance(result, Fatal):
                    logger.error(
                        "%s returned %s for %s (key=%s)",
                        self.name,
                        result.status,
                        path,
                        key.key_prefix(),
                    )
                    raise FatalProviderError(result.status, result.reason)

                last_error = result.reason
                if result.rate_limited:
                    rate_limited = True
                    await self.key_pool.report_rate_limited(key.id, result.resume_at)
                    break

                if attempt + 1 < self.max_retries:
                    delay = self._backoff_delay(attempt)
                    logger.warning(
                        "%s transient failure (key=%s, attempt=%s): %s; retrying in %.2fs",
                        self.name,
                        key.key_prefix(),
                        attempt + 1,
                        result.reason,
                        delay,
                    )
                    await self._sleep(delay)

        logger.error("%s exhausted all credentials: %s", self.name, last_error)
        raise ProviderExhaustedError(last_error, rate_limited=rate_limited)

    async def _attempt(
        self, key: ApiKey, path: str, payload: Dict[str, Any]
    ) -> AttemptResult:
        headers = {**self.extra_headers, **self.auth(key.key)}
        try:
            response = await self.http_client.post(
                path, json=payload, headers=headers, timeout=self.timeout
            )
        except httpx.TimeoutException:
            return Retryable("request timed out")
        except httpx.RequestError as exc:
            return Retryable(f"network error: {exc}")

        status = response.status_code
        if 200 <= status < 300:
            try:
                return Ok(response.json())
            except ValueError:
                return Fatal(status, "response body is not JSON")

        if status == 429:
            return Retryable(
                f"HTTP 429: {response.text[:200]}",
                rate_limited=True,
                resume_at=self.reset_parser(response, self._clock()),
            )

        if status in RETRYABLE_STATUSES:
            return Retryable(f"HTTP {status}: {response.text[:200]}")

        return Fatal(status, response.text)

    def _backoff_delay(self, attempt: int) -> float:
        delay = min(
            self.backoff_base_seconds * (2**attempt), self.backoff_max_seconds
        )
        return delay + random.uniform(0, delay / 2)
