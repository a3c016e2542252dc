from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Mapping, TypeVar

import httpx
import structlog
from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt
from tenacity.wait import wait_base

_RETRYABLE_STATUSES: set[int] = {408, 429, 500, 502, 503, 504}

GITHUB_API_VERSION = "2022-11-28"

log = structlog.get_logger(__name__)

T = TypeVar("T")


class HttpFetchError(RuntimeError):
    """Base HTTP error."""


class HttpStatusError(HttpFetchError):
    """
    Non-retryable HTTP status (e.g., 401/403/404/422) or any status not in allowed.
    """

    def __init__(
        self,
        *,
        method: str,
        url: str,
        status_code: int,
        body_snippet: str | None,
    ) -> None:
        msg = f"HTTP {status_code} for {method} {url}"
        if body_snippet:
            msg += f" (body: {body_snippet})"
        super().__init__(msg)
        self.method = method
        self.url = url
        self.status_code = status_code


class HttpRetriesExceeded(HttpFetchError):
    def __init__(
        self, *, method: str, url: str, attempts: int, last_error: BaseException
    ) -> None:
        super().__init__(
            f"HTTP retries exceeded for {method} {url} (attempts={attempts}): {last_error}"
        )
        self.method = method
        self.url = url
        self.attempts = attempts
        self.last_error = last_error


def make_http_client(
    *,
    base_url: str,
    token: str | None,
    timeout: httpx.Timeout | None = None,
    user_agent: str = "delete-artifacts",
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Build the shared client used by every fetch task and the deleter.

    `timeout` bounds each individual request; the overall run deadline is
    enforced by the coordinator.
    """
    t = timeout or httpx.Timeout(30.0, connect=5.0, pool=5.0)
    headers = {
        "User-Agent": user_agent,
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        timeout=t,
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )


def is_retryable_status(code: int) -> bool:
    return code in _RETRYABLE_STATUSES


class DeterministicExponentialBackoff(wait_base):
    def __init__(self, *, base: float = 0.5, cap: float = 4.0) -> None:
        self._base = float(base)
        self._cap = float(cap)

    def __call__(self, retry_state) -> float:
        n = retry_state.attempt_number
        if n <= 1:
            return 0.0
        return min(self._cap, self._base * (2 ** (n - 2)))


@dataclass(frozen=True, slots=True)
class RetryableHttpStatus(Exception):
    method: str
    url: str
    status_code: int


def _retrying(
    *,
    method: str,
    url: str,
    max_attempts: int,
    base: float,
    cap: float,
) -> AsyncRetrying:
    def _before_sleep(retry_state) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        sleep = retry_state.next_action.sleep if retry_state.next_action else None
        log.warning(
            "http.retry",
            method=method,
            url=url,
            attempt=retry_state.attempt_number,
            sleep_s=sleep,
            error=repr(exc) if exc else None,
        )

    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=DeterministicExponentialBackoff(base=base, cap=cap),
        retry=retry_if_exception_type(
            (httpx.TimeoutException, httpx.TransportError, RetryableHttpStatus)
        ),
        reraise=False,
        before_sleep=_before_sleep,
    )


async def _run_with_retries(
    *,
    method: str,
    url: str,
    max_attempts: int,
    backoff_base: float,
    backoff_cap: float,
    fn: Callable[[], Awaitable[T]],
) -> T:
    retrying = _retrying(
        method=method,
        url=url,
        max_attempts=max_attempts,
        base=backoff_base,
        cap=backoff_cap,
    )

    attempt_no = 0

    try:
        async for attempt in retrying:
            attempt_no = attempt.retry_state.attempt_number
            with attempt:
                return await fn()

    except RetryError as re:
        last = re.last_attempt.exception()
        raise HttpRetriesExceeded(
            method=method,
            url=url,
            attempts=re.last_attempt.attempt_number,
            last_error=last or Exception("unknown"),
        ) from last

    except HttpFetchError:
        raise

    except Exception as e:
        raise HttpRetriesExceeded(
            method=method,
            url=url,
            attempts=max(attempt_no, 1),
            last_error=e,
        ) from e

    raise RuntimeError("unreachable")


def _body_snippet(resp: httpx.Response, *, limit: int = 200) -> str | None:
    try:
        s = (resp.text or "")[:limit].strip()
        return s or None
    except Exception:
        return None


async def request_with_retries(
    client: httpx.AsyncClient,
    *,
    method: str,
    url: str,
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
    allowed_statuses: Iterable[int] = (200,),
    max_attempts: int = 3,
    backoff_base: float = 0.5,
    backoff_cap: float = 4.0,
) -> httpx.Response:
    allowed = set(allowed_statuses)

    async def _do() -> httpx.Response:
        resp = await client.request(method, url, params=params, headers=headers)

        if resp.status_code in allowed:
            return resp

        snippet = _body_snippet(resp)

        if is_retryable_status(resp.status_code):
            raise RetryableHttpStatus(
                method=method, url=url, status_code=resp.status_code
            )

        raise HttpStatusError(
            method=method,
            url=url,
            status_code=resp.status_code,
            body_snippet=snippet,
        )

    return await _run_with_retries(
        method=method,
        url=url,
        max_attempts=max_attempts,
        backoff_base=backoff_base,
        backoff_cap=backoff_cap,
        fn=_do,
    )
