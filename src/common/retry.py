from __future__ import annotations

import random
import time
from typing import Mapping, Optional, Sequence

import requests

TRANSIENT_EXCEPTIONS = (
    requests.exceptions.Timeout,
    requests.exceptions.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
)


def _backoff_seconds(attempt: int, *, backoff_base: float, backoff_max: float) -> float:
    # exponential backoff with jitter
    delay = backoff_base * (2 ** max(0, attempt - 1))
    return min(backoff_max, delay + random.uniform(0, backoff_base))


def _retry_after_seconds(response: requests.Response) -> Optional[float]:
    retry_after = response.headers.get("Retry-After")
    if retry_after is None:
        return None
    try:
        return max(0.0, float(retry_after))
    except ValueError:
        return None


def http_get_with_retries(
    url: str,
    *,
    params: Optional[Mapping[str, str | int]] = None,
    headers: Optional[Mapping[str, str]] = None,
    timeout: int = 60,
    max_attempts: int = 4,
    backoff_base: float = 0.5,
    backoff_max: float = 8.0,
    status_forcelist: Sequence[int] = (429, 500, 502, 503, 504),
    session: Optional[requests.Session] = None,
) -> requests.Response:
    """
    GET `url`, retrying transient failures.

    Connection errors, timeouts and responses whose status is in
    `status_forcelist` are retried up to `max_attempts` times with
    exponential backoff (a `Retry-After` header takes precedence).
    The response of the last attempt is returned as-is, so callers still
    need `raise_for_status()`. When every attempt fails with a network
    error, that last error is raised.
    """
    getter = session.get if session is not None else requests.get
    last_exc: Exception | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            resp = getter(url, params=params, headers=headers, timeout=timeout)
        except TRANSIENT_EXCEPTIONS as exc:
            last_exc = exc
            if attempt < max_attempts:
                time.sleep(
                    _backoff_seconds(attempt, backoff_base=backoff_base, backoff_max=backoff_max)
                )
            continue

        if resp.status_code in status_forcelist and attempt < max_attempts:
            sleep_sec = _retry_after_seconds(resp)
            if sleep_sec is None:
                sleep_sec = _backoff_seconds(
                    attempt, backoff_base=backoff_base, backoff_max=backoff_max
                )
            print(f"[http] {url} answered {resp.status_code}; retry {attempt}/{max_attempts - 1}")
            time.sleep(sleep_sec)
            continue
        return resp

    assert last_exc is not None
    raise last_exc


__all__ = ["http_get_with_retries"]
