"""HTTP transport for the PxWeb API.

This module wraps ``requests`` to talk to a PxWeb endpoint.  A single call
never raises for an ordinary HTTP failure; instead it returns a
:class:`RequestResult` so that :class:`PxClient` can decide on the retry
policy.  Only HTTP 429 is retried: a schema or server error will not be
repaired by asking again.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote

import requests

from . import config
from .errors import PxTransportError

logger = logging.getLogger(__name__)


@dataclass
class RequestResult:
    """Outcome of one HTTP call."""

    ok: bool
    json: Any = None
    status: Optional[int] = None
    status_text: Optional[str] = None
    text: Optional[str] = None
    # False when no HTTP response was received at all (DNS, refused, ...).
    reachable: bool = True


def api_join(base: str, parts: Iterable[str]) -> str:
    """Join a base URL and path parts, URL-encoding each part."""
    segments = [base.rstrip("/")]
    segments.extend(quote(str(part), safe="") for part in parts)
    return "/".join(segments)


def format_error_message(method: str, url: str, result: RequestResult) -> str:
    status_bits = []
    if result.status is not None:
        status_bits.append(str(result.status))
    if result.status_text:
        status_bits.append(result.status_text)
    status_part = " ".join(status_bits).strip()
    message = f"{method} {url}"
    if status_part:
        message += f" -> {status_part}"
    if result.text:
        message += f" {result.text[:200]}"
    return message.strip()


class PxClient:
    """Small PxWeb client with 429-only retry and linear backoff.

    Parameters
    ----------
    bases : Sequence[str], optional
        Candidate API base URLs.  Within each attempt they are tried in
        order and the first one that answers at all is used.
    session : requests.Session, optional
        Session used for every call; one is created when omitted.
    max_attempts : int
        Attempts per request before giving up on HTTP 429.
    backoff_step : float
        Seconds to wait after attempt ``n`` is ``backoff_step * n``.
    sleep : Callable[[float], None]
        Injected for tests.
    """

    def __init__(
        self,
        bases: Optional[Sequence[str]] = None,
        *,
        session: Optional[requests.Session] = None,
        user_agent: str = config.USER_AGENT,
        max_attempts: int = config.MAX_ATTEMPTS,
        backoff_step: float = config.BACKOFF_STEP,
        meta_timeout: float = config.META_TIMEOUT,
        cube_timeout: float = config.CUBE_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.bases: List[str] = list(bases or config.API_BASES)
        if not self.bases:
            raise ValueError("PxClient requires at least one API base")
        self.session = session or requests.Session()
        self.headers = {
            "User-Agent": user_agent,
            "Content-Type": "application/json",
        }
        self.max_attempts = max_attempts
        self.backoff_step = backoff_step
        self.meta_timeout = meta_timeout
        self.cube_timeout = cube_timeout
        self.sleep = sleep

    def request_json(
        self,
        url: str,
        *,
        method: str = "GET",
        body: Optional[Dict[str, Any]] = None,
        timeout: float = config.META_TIMEOUT,
    ) -> RequestResult:
        """Issue a single request and return its outcome without raising."""
        try:
            res = self.session.request(
                method,
                url,
                json=body,
                headers=self.headers,
                timeout=timeout,
            )
        except requests.ConnectTimeout:
            # Also a Timeout; the host never answered, so the next base may.
            return RequestResult(
                ok=False, status_text="timeout", text="Connection timed out", reachable=False
            )
        except requests.Timeout:
            return RequestResult(ok=False, status_text="timeout", text="Request timed out")
        except requests.ConnectionError as exc:
            return RequestResult(ok=False, status_text="error", text=str(exc), reachable=False)
        except requests.RequestException as exc:
            return RequestResult(ok=False, status_text="error", text=str(exc))

        text = res.text or ""
        if not res.ok:
            return RequestResult(
                ok=False,
                status=res.status_code,
                status_text=res.reason,
                text=text,
            )
        if not text.strip():
            return RequestResult(ok=True, json={}, status=res.status_code)
        try:
            payload = res.json()
        except ValueError as exc:
            return RequestResult(
                ok=False,
                status=res.status_code,
                status_text=res.reason,
                text=f"invalid json: {exc}",
            )
        return RequestResult(ok=True, json=payload, status=res.status_code)

    def _attempt(
        self,
        method: str,
        parts: Sequence[str],
        body: Optional[Dict[str, Any]],
        timeout: float,
    ) -> Tuple[str, RequestResult]:
        result = RequestResult(ok=False, status_text="error", reachable=False)
        url = api_join(self.bases[0], parts)
        for base in self.bases:
            url = api_join(base, parts)
            result = self.request_json(url, method=method, body=body, timeout=timeout)
            if result.reachable:
                break
            logger.debug("PxWeb base %s unreachable: %s", base, result.text)
        return url, result

    def _send(
        self,
        method: str,
        parts: Sequence[str],
        body: Optional[Dict[str, Any]],
        timeout: float,
    ) -> Any:
        last_error: Optional[str] = None
        last_status: Optional[int] = None
        last_url: Optional[str] = None
        for attempt in range(1, self.max_attempts + 1):
            url, result = self._attempt(method, parts, body, timeout)
            if result.ok:
                return result.json
            last_error = format_error_message(method, url, result)
            last_status = result.status
            last_url = url
            if result.status == config.RETRY_STATUS and attempt < self.max_attempts:
                delay = self.backoff_step * attempt
                logger.debug(
                    "Rate limited on %s (attempt %s/%s); retrying in %.1fs",
                    url,
                    attempt,
                    self.max_attempts,
                    delay,
                )
                self.sleep(delay)
                continue
            break
        raise PxTransportError(
            last_error or f"{method} request failed",
            status=last_status,
            url=last_url,
        )

    def get_meta(self, parts: Sequence[str]) -> Dict[str, Any]:
        """Fetch table metadata (the variable list)."""
        return self._send("GET", parts, None, self.meta_timeout)

    def post_data(self, parts: Sequence[str], body: Dict[str, Any]) -> Dict[str, Any]:
        """Post a selection query and return the cube payload."""
        payload = dict(body)
        if not payload.get("response"):
            payload["response"] = {"format": "JSON"}
        return self._send("POST", parts, payload, self.cube_timeout)
