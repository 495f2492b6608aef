"""
Shared httpx plumbing for the remote ("http") providers.

Translates httpx exceptions into the categories the submission pipeline
understands: ``TimeoutError`` / ``ConnectionError`` for transient transport
failures (retryable), and the caller-supplied domain error for everything
else (HTTP status errors, malformed responses).
"""

import logging
from collections.abc import Callable

import httpx

from voicememo.core.exceptions import VoiceMemoError

logger = logging.getLogger(__name__)


def _status_detail(exc: httpx.HTTPStatusError) -> str:
    try:
        return str(exc.response.json().get("detail", exc.response.text))
    except Exception:
        return exc.response.text or str(exc)


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    path: str,
    service: str,
    error_cls: Callable[[str], VoiceMemoError],
    **kwargs,
) -> dict:
    """Execute a request and return the decoded JSON body.

    Args:
        client: The provider's AsyncClient.
        method: HTTP method ("get", "post", ...).
        path: Endpoint path relative to the client's base URL.
        service: Human-readable service name for messages.
        error_cls: Domain exception raised for non-transient failures.
        **kwargs: Passed through to httpx (json, files, timeout, etc.).

    Raises:
        TimeoutError: The request timed out.
        ConnectionError: Refused, reset or unresolvable host.
        VoiceMemoError: ``error_cls`` for any other failure.
    """
    try:
        resp = await client.request(method, path, **kwargs)
        resp.raise_for_status()
        return resp.json()
    except httpx.TimeoutException as exc:
        logger.warning("%s timeout: %s", service, exc)
        raise TimeoutError(f"{service} request timed out: {exc}") from exc
    except (httpx.NetworkError, httpx.RemoteProtocolError) as exc:
        logger.warning("%s connection error: %s", service, exc)
        raise ConnectionError(f"Failed to connect to {service}: {exc}") from exc
    except httpx.HTTPStatusError as exc:
        detail = _status_detail(exc)
        logger.error("%s returned %s: %s", service, exc.response.status_code, detail)
        raise error_cls(f"{service} error ({exc.response.status_code}): {detail}") from exc
    except httpx.HTTPError as exc:
        logger.error("%s request failed: %s", service, exc)
        raise error_cls(f"{service} request failed: {exc}") from exc
    except ValueError as exc:
        raise error_cls(f"{service} returned an invalid response: {exc}") from exc
