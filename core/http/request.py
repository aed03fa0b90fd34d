"""
Shared HTTP request helpers for service backends.

Keeps JSON request/response handling and error mapping consistent across
clients. Connection failures and server-side errors surface as
``RemoteNetworkError``; a response the server rejected as invalid surfaces
as ``RemoteValidationError``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import aiohttp

from core.exceptions import RemoteNetworkError, RemoteValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

# Client-side statuses that still mean "try again later" rather than "invalid".
_TRANSIENT_CLIENT_STATUSES = {408, 425, 429}


async def request_json(
    method: str,
    url: str,
    *,
    session: Any,
    params: dict[str, Any] | None = None,
    json: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    expected_status: int | Iterable[int] = 200,
    none_on: Iterable[int] | None = None,
    service_name: str = "Service",
    timeout: Any | None = None,
) -> Any | None:
    method_upper = method.upper()
    if isinstance(expected_status, int):
        expected = {expected_status}
    else:
        expected = set(expected_status)
    none_on_set = set(none_on or [])

    request_fn = getattr(session, "request", None)
    if request_fn is None:
        msg = f"{service_name} request error: session cannot send {method_upper}"
        raise RemoteValidationError(msg, {"url": url})

    request_kwargs: dict[str, Any] = {
        "params": params,
        "json": json,
        "headers": headers,
    }
    if timeout is not None:
        request_kwargs["timeout"] = timeout

    try:
        async with request_fn(method_upper, url, **request_kwargs) as response:
            if response.status in none_on_set:
                logger.debug("%s returned %s for %s", service_name, response.status, url)
                return None
            if response.status not in expected:
                body = await response.text()
                msg = f"{service_name} error: {response.status}"
                details = {
                    "status": response.status,
                    "body": body,
                    "url": str(getattr(response, "url", url)),
                }
                if (
                    400 <= response.status < 500
                    and response.status not in _TRANSIENT_CLIENT_STATUSES
                ):
                    raise RemoteValidationError(msg, details)
                raise RemoteNetworkError(msg, details)
            if response.status == 204:
                return None
            try:
                return await response.json()
            except ValueError as exc:
                msg = f"{service_name} returned a malformed JSON body"
                raise RemoteValidationError(msg, {"url": url}) from exc
    except aiohttp.ContentTypeError as exc:
        msg = f"{service_name} returned a non-JSON body"
        raise RemoteValidationError(msg, {"url": url}) from exc
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        # Any other transport failure is a network error.
        msg = f"{service_name} unreachable: {exc.__class__.__name__}"
        raise RemoteNetworkError(msg, {"url": url}) from exc
