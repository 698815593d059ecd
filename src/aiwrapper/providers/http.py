"""JSON-over-HTTP transport shared by the httpx based adapters."""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from ..utils.errors import ProviderRequestError
from .base import is_retryable_status

logger = logging.getLogger(__name__)


def _parse_body(raw: str) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _error_details(payload: Any) -> Dict[str, Optional[str]]:
    if not isinstance(payload, dict):
        return {"message": None, "code": None}

    nested = payload.get("error")
    if isinstance(nested, dict):
        return {
            "message": nested.get("message") or payload.get("message"),
            "code": nested.get("code") or nested.get("type") or payload.get("code"),
        }
    if isinstance(nested, str):
        return {"message": nested, "code": payload.get("code")}
    return {"message": payload.get("message"), "code": payload.get("code")}


async def request_json(
    client: httpx.AsyncClient,
    provider: str,
    model: str,
    url: str,
    body: Dict[str, Any],
    timeout_seconds: float,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    """POST a JSON body and return the decoded response.

    Every failure is normalized into ``ProviderRequestError`` so the fallback
    executor can log it uniformly.

    Raises:
        ProviderRequestError: non-2xx status (retryable per status), timeout
            (code TIMEOUT) or transport failure (code NETWORK_ERROR)
    """
    try:
        response = await client.post(
            url,
            json={k: v for k, v in body.items() if v is not None},
            headers={"Content-Type": "application/json", **(headers or {})},
            timeout=timeout_seconds,
        )
    except httpx.TimeoutException as e:
        raise ProviderRequestError(
            f"{provider} request timed out after {int(timeout_seconds * 1000)}ms",
            provider=provider,
            model=model,
            status=None,
            retryable=True,
            code="TIMEOUT",
        ) from e
    except httpx.HTTPError as e:
        raise ProviderRequestError(
            f"{provider} request failed before response",
            provider=provider,
            model=model,
            status=None,
            retryable=True,
            code="NETWORK_ERROR",
        ) from e

    payload = _parse_body(response.text)

    if response.is_error:
        details = _error_details(payload)
        status = response.status_code
        raise ProviderRequestError(
            details["message"] or f"{provider} request failed with status {status}",
            provider=provider,
            model=model,
            status=status,
            retryable=is_retryable_status(status),
            code=details["code"],
        )

    return payload
