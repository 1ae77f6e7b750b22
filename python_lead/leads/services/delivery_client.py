"""
HTTP client for delivering forwarded leads and appointments to destination webhooks.
"""
import logging
import json
from typing import Optional

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)


def _format_response(response: httpx.Response) -> str:
    """Return a readable response string (pretty JSON if possible)."""
    try:
        data = response.json()
    except ValueError:
        return response.text
    return json.dumps(data, indent=2, ensure_ascii=False)


def forwarding_timeout() -> float:
    return float(getattr(settings, 'FORWARDING_TIMEOUT_SECONDS', 10))


def send_to_destination(url: str, payload: dict, headers: Optional[dict] = None) -> httpx.Response:
    """
    POST a JSON payload to a destination webhook.

    Args:
        url: Destination callback URL
        payload: Enriched payload
        headers: Traceability headers; Content-Type is always JSON

    Returns:
        HTTP response from the destination, whatever its status code

    Raises:
        httpx.HTTPError: On network/timeout errors
    """
    request_headers = {'Content-Type': 'application/json'}
    request_headers.update(headers or {})
    timeout = forwarding_timeout()

    logger.info(f"Sending payload to destination: {url}")
    logger.debug(f"Payload: {payload}")

    try:
        response = httpx.post(
            url,
            json=payload,
            headers=request_headers,
            timeout=timeout,
        )

        logger.info(f"Destination {url} response: {response.status_code}")
        logger.debug("Destination response body:\n%s", _format_response(response))

        return response

    except httpx.TimeoutException as e:
        logger.error(f"Timeout after {timeout}s sending to {url}: {e}")
        raise
    except httpx.ConnectError as e:
        logger.error(f"Connection error sending to {url}: {e}")
        raise
    except httpx.HTTPError as e:
        logger.error(f"HTTP error sending to {url}: {e}")
        raise
