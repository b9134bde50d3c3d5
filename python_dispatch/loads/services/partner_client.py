"""
Partner webhook client for pushing load status updates.
"""
import logging
import json
import httpx
from django.conf import settings

logger = logging.getLogger(__name__)


def format_response(response: httpx.Response) -> str:
    """Return a readable response string (pretty JSON if possible)."""
    try:
        data = response.json()
        return json.dumps(data, indent=2, ensure_ascii=False)
    except Exception:
        return response.text


def send_to_partner(webhook_url: str, payload: dict, secret_token: str = None) -> httpx.Response:
    """
    POSTs a status update to the partner webhook.

    Args:
        webhook_url: Partner endpoint from WebhookConfig
        payload: Partner-formatted status payload
        secret_token: Shared secret sent in the signature header, if configured

    Returns:
        HTTP response from the partner (any status code)

    Raises:
        httpx.HTTPError: On network/timeout errors
    """
    headers = {
        'Content-Type': 'application/json',
    }

    if secret_token:
        headers[settings.PARTNER_SIGNATURE_HEADER] = secret_token

    logger.info(f"Sending webhook to partner: {webhook_url}")
    logger.debug(f"Payload: {payload}")

    try:
        response = httpx.post(
            webhook_url,
            json=payload,
            headers=headers,
            timeout=settings.PARTNER_WEBHOOK_TIMEOUT
        )

        logger.info(f"Partner webhook response: {response.status_code}")
        logger.debug("Partner webhook response body:\n%s", format_response(response))

        return response

    except httpx.TimeoutException as e:
        logger.error(f"Timeout sending webhook to partner: {e}")
        raise
    except httpx.ConnectError as e:
        logger.error(f"Connection error sending webhook to partner: {e}")
        raise
    except httpx.HTTPError as e:
        logger.error(f"HTTP error sending webhook to partner: {e}")
        raise
