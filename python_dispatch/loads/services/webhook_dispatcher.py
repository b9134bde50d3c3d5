"""
Outbound partner webhooks: payload building, delivery with audit log, and
the retry sweep over failed deliveries.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone as dt_timezone
from typing import Optional

import httpx
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from loads.models import Load, WebhookConfig, WebhookDeliveryLog
from loads.services.partner_client import send_to_partner
from loads.services.status_mapping import map_status

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Partner answered a webhook with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None, response_body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


@dataclass
class DeliveryResult:
    success: bool
    status_code: Optional[int] = None
    response_body: Optional[str] = None
    error: Optional[str] = None
    log_id: Optional[int] = None


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """UTC timestamp with millisecond precision, e.g. 2025-11-19T16:00:00.000Z."""
    if value is None:
        return None
    if timezone.is_naive(value):
        value = timezone.make_aware(value, dt_timezone.utc)
    value = value.astimezone(dt_timezone.utc)
    return value.strftime('%Y-%m-%dT%H:%M:%S.') + f'{value.microsecond // 1000:03d}Z'


def format_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def format_eta(moment: Optional[datetime], day: Optional[date]) -> Optional[str]:
    """Prefer the precise timestamp, fall back to the ISO date."""
    return format_timestamp(moment) if moment else format_date(day)


def get_webhook_config(name: Optional[str] = None) -> Optional[WebhookConfig]:
    """Enabled webhook config for the partner, or None."""
    name = name or settings.PARTNER_WEBHOOK_NAME
    return WebhookConfig.objects.filter(name=name, enabled=True).first()


def build_partner_payload(load: Load) -> dict:
    """
    Partner status payload for a ledger entry.

    The BOL link is included whenever it is known, not only on delivery.
    """
    return {
        'order_id': load.order_id or str(load.id),
        'status': map_status(load.status),
        'reference_id': load.reference_id or None,
        'vin': load.vehicle_vin or None,
        'pickup_eta': format_eta(load.pickup_time, load.pickup_date),
        'delivery_eta': format_eta(load.delivery_time, load.delivery_date),
        'bol_link': load.bol_url or None,
    }


def _mark_failed(log: WebhookDeliveryLog, error: str, status_code: Optional[int] = None,
                 response_body: Optional[str] = None) -> DeliveryResult:
    log.status = WebhookDeliveryLog.Status.FAILED
    log.status_code = status_code
    log.error_message = error
    log.response_body = response_body
    log.retry_count += 1
    log.save(update_fields=['status', 'status_code', 'error_message', 'response_body', 'retry_count', 'updated_at'])

    logger.error(
        f"Webhook delivery {log.id} for load {log.load_id} FAILED "
        f"(attempt {log.retry_count}): {error}"
    )
    return DeliveryResult(
        success=False,
        status_code=status_code,
        response_body=response_body,
        error=error,
        log_id=log.id
    )


def _deliver(log: WebhookDeliveryLog, config: WebhookConfig) -> DeliveryResult:
    """POST the log's payload and record the outcome on the same row."""
    try:
        response = send_to_partner(config.webhook_url, log.payload, config.secret_token)
        if not 200 <= response.status_code < 300:
            raise DeliveryError(
                f"Partner webhook returned {response.status_code}",
                status_code=response.status_code,
                response_body=response.text
            )
    except DeliveryError as e:
        return _mark_failed(log, str(e), e.status_code, e.response_body)
    except httpx.HTTPError as e:
        return _mark_failed(log, str(e) or e.__class__.__name__)

    log.status = WebhookDeliveryLog.Status.SUCCESS
    log.status_code = response.status_code
    log.response_body = response.text
    log.error_message = None
    log.delivered_at = timezone.now()
    log.save(update_fields=['status', 'status_code', 'response_body', 'error_message', 'delivered_at', 'updated_at'])

    logger.info(f"Webhook delivery {log.id} for load {log.load_id} SUCCESS ({response.status_code})")
    return DeliveryResult(
        success=True,
        status_code=response.status_code,
        response_body=response.text,
        log_id=log.id
    )


def dispatch(load: Load) -> Optional[DeliveryResult]:
    """
    Send the load's current status to the partner.

    Only partner-tracked shipments (reference and VIN both set) are sent.

    Returns:
        DeliveryResult, or None when the load is not partner-tracked or no
        enabled webhook is configured
    """
    if not load.reference_id:
        logger.info(f"Skipping partner webhook for load {load.order_id or load.id}: no reference_id")
        return None
    if not load.vehicle_vin:
        logger.warning(f"Skipping partner webhook for load {load.order_id or load.id}: no VIN")
        return None

    config = get_webhook_config()
    if config is None:
        logger.warning(f"Partner webhook '{settings.PARTNER_WEBHOOK_NAME}' not configured or disabled")
        return None

    # The log row exists before the network call so a crash still leaves a trace
    log = WebhookDeliveryLog.objects.create(
        webhook_config=config,
        load=load,
        payload=build_partner_payload(load),
        status=WebhookDeliveryLog.Status.PENDING
    )
    return _deliver(log, config)


def retry_failed_deliveries(max_retries: Optional[int] = None, batch_size: Optional[int] = None) -> int:
    """
    Re-attempt failed deliveries for the enabled partner config.

    Oldest first, at most batch_size rows. Each retry is a new log row with a
    payload rebuilt from the load's current state and the attempt count carried
    over; the failed row keeps its outcome and points at the row that replaced it.

    Returns:
        Number of deliveries that succeeded on this sweep
    """
    max_retries = settings.WEBHOOK_MAX_RETRIES if max_retries is None else max_retries
    batch_size = settings.WEBHOOK_RETRY_BATCH_SIZE if batch_size is None else batch_size

    config = get_webhook_config()
    if config is None:
        logger.warning("Retry sweep skipped: partner webhook not configured or disabled")
        return 0

    failed = list(
        WebhookDeliveryLog.objects
        .select_related('load')
        .filter(
            webhook_config=config,
            status=WebhookDeliveryLog.Status.FAILED,
            retry_count__lt=max_retries,
            retried_by__isnull=True
        )
        .order_by('created_at', 'id')[:batch_size]
    )
    logger.info(f"Retry sweep: {len(failed)} failed deliveries below {max_retries} attempts")

    succeeded = 0
    for log in failed:
        with transaction.atomic():
            attempt = WebhookDeliveryLog.objects.create(
                webhook_config=config,
                load=log.load,
                payload=build_partner_payload(log.load),
                status=WebhookDeliveryLog.Status.PENDING,
                retry_count=log.retry_count
            )
            log.retried_by = attempt
            log.save(update_fields=['retried_by', 'updated_at'])

        result = _deliver(attempt, config)
        if result.success:
            succeeded += 1

    logger.info(f"Retry sweep finished: {succeeded}/{len(failed)} delivered")
    return succeeded


def save_webhook_config(webhook_url: str, secret_token: Optional[str] = None, enabled: bool = True,
                        name: Optional[str] = None) -> WebhookConfig:
    """Create or replace the partner webhook config."""
    name = name or settings.PARTNER_WEBHOOK_NAME
    config, created = WebhookConfig.objects.update_or_create(
        name=name,
        defaults={
            'webhook_url': webhook_url,
            'secret_token': secret_token or None,
            'enabled': enabled,
        }
    )
    logger.info(f"Webhook config '{name}' {'created' if created else 'updated'}, enabled={enabled}")
    return config


def set_webhook_enabled(enabled: bool, name: Optional[str] = None) -> Optional[WebhookConfig]:
    """Toggle the partner webhook; None if it was never configured."""
    name = name or settings.PARTNER_WEBHOOK_NAME
    config = WebhookConfig.objects.filter(name=name).first()
    if config is None:
        return None
    config.enabled = enabled
    config.save(update_fields=['enabled', 'updated_at'])
    logger.info(f"Webhook config '{name}' {'enabled' if enabled else 'disabled'}")
    return config
