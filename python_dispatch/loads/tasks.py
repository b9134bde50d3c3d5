"""
Celery tasks for async carrier event processing and partner webhook delivery.
"""
import logging
from typing import Optional, Tuple

from celery import shared_task
from django.utils import timezone

from loads.models import CarrierEvent, Load
from loads.services.carrier_client import UpstreamFetchError
from loads.services.normalization import clean_text, first_present, unwrap_carrier_response
from loads.services.reconciliation import MissingIdentifierError, reconcile, sync_order
from loads.services.webhook_dispatcher import dispatch, retry_failed_deliveries

logger = logging.getLogger(__name__)

ORDER_KEYS = ('number', 'order_id', 'vehicles', 'vehicle')


def extract_event_order(raw_payload) -> Tuple[Optional[dict], Optional[str]]:
    """
    Locate the order inside a carrier webhook body.

    The order may be the body itself, or sit under load_data, order or data.
    Events that only name the order yield (None, guid) so it can be fetched.

    Returns:
        Tuple of (order_payload, guid_to_fetch)
    """
    if not isinstance(raw_payload, dict):
        return None, None

    order = None
    for key in ('load_data', 'order'):
        if isinstance(raw_payload.get(key), dict) and raw_payload[key]:
            order = raw_payload[key]
            break
    if order is None and isinstance(raw_payload.get('data'), dict) and raw_payload['data']:
        order = unwrap_carrier_response(raw_payload)
    if order is None and any(key in raw_payload for key in ORDER_KEYS):
        order = raw_payload

    if order is None:
        guid = clean_text(first_present(
            raw_payload.get('order_guid'), raw_payload.get('load_id'), raw_payload.get('guid')
        ))
        if guid:
            return None, guid
        return raw_payload, None

    # Event-level status applies when the order snapshot carries none
    if not clean_text(order.get('status')) and clean_text(raw_payload.get('status')):
        order = {**order, 'status': raw_payload['status']}
    return order, None


def mark_event_failed(event_id: int, reason: str) -> None:
    try:
        event = CarrierEvent.objects.get(id=event_id)
    except CarrierEvent.DoesNotExist:
        logger.error(f"Carrier event {event_id} not found when marking as FAILED")
        return
    event.status = CarrierEvent.Status.FAILED
    event.rejection_reason = reason[:255]
    event.processed_at = timezone.now()
    event.save()
    logger.error(f"Carrier event {event_id} FAILED: {reason}")


@shared_task(
    bind=True,
    autoretry_for=(UpstreamFetchError,),
    retry_backoff=30,  # Exponential backoff starting at 30s
    retry_backoff_max=480,  # Max backoff of 480s (8 minutes)
    max_retries=5,
    retry_jitter=False  # Disable jitter for predictable backoff
)
def process_carrier_event(self, event_id: int):
    """
    Reconcile a stored carrier webhook into the ledger.

    Workflow:
    1. Load the event
    2. Find the order in the body, or fetch it by GUID
    3. Reconcile into Load/Customer
    4. Mark PROCESSED and link the Load
    5. Dispatch to the partner when the Load carries a partner reference

    A payload without an order identifier marks the event REJECTED and is
    not retried. Carrier API errors are retried with backoff.

    Args:
        event_id: ID of the CarrierEvent to process
    """
    try:
        event = CarrierEvent.objects.get(id=event_id)
        logger.info(f"Processing carrier event {event_id} ({event.event_type}), current status: {event.status}")

        order, guid = extract_event_order(event.raw_payload)

        try:
            if order is None and guid:
                load = sync_order(guid)
            else:
                load = reconcile(order or {})
        except MissingIdentifierError as e:
            event.status = CarrierEvent.Status.REJECTED
            event.rejection_reason = str(e)[:255]
            event.processed_at = timezone.now()
            event.save()
            logger.info(f"Carrier event {event_id} REJECTED: {e}")
            return None

        event.load = load
        event.status = CarrierEvent.Status.PROCESSED
        event.rejection_reason = None
        event.processed_at = timezone.now()
        event.save()
        logger.info(f"Carrier event {event_id} PROCESSED into load {load.id} ({load.order_id})")

        if load.reference_id:
            result = dispatch(load)
            if result is not None and not result.success:
                logger.warning(
                    f"Partner webhook for load {load.id} failed, queued for retry sweep "
                    f"(delivery {result.log_id})"
                )
        return load.id

    except CarrierEvent.DoesNotExist:
        logger.error(f"Carrier event {event_id} not found in database")
        raise

    except UpstreamFetchError as e:
        # Handle max retry exhaustion
        if self.request.retries >= self.max_retries:
            mark_event_failed(event_id, f"Max retries exhausted: {e}")
        else:
            logger.warning(
                f"Carrier event {event_id}: carrier API error, "
                f"will retry (attempt {self.request.retries + 1}/{self.max_retries + 1})"
            )
        raise


@shared_task
def dispatch_load_webhook(load_id: int):
    """Send the current status of one load to the partner."""
    try:
        load = Load.objects.select_related('customer').get(id=load_id)
    except Load.DoesNotExist:
        logger.error(f"Load {load_id} not found in database")
        raise

    result = dispatch(load)
    if result is None:
        return None
    return {
        'success': result.success,
        'status_code': result.status_code,
        'error': result.error,
        'log_id': result.log_id,
    }


@shared_task
def retry_failed_webhooks(max_retries: Optional[int] = None):
    """Scheduled or operator-triggered retry sweep over failed deliveries."""
    succeeded = retry_failed_deliveries(max_retries=max_retries)
    logger.info(f"Retry task delivered {succeeded} previously failed webhook(s)")
    return succeeded
