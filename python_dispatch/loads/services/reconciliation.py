"""
Ledger reconciliation service.

Merges carrier order payloads (creation echoes, webhooks, manual syncs) into
Customer and Load rows. A Load is found by (VIN, partner reference) first so
that a vehicle moved to another carrier order keeps its ledger entry, then by
order identifier. Existing values are never replaced by missing ones.
"""
import logging
from datetime import datetime
from typing import List, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from loads.models import Customer, Load
from loads.services.carrier_client import CarrierClient, UpstreamFetchError, get_carrier_client
from loads.services.snapshot import (
    MissingIdentifierError,
    OrderSnapshot,
    build_snapshot,
    extract_bol_url,
)

logger = logging.getLogger(__name__)


def merge_fields(instance, values: dict) -> List[str]:
    """
    Copy non-empty values onto a model instance.

    None and '' never overwrite what is already stored.

    Returns:
        Names of the fields that actually changed
    """
    changed = []
    for name, value in values.items():
        if value is None or value == '':
            continue
        if getattr(instance, name) != value:
            setattr(instance, name, value)
            changed.append(name)
    return changed


def apply_status_timestamps(load: Load, status: Optional[str], now: datetime) -> List[str]:
    """Set picked_up_at / delivered_at the first time the matching status is seen."""
    changed = []
    if status in Load.PICKED_UP_STATUSES and load.picked_up_at is None:
        load.picked_up_at = now
        changed.append('picked_up_at')
    if status in Load.DELIVERED_STATUSES and load.delivered_at is None:
        load.delivered_at = now
        changed.append('delivered_at')
    return changed


def _contact_type(phone: Optional[str]) -> str:
    return Customer.ContactType.INDIVIDUAL if phone else Customer.ContactType.BUSINESS


def resolve_customer(snapshot: OrderSnapshot) -> Optional[Customer]:
    """Find the customer by email, then phone; create or merge it."""
    info = snapshot.customer
    if not info.is_identifiable:
        return None

    customer = None
    if info.email:
        customer = Customer.objects.filter(email=info.email).order_by('id').first()
    if customer is None and info.phone:
        customer = Customer.objects.filter(phone=info.phone).order_by('id').first()

    if customer is None:
        customer = Customer.objects.create(
            name=info.name,
            email=info.email,
            phone=info.phone,
            contact_type=_contact_type(info.phone),
        )
        logger.info(f"Customer {customer.id} created for order {snapshot.order_id}")
        return customer

    changed = merge_fields(customer, {'name': info.name, 'email': info.email, 'phone': info.phone})
    contact_type = _contact_type(customer.phone)
    if customer.contact_type != contact_type:
        customer.contact_type = contact_type
        changed.append('contact_type')
    if changed:
        customer.save(update_fields=changed + ['updated_at'])
        logger.debug(f"Customer {customer.id} updated: {changed}")
    return customer


def find_load(snapshot: OrderSnapshot, for_update: bool = False) -> Optional[Load]:
    """
    Two-phase identity lookup.

    1. (VIN, reference) when both are known: authoritative even if the stored
       order identifier differs (the vehicle moved to another order).
    2. Order identifier.
    """
    queryset = Load.objects.select_for_update() if for_update else Load.objects.all()

    if snapshot.vehicle_vin and snapshot.reference_id:
        load = queryset.filter(
            vehicle_vin=snapshot.vehicle_vin,
            reference_id=snapshot.reference_id
        ).order_by('id').first()
        if load is not None:
            return load

    return queryset.filter(order_id=snapshot.order_id).order_by('id').first()


def find_load_by_identifier(identifier: str) -> Optional[Load]:
    """Resolve an operator-supplied identifier: order_id first, then primary key."""
    load = Load.objects.select_related('customer').filter(order_id=identifier).order_by('id').first()
    if load is None and str(identifier).isdigit():
        load = Load.objects.select_related('customer').filter(pk=int(identifier)).first()
    return load


def backfill_bol_url(
    snapshot: OrderSnapshot,
    existing: Optional[Load],
    client: Optional[CarrierClient] = None,
) -> Optional[str]:
    """
    Fetch the BOL link for a delivered order that has none yet.

    Tries the order detail first, then the dedicated BOL endpoint. Upstream
    errors (including 404 while the BOL is still being generated) are logged
    and yield None; a later sync fills the field.
    """
    if snapshot.status not in Load.DELIVERED_STATUSES or snapshot.bol_url:
        return None
    if existing is not None and existing.bol_url:
        return None

    guid = snapshot.guid or (existing.external_guid if existing is not None else None)
    if not guid:
        return None

    client = client or get_carrier_client()
    logger.info(f"Order {snapshot.order_id} delivered without BOL link, fetching from carrier")

    try:
        bol_url = extract_bol_url(client.get_order(guid))
        if bol_url:
            return bol_url
        return client.get_bol_url(guid)
    except UpstreamFetchError as e:
        if e.not_found:
            logger.info(f"BOL not available yet for order {snapshot.order_id}")
        else:
            logger.error(f"Error fetching BOL for order {snapshot.order_id}: {e}")
        return None


def _write_load(snapshot: OrderSnapshot) -> Load:
    with transaction.atomic():
        customer = resolve_customer(snapshot)
        load = find_load(snapshot, for_update=True)
        now = timezone.now()

        if load is None:
            fields = {name: value for name, value in snapshot.load_fields().items() if value is not None}
            load = Load(customer=customer, **fields)
            apply_status_timestamps(load, snapshot.status, now)
            load.save()
            logger.info(f"Load {load.id} created for order {load.order_id}, status={load.status}")
            return load

        if load.order_id != snapshot.order_id:
            logger.info(
                f"Load {load.id} (VIN {load.vehicle_vin}, reference {load.reference_id}) "
                f"moved from order {load.order_id} to {snapshot.order_id}"
            )

        changed = merge_fields(load, snapshot.load_fields())
        if customer is not None and load.customer_id != customer.id:
            load.customer = customer
            changed.append('customer')
        changed += apply_status_timestamps(load, snapshot.status, now)

        load.save(update_fields=changed + ['updated_at'])
        logger.info(f"Load {load.id} updated for order {load.order_id}: {changed or 'no changes'}")
        return load


def reconcile(payload: dict, client: Optional[CarrierClient] = None) -> Load:
    """
    Merge one carrier order payload into the ledger.

    Args:
        payload: Order JSON; fields may sit at order or vehicle level
        client: Carrier client used for the BOL backfill (defaults to the shared one)

    Returns:
        The created or updated Load with its customer joined

    Raises:
        MissingIdentifierError: If the payload has no order identifier
    """
    snapshot = build_snapshot(payload)

    # Network I/O happens before the write transaction is opened
    bol_url = backfill_bol_url(snapshot, find_load(snapshot), client)
    if bol_url:
        snapshot.bol_url = bol_url

    try:
        load = _write_load(snapshot)
    except IntegrityError:
        # A concurrent reconcile inserted the same (VIN, reference) first; merge into it
        logger.warning(
            f"Concurrent insert for order {snapshot.order_id} "
            f"(VIN {snapshot.vehicle_vin}, reference {snapshot.reference_id}), retrying as update"
        )
        load = _write_load(snapshot)

    return Load.objects.select_related('customer').get(pk=load.pk)


def sync_order(guid: str, client: Optional[CarrierClient] = None) -> Load:
    """
    Pull the current state of an order from the carrier and reconcile it.

    Raises:
        UpstreamFetchError: If the order cannot be fetched
        MissingIdentifierError: If the fetched order has no identifier
    """
    client = client or get_carrier_client()
    order = client.get_order(guid)
    logger.info(f"Fetched order {guid} from carrier, status={order.get('status')}")
    if not order.get('guid'):
        order = {**order, 'guid': guid}
    return reconcile(order, client=client)


__all__ = [
    'MissingIdentifierError',
    'reconcile',
    'sync_order',
    'find_load',
    'find_load_by_identifier',
    'merge_fields',
]
