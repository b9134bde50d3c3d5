"""
Order builder for partner order submissions.

Turns a partner's vehicles/pickup/delivery submission into one or more carrier
create-order requests, at most MAX_VEHICLES_PER_ORDER vehicles each, numbered
<prefix><MMDDYY><region><sequence>.
"""
import re
import random
import string
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from loads.models import Load, OrderSequence
from loads.services.normalization import (
    clean_text,
    extract_region_code,
    first_present,
    parse_address,
    parse_zip,
)

logger = logging.getLogger(__name__)

# Carrier limit on vehicles per order
MAX_VEHICLES_PER_ORDER = 3
FALLBACK_REGION_PREFIX = 'X'
SCHEDULE_WINDOW_DAYS = 3


class OrderValidationError(Exception):
    """Raised for a submission that cannot produce any order."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


@dataclass
class OrderRequest:
    order_number: str
    region_code: str
    vehicles: List[dict] = field(default_factory=list)
    reference_id: Optional[str] = None
    payload: dict = field(default_factory=dict)

    @property
    def issue_numbers(self) -> List[str]:
        return [vehicle['issue_number'] for vehicle in self.vehicles if vehicle.get('issue_number')]


def chunk_vehicles(vehicles: list, size: int = MAX_VEHICLES_PER_ORDER) -> List[list]:
    return [vehicles[start:start + size] for start in range(0, len(vehicles), size)]


def is_fallback_region(region_code: str) -> bool:
    return region_code.startswith(FALLBACK_REGION_PREFIX)


def resolve_region_code(delivery: Any, region: Optional[str] = None) -> str:
    """
    Two-letter region for the order number.

    Explicit region first ('XX' counts as unset), then the delivery address.
    When neither yields one, 'X' plus a random uppercase letter is used so the
    submission still goes through.
    """
    explicit = clean_text(region)
    if explicit and explicit.upper() != 'XX':
        return explicit.upper()[:2]

    extracted = extract_region_code(delivery)
    if extracted:
        return extracted

    fallback = f"{FALLBACK_REGION_PREFIX}{random.choice(string.ascii_uppercase)}"
    logger.warning(f"No region in delivery address, using fallback region {fallback}")
    return fallback


def order_prefix(region_code: str, today: date) -> str:
    return f"{settings.ORDER_NUMBER_PREFIX}{today:%m%d%y}{region_code}"


def format_order_number(prefix: str, sequence: int) -> str:
    return f"{prefix}{sequence}"


def highest_ledger_suffix(prefix: str) -> int:
    """Largest numeric suffix among ledger order ids with this exact prefix (0 if none)."""
    pattern = re.compile(rf'^{re.escape(prefix)}(\d+)$')
    highest = 0
    for order_id in Load.objects.filter(order_id__startswith=prefix).values_list('order_id', flat=True):
        match = pattern.match(order_id)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def reserve_sequence(prefix: str, count: int = 1) -> int:
    """
    Reserve `count` consecutive sequence numbers for a prefix.

    The next number follows both the ledger and earlier reservations, so
    numbers handed out for orders that were never echoed back are not reused.

    Returns:
        The first reserved number
    """
    with transaction.atomic():
        sequence, _ = OrderSequence.objects.select_for_update().get_or_create(prefix=prefix)
        first = max(highest_ledger_suffix(prefix), sequence.last_value) + 1
        sequence.last_value = first + count - 1
        sequence.save(update_fields=['last_value', 'updated_at'])

    logger.debug(f"Reserved {prefix} sequence {first}..{first + count - 1}")
    return first


def _is_empty(value: Any) -> bool:
    if value is None or (isinstance(value, str) and value == ''):
        return True
    return isinstance(value, (dict, list)) and not value


def clean_payload(value: Any) -> Any:
    """
    Recursively drop None, '' and containers left empty.

    False and 0 are kept; the carrier treats them as real values.
    """
    if isinstance(value, dict):
        cleaned = {}
        for key, item in value.items():
            item = clean_payload(item)
            if not _is_empty(item):
                cleaned[key] = item
        return cleaned
    if isinstance(value, (list, tuple)):
        return [item for item in (clean_payload(entry) for entry in value) if not _is_empty(item)]
    return value


def _stop_address(stop: dict) -> dict:
    address = stop.get('address')
    if isinstance(address, str):
        return parse_address(address)
    if isinstance(address, dict):
        return dict(address)
    return {}


def _venue(stop: dict, state_hint: Optional[str] = None) -> dict:
    parsed = _stop_address(stop)
    raw_address = stop.get('address') if isinstance(stop.get('address'), str) else None

    venue = {
        'business_type': 'BUSINESS',
        'address': first_present(parsed.get('address'), raw_address),
        'city': first_present(parsed.get('city'), stop.get('city')),
        'state': first_present(parsed.get('state'), stop.get('state'), state_hint),
        'zip': parse_zip(first_present(parsed.get('zip'), stop.get('zip'))),
        'contact_name': settings.ORDER_VENUE_CONTACT_NAME,
        'contact_phone': settings.ORDER_VENUE_CONTACT_PHONE,
    }
    if stop.get('business_name') and not parsed.get('address'):
        venue['name'] = stop['business_name']
    return venue


def _vehicle(vehicle: dict) -> dict:
    return {
        'vin': clean_text(vehicle.get('vin')),
        'year': clean_text(vehicle.get('year')),
        'make': clean_text(vehicle.get('make')),
        'model': clean_text(vehicle.get('model')),
        'status': 'new',
        'inspection_type': 'advanced',
        'type': clean_text(vehicle.get('type')) or 'van',
        'lot_number': clean_text(vehicle.get('issue_number')),
    }


def build_order_payload(
    vehicles: List[dict],
    pickup: dict,
    delivery: dict,
    order_number: str,
    region_code: str,
    today: date,
) -> dict:
    """
    Carrier create-order body for one vehicle group.

    Pickup and delivery are scheduled as an estimated window from today to
    SCHEDULE_WINDOW_DAYS later, 16:00 UTC on both ends.
    """
    window_start = f"{today.isoformat()}T16:00:00.000Z"
    window_end = f"{(today + timedelta(days=SCHEDULE_WINDOW_DAYS)).isoformat()}T16:00:00.000Z"

    customer = dict(settings.ORDER_CUSTOMER)
    customer['zip'] = parse_zip(customer.get('zip'))

    payload = {
        'number': order_number,
        'inspection_type': 'advanced',
        'customer': customer,
        'instructions': settings.ORDER_INSTRUCTIONS,
        'loadboard_instructions': settings.ORDER_LOADBOARD_INSTRUCTIONS,
        'payment': {
            'method': 'other',
            'terms': 'other',
        },
        'pickup': {
            'venue': _venue(pickup),
            'first_available_pickup_date': f"{today.isoformat()}T00:00:00.000Z",
            'date_type': 'estimated',
            'scheduled_at': window_start,
            'scheduled_ends_at': window_end,
            'notes': first_present(pickup.get('notes'), pickup.get('pickup_notes')),
        },
        'delivery': {
            # A fallback region is not a real state, so it never fills the venue
            'venue': _venue(delivery, None if is_fallback_region(region_code) else region_code),
            'date_type': 'estimated',
            'scheduled_at': window_start,
            'scheduled_ends_at': window_end,
            'notes': first_present(delivery.get('notes'), delivery.get('delivery_notes')),
        },
        'vehicles': [_vehicle(vehicle) for vehicle in vehicles],
        'transport_type': 'OPEN',
    }
    return clean_payload(payload)


def build_orders(
    vehicles: List[dict],
    pickup: dict,
    delivery: dict,
    region: Optional[str] = None,
    today: Optional[date] = None,
) -> List[OrderRequest]:
    """
    Split a submission into carrier order requests.

    One call with N vehicle groups reserves N consecutive sequence numbers.

    Raises:
        OrderValidationError: If there are no vehicles
    """
    if not vehicles:
        raise OrderValidationError("At least one vehicle is required", code='MISSING_VEHICLES')

    today = today or timezone.localdate()
    region_code = resolve_region_code(delivery, region)
    groups = chunk_vehicles(list(vehicles))
    prefix = order_prefix(region_code, today)
    first = reserve_sequence(prefix, len(groups))

    requests = []
    for offset, group in enumerate(groups):
        order_number = format_order_number(prefix, first + offset)
        requests.append(OrderRequest(
            order_number=order_number,
            region_code=region_code,
            vehicles=group,
            reference_id=clean_text(group[0].get('issue_number')),
            payload=build_order_payload(group, pickup, delivery, order_number, region_code, today),
        ))
        logger.info(f"Built order {order_number} with {len(group)} vehicle(s)")

    return requests
