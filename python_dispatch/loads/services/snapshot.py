"""
Typed view of a carrier order payload.

Carrier payloads put the same facts under different keys, and at either the
order or the vehicle level. build_snapshot() resolves all of that once so the
reconciler only deals with an OrderSnapshot.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from loads.services.normalization import (
    clean_email,
    clean_text,
    first_present,
    get_nested_value,
    normalize_status,
    parse_schedule,
)

logger = logging.getLogger(__name__)

BOL_URL_FIELDS = ('pdf_bol_url_with_template', 'pdf_bol_url', 'online_bol_url', 'bol_url')


class MissingIdentifierError(Exception):
    """Raised when a payload carries none of number, order_id or guid."""
    pass


@dataclass
class StopSnapshot:
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[datetime] = None


@dataclass
class CustomerSnapshot:
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @property
    def is_identifiable(self) -> bool:
        return bool(self.email or self.phone)


@dataclass
class OrderSnapshot:
    order_id: str
    guid: Optional[str] = None
    reference_id: Optional[str] = None
    lot_number: Optional[str] = None
    status: Optional[str] = None
    vehicle_year: Optional[str] = None
    vehicle_make: Optional[str] = None
    vehicle_model: Optional[str] = None
    vehicle_vin: Optional[str] = None
    customer: CustomerSnapshot = field(default_factory=CustomerSnapshot)
    pickup: StopSnapshot = field(default_factory=StopSnapshot)
    delivery: StopSnapshot = field(default_factory=StopSnapshot)
    carrier_name: Optional[str] = None
    carrier_phone: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    bol_url: Optional[str] = None

    def load_fields(self) -> dict:
        """Load column values carried by this snapshot (None where unknown)."""
        return {
            'order_id': self.order_id,
            'external_guid': self.guid,
            'reference_id': self.reference_id,
            'vehicle_year': self.vehicle_year,
            'vehicle_make': self.vehicle_make,
            'vehicle_model': self.vehicle_model,
            'vehicle_vin': self.vehicle_vin,
            'pickup_address': self.pickup.address,
            'pickup_city': self.pickup.city,
            'pickup_state': self.pickup.state,
            'pickup_zip': self.pickup.zip,
            'pickup_date': self.pickup.scheduled_date,
            'pickup_time': self.pickup.scheduled_time,
            'delivery_address': self.delivery.address,
            'delivery_city': self.delivery.city,
            'delivery_state': self.delivery.state,
            'delivery_zip': self.delivery.zip,
            'delivery_date': self.delivery.scheduled_date,
            'delivery_time': self.delivery.scheduled_time,
            'status': self.status,
            'carrier_name': self.carrier_name,
            'carrier_phone': self.carrier_phone,
            'driver_name': self.driver_name,
            'driver_phone': self.driver_phone,
            'bol_url': self.bol_url,
        }


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def select_vehicle(payload: dict) -> dict:
    """
    Pick the vehicle entry to track.

    The first entry of 'vehicles' wins; if it has no VIN the first entry that
    does is used instead. Falls back to the legacy singular 'vehicle'.
    """
    vehicles = payload.get('vehicles')
    if isinstance(vehicles, list):
        entries = [entry for entry in vehicles if isinstance(entry, dict)]
        if entries:
            if clean_text(entries[0].get('vin')):
                return entries[0]
            with_vin = next((entry for entry in entries if clean_text(entry.get('vin'))), None)
            return with_vin or entries[0]
    return _as_dict(payload.get('vehicle'))


def extract_bol_url(data: dict) -> Optional[str]:
    return clean_text(first_present(*(data.get(name) for name in BOL_URL_FIELDS)))


def _stop_snapshot(stop: dict) -> StopSnapshot:
    venue = _as_dict(stop.get('venue'))
    scheduled_time, scheduled_date = parse_schedule(
        first_present(stop.get('scheduled_at'), stop.get('date'))
    )
    return StopSnapshot(
        address=clean_text(first_present(
            venue.get('address'), stop.get('address'), stop.get('street_address')
        )),
        city=clean_text(first_present(venue.get('city'), stop.get('city'))),
        state=clean_text(first_present(venue.get('state'), stop.get('state'))),
        zip=clean_text(first_present(venue.get('zip'), stop.get('zip'))),
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
    )


def build_snapshot(payload: dict) -> OrderSnapshot:
    """
    Normalize a carrier order payload.

    Args:
        payload: Order JSON from order creation, sync, or a carrier webhook

    Returns:
        OrderSnapshot with every field resolved

    Raises:
        MissingIdentifierError: If number, order_id and guid are all missing
    """
    payload = _as_dict(payload)

    order_id = clean_text(first_present(
        payload.get('number'), payload.get('order_id'), payload.get('guid')
    ))
    if not order_id:
        logger.error(f"No order identifier in payload keys: {sorted(payload.keys())}")
        raise MissingIdentifierError("order number, order_id, or guid is required")

    vehicle = select_vehicle(payload)
    lot_number = clean_text(vehicle.get('lot_number'))
    reference_id = clean_text(payload.get('reference_id')) or lot_number
    if lot_number and not clean_text(payload.get('reference_id')):
        logger.debug(f"Order {order_id}: using vehicle lot_number {lot_number} as reference_id")

    # Vehicle-level status is fresher than the order-level one
    status = normalize_status(vehicle.get('status')) or normalize_status(payload.get('status'))

    customer = _as_dict(payload.get('customer'))
    carrier = _as_dict(payload.get('carrier'))

    snapshot = OrderSnapshot(
        order_id=order_id,
        guid=clean_text(payload.get('guid')),
        reference_id=reference_id,
        lot_number=lot_number,
        status=status,
        vehicle_year=clean_text(vehicle.get('year')),
        vehicle_make=clean_text(vehicle.get('make')),
        vehicle_model=clean_text(vehicle.get('model')),
        vehicle_vin=clean_text(vehicle.get('vin')),
        customer=CustomerSnapshot(
            name=clean_text(customer.get('name')),
            email=clean_email(customer.get('email')),
            phone=clean_text(customer.get('phone')),
        ),
        pickup=_stop_snapshot(_as_dict(payload.get('pickup'))),
        delivery=_stop_snapshot(_as_dict(payload.get('delivery'))),
        carrier_name=clean_text(first_present(carrier.get('name'), carrier.get('company_name'))),
        carrier_phone=clean_text(carrier.get('phone')),
        driver_name=clean_text(first_present(
            carrier.get('driver_name'), get_nested_value(carrier, 'driver.name')
        )),
        driver_phone=clean_text(first_present(
            carrier.get('driver_phone'), get_nested_value(carrier, 'driver.phone')
        )),
        bol_url=extract_bol_url(payload),
    )

    logger.debug(
        f"Order {order_id}: status={snapshot.status} vin={snapshot.vehicle_vin} "
        f"reference_id={snapshot.reference_id}"
    )
    return snapshot
