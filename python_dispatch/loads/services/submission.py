"""
Partner order intake: validate a submission, create the carrier orders and
record each created order in the ledger.
"""
import json
import logging
from typing import List, Optional, Tuple

from loads.services.carrier_client import CarrierClient, UpstreamFetchError, get_carrier_client
from loads.services.normalization import clean_text
from loads.services.order_builder import OrderValidationError, build_orders
from loads.services.reconciliation import reconcile

logger = logging.getLogger(__name__)

# Rejection codes
MISSING_VEHICLES = 'MISSING_VEHICLES'
MISSING_VIN = 'MISSING_VIN'
MISSING_PICKUP_ADDRESS = 'MISSING_PICKUP_ADDRESS'
MISSING_DELIVERY_ADDRESS = 'MISSING_DELIVERY_ADDRESS'

REJECTION_MESSAGES = {
    MISSING_VEHICLES: 'At least one vehicle is required. Each vehicle must have a VIN.',
    MISSING_VIN: 'All vehicles must have a VIN number',
    MISSING_PICKUP_ADDRESS: 'Pickup address is required',
    MISSING_DELIVERY_ADDRESS: 'Delivery address is required',
}


def _has_address(stop) -> bool:
    if not isinstance(stop, dict):
        return False
    address = stop.get('address')
    if isinstance(address, dict):
        return any(clean_text(value) for value in address.values())
    return clean_text(address) is not None


def validate_submission(data: dict) -> Tuple[bool, Optional[str]]:
    """
    Validates a partner order submission.

    Rules:
    1. vehicles is a non-empty list
    2. every vehicle has a VIN
    3. pickup and delivery each carry an address (string or structured)

    Returns:
        Tuple of (is_valid, rejection_code)
    """
    if not isinstance(data, dict):
        return False, MISSING_VEHICLES

    vehicles = data.get('vehicles')
    if not isinstance(vehicles, list) or not vehicles:
        logger.debug("Validation failed: no vehicles")
        return False, MISSING_VEHICLES

    if any(not isinstance(vehicle, dict) or not clean_text(vehicle.get('vin')) for vehicle in vehicles):
        logger.debug("Validation failed: vehicle without VIN")
        return False, MISSING_VIN

    if not _has_address(data.get('pickup')):
        logger.debug("Validation failed: missing pickup address")
        return False, MISSING_PICKUP_ADDRESS

    if not _has_address(data.get('delivery')):
        logger.debug("Validation failed: missing delivery address")
        return False, MISSING_DELIVERY_ADDRESS

    return True, None


def _error_message(error: UpstreamFetchError) -> str:
    """Prefer the carrier's own message over the generic one."""
    if error.response_body:
        try:
            body = json.loads(error.response_body)
        except ValueError:
            return error.response_body
        if isinstance(body, dict):
            data = body.get('data') if isinstance(body.get('data'), dict) else {}
            message = body.get('message') or data.get('message') or body.get('detail')
            if message:
                return str(message)
    return str(error)


def submit_partner_orders(data: dict, client: Optional[CarrierClient] = None) -> List[dict]:
    """
    Create carrier orders for a partner submission.

    Each vehicle group succeeds or fails on its own; the caller decides the
    overall outcome from the per-order statuses.

    Returns:
        One result dict per order, with status 'created' or 'failed'

    Raises:
        OrderValidationError: If the submission is malformed
    """
    is_valid, code = validate_submission(data)
    if not is_valid:
        raise OrderValidationError(REJECTION_MESSAGES[code], code=code)

    client = client or get_carrier_client()
    requests = build_orders(
        data['vehicles'],
        data['pickup'],
        data['delivery'],
        region=data.get('state'),
    )

    results = []
    for request in requests:
        try:
            order = client.create_order(request.payload)
            logger.info(f"Order {request.order_number} created at carrier: {order.get('guid')}")
            load = reconcile({
                **order,
                'number': order.get('number') or request.order_number,
                'reference_id': request.reference_id,
            }, client=client)
        except UpstreamFetchError as e:
            message = _error_message(e)
            logger.error(f"Error creating order {request.order_number}: {message}")
            results.append({
                'order_number': request.order_number,
                'status': 'failed',
                'error': message,
                'status_code': e.status_code,
            })
            continue

        results.append({
            'order_number': request.order_number,
            'order_id': load.order_id,
            'guid': load.external_guid,
            'load_id': load.id,
            'reference_id': request.reference_id,
            'issue_numbers': request.issue_numbers,
            'vehicles': [
                {'vin': vehicle.get('vin'), 'issue_number': vehicle.get('issue_number')}
                for vehicle in request.vehicles
            ],
            'status': 'created',
        })

    return results
