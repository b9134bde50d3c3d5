"""
Mapping of carrier statuses to the partner-facing status vocabulary.
"""
import re
import logging
from typing import Any

logger = logging.getLogger(__name__)

PARTNER_STATUS_MAP = {
    'NEW': 'assigned',
    'PENDING': 'assigned',
    'DISPATCHED': 'assigned',
    'ASSIGNED': 'assigned',
    'ACCEPTED': 'assigned',
    'PICKED_UP': 'picked_up',
    'DELIVERED': 'delivered',
    'COMPLETED': 'delivered',
    'CANCELLED': 'cancelled',
    'CANCELED': 'cancelled',
}


def map_status(status: Any) -> str:
    """
    Translate a carrier status into the partner vocabulary.

    Unmapped statuses are echoed back lower-cased with whitespace collapsed
    to underscores, so the result is always a usable token.

    Args:
        status: Carrier status in any casing (e.g. 'picked up', 'DELIVERED')

    Returns:
        Partner status string; empty string when no status is known
    """
    if status is None:
        return ''

    normalized = re.sub(r'\s+', '_', str(status).strip().upper())
    mapped = PARTNER_STATUS_MAP.get(normalized)
    if mapped:
        return mapped

    if normalized:
        logger.debug(f"Unmapped carrier status passed through: {normalized}")
    return normalized.lower()
