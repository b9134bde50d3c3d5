"""
Normalization helpers for loosely shaped carrier and partner data.

Nothing in here raises on bad input: unparseable values degrade to None
(or, for addresses, to the raw text in the address field).
"""
import re
import logging
from datetime import date, datetime, timezone as dt_timezone
from typing import Any, Optional, Tuple

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

logger = logging.getLogger(__name__)

ZIP_PATTERN = r'\d{5}(?:-\d{4})?'
STATE_ZIP_RE = re.compile(rf'^([A-Za-z]{{2}})\s+({ZIP_PATTERN})$')
TRAILING_STATE_ZIP_RE = re.compile(rf'\b([A-Za-z]{{2}})\s+({ZIP_PATTERN})$')
STATE_ONLY_RE = re.compile(r'^([A-Za-z]{2})$')
SUFFIX_ZIP_RE = re.compile(rf'(?:^|[\s,])([A-Za-z]{{2}})\s+({ZIP_PATTERN})\s*$')
# Without a ZIP only an uppercase code counts, so "123 Main St" keeps its "St"
TRAILING_STATE_RE = re.compile(r'\s([A-Z]{2})$')
SUFFIX_STATE_RE = re.compile(r'(?:^|[\s,])([A-Z]{2})\s*$')


def get_nested_value(data: dict, path: str, default=None):
    """
    Get a value from a nested dictionary using dot notation.

    Args:
        data: The dictionary to search
        path: Dot-separated path (e.g., 'carrier.driver.name')
        default: Default value if path not found

    Returns:
        The value at the path or default
    """
    keys = path.split('.')
    value = data
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def first_present(*values: Any) -> Any:
    """Return the first value that is neither None nor a blank string."""
    for value in values:
        if not is_blank(value):
            return value
    return None


def clean_text(value: Any) -> Optional[str]:
    """
    Trim strings and stringify scalars; blank becomes None.

    Carrier payloads send years and ZIPs as numbers or strings interchangeably.
    """
    if is_blank(value):
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (dict, list)):
        return None
    return str(value).strip()


def clean_email(value: Any) -> Optional[str]:
    email = clean_text(value)
    return email.lower() if email else None


def normalize_status(value: Any) -> Optional[str]:
    """Uppercase, trim, and collapse whitespace runs to underscores."""
    text = clean_text(value)
    if not text:
        return None
    return re.sub(r'\s+', '_', text.upper())


def _as_aware(value: datetime) -> datetime:
    if timezone.is_naive(value):
        return timezone.make_aware(value, dt_timezone.utc)
    return value


def parse_schedule(value: Any) -> Tuple[Optional[datetime], Optional[date]]:
    """
    Parse a scheduled date or timestamp.

    Returns:
        Tuple of (timestamp, day)
        - date-only input: (None, day)
        - full timestamp: (aware timestamp, its UTC day)
        - missing or malformed input: (None, None)
    """
    if value is None:
        return None, None
    if isinstance(value, datetime):
        moment = _as_aware(value)
        return moment, moment.astimezone(dt_timezone.utc).date()
    if isinstance(value, date):
        return None, value

    text = clean_text(value)
    if not text:
        return None, None

    try:
        day = parse_date(text)
        if day:
            return None, day
        moment = parse_datetime(text)
    except ValueError:
        logger.debug(f"Unparseable schedule value: {text!r}")
        return None, None

    if moment is None:
        logger.debug(f"Unparseable schedule value: {text!r}")
        return None, None

    moment = _as_aware(moment)
    return moment, moment.astimezone(dt_timezone.utc).date()


def _empty_address(text: Any) -> dict:
    return {'address': text, 'city': None, 'state': None, 'zip': None}


def parse_address(address: Any) -> dict:
    """
    Split a free-text US address into components.

    Accepted shapes:
    - "123 Main St, Venice, FL 34292"
    - "123 Main St, Venice, FL"
    - "123 Main St, Venice FL 34292"
    - "123 Main St, Venice FL"
    - "123 Main St Venice FL 34292" (state/zip suffix only)

    Falls back to the whole string in 'address' with city/state/zip None.
    """
    if not isinstance(address, str) or not address.strip():
        return _empty_address(address if address is not None else '')

    trimmed = address.strip()
    parts = [part.strip() for part in trimmed.split(',')]

    if len(parts) >= 3:
        last = parts[-1]
        match = STATE_ZIP_RE.match(last)
        if match:
            return {
                'address': ', '.join(parts[:-2]),
                'city': parts[-2],
                'state': match.group(1).upper(),
                'zip': match.group(2),
            }
        match = STATE_ONLY_RE.match(last)
        if match:
            return {
                'address': ', '.join(parts[:-2]),
                'city': parts[-2],
                'state': match.group(1).upper(),
                'zip': None,
            }

    if len(parts) == 2:
        last = parts[1]
        match = TRAILING_STATE_ZIP_RE.search(last)
        if match:
            return {
                'address': parts[0],
                'city': last[:match.start()].strip() or None,
                'state': match.group(1).upper(),
                'zip': match.group(2),
            }
        match = TRAILING_STATE_RE.search(last)
        if match:
            return {
                'address': parts[0],
                'city': last[:match.start()].strip() or None,
                'state': match.group(1).upper(),
                'zip': None,
            }

    match = SUFFIX_ZIP_RE.search(trimmed) or SUFFIX_STATE_RE.search(trimmed)
    if match:
        state = match.group(1).upper()
        zip_code = match.group(2) if match.re is SUFFIX_ZIP_RE else None
        before = trimmed[:match.start()].strip().rstrip(',').strip()
        pieces = [piece.strip() for piece in before.split(',')]
        if len(pieces) >= 2:
            return {
                'address': ', '.join(pieces[:-1]),
                'city': pieces[-1] or None,
                'state': state,
                'zip': zip_code,
            }
        return {'address': before, 'city': None, 'state': state, 'zip': zip_code}

    return _empty_address(address)


def parse_zip(value: Any):
    """Five-digit ZIPs become ints (the carrier expects numbers), others stay strings."""
    text = clean_text(value)
    if not text:
        return None
    if len(text) == 5 and text.isdecimal():
        return int(text)
    return text


def extract_region_code(delivery: Any) -> Optional[str]:
    """
    Two-letter region (state) code for a delivery stop.

    Checks an explicit 'state', then a structured address, then parses
    the address string.
    """
    if not isinstance(delivery, dict):
        return None

    state = clean_text(delivery.get('state'))
    if state:
        return state.upper()[:2]

    address = delivery.get('address')
    if isinstance(address, dict):
        state = clean_text(address.get('state'))
        if state:
            return state.upper()[:2]
    elif isinstance(address, str):
        state = parse_address(address)['state']
        if state:
            return state.upper()[:2]

    return None


def unwrap_carrier_response(body: Any) -> dict:
    """Carrier responses nest the order under data.object, data, or not at all."""
    if not isinstance(body, dict):
        return {}
    data = body.get('data')
    if isinstance(data, dict):
        inner = data.get('object')
        if isinstance(inner, dict):
            return inner
        return data
    return body
