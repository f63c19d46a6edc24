"""Common parsing utility functions.

This module contains helpers that turn Firestore document values (or loose
request values) back into the Python types the account model works with.
"""

import logging
from datetime import datetime, date, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


def parse_date(value: Optional[Union[str, date, datetime]]) -> Optional[date]:
    """
    Parse a date value into a date object.

    Args:
        value: date, datetime (Firestore timestamps included) or string in various formats

    Returns:
        date object or None if parsing fails
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return to_naive_utc(value).date()

    if isinstance(value, date):
        return value

    # Try different date formats
    date_formats = [
        '%Y-%m-%d',     # 2024-01-30
        '%Y-%m-%dT%H:%M:%S',  # 2024-01-30T00:00:00
        '%d/%m/%Y',     # 30/01/2024
        '%d-%m-%Y',     # 30-01-2024
    ]

    for fmt in date_formats:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except (ValueError, AttributeError):
            continue

    # If all formats fail
    logger.warning(f"Could not parse date string: {value}")
    return None


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp into a naive UTC datetime."""
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return to_naive_utc(value)

    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())

    if isinstance(value, str):
        try:
            return to_naive_utc(datetime.fromisoformat(value.strip()))
        except ValueError:
            logger.warning(f"Could not parse datetime string: {value}")
            return None

    logger.warning(f"Unknown datetime type: {type(value)}, value: {value}")
    return None


def parse_amount(amount_value: Optional[Union[str, int, float, Decimal]]) -> Optional[Decimal]:
    """
    Parse a stored amount into a Decimal.

    Args:
        amount_value: Amount as Decimal, string, int, or float

    Returns:
        Decimal value or None if parsing fails
    """
    if amount_value is None:
        return None

    if isinstance(amount_value, Decimal):
        return amount_value

    # Floats go through str() so the decimal expansion is the short repr
    if isinstance(amount_value, (int, float)):
        return Decimal(str(amount_value))

    if isinstance(amount_value, str):
        try:
            clean_amount = amount_value.strip().replace(',', '')
            return Decimal(clean_amount) if clean_amount else None
        except InvalidOperation:
            logger.warning(f"Could not parse amount: {amount_value}")
            return None

    logger.warning(f"Unknown amount type: {type(amount_value)}, value: {amount_value}")
    return None


def to_naive_utc(value: datetime) -> datetime:
    """Drop tzinfo after converting an aware datetime to UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
