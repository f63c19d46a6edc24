"""Utilities package for common functions."""

from .clock import Clock, utc_now
from .parsing import parse_date, parse_datetime, parse_amount, to_naive_utc

__all__ = ['Clock', 'utc_now', 'parse_date', 'parse_datetime', 'parse_amount', 'to_naive_utc']
