"""
Helper Utilities
Common helper functions
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Union

from claimflow.config.settings import settings


def format_currency(amount: Union[Decimal, float], currency: Optional[str] = None) -> str:
    """
    Format amount as currency
    
    Args:
        amount: Amount to format
        currency: Currency code (defaults to the configured currency)
        
    Returns:
        str: Formatted currency string
    """
    currency = currency or settings.CURRENCY
    if currency == "INR":
        return f"₹{amount:,.2f}"
    return f"{currency} {amount:,.2f}"


def parse_date(value: Any) -> Optional[date]:
    """
    Leniently parse a calendar date
    
    Accepts date objects, "YYYY-MM-DD" strings and ISO datetime strings
    (the date part is kept). Anything unparseable becomes None.
    
    Args:
        value: Raw value from a request payload
        
    Returns:
        date or None
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None


def compose_full_name(first_name: Optional[str], middle_name: Optional[str], last_name: Optional[str]) -> str:
    """
    Join name parts, skipping blanks
    
    Returns:
        str: "First Middle Last" with single spaces
    """
    parts = [part.strip() for part in (first_name, middle_name, last_name) if part and part.strip()]
    return " ".join(parts)
