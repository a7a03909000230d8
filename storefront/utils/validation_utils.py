"""
storefront/utils/validation_utils.py

Purpose: Input validation

- Price, quantity and menu index parsing
- Phone number normalization
- Shop contact line ("phone | email | website")
- Image URL and skip token detection
- Input sanitization
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

from storefront.utils.constants import NO_TOKENS, SKIP_TOKENS, YES_TOKENS

MAX_TEXT_LENGTH = 1000
MAX_PRICE = Decimal("1000000000")
CENT = Decimal("0.01")

_IMAGE_URL = re.compile(r"^https?://\S+$", re.IGNORECASE)
_PHONE_CHARS = re.compile(r"^\+?[\d\s\-().]+$")
_EMAIL = re.compile(r"^[^\s@|]+@[^\s@|]+\.[^\s@|]+$")


def parse_price(text: str) -> Optional[Decimal]:
    """
    Parses a price typed by a user.

    Accepts a comma as decimal separator. The price must be positive with at
    most two decimal places.

    Args:
        text: Raw input

    Returns:
        Decimal price, or None if invalid
    """
    if not text:
        return None

    cleaned = text.strip().replace(" ", "").replace(",", ".")
    try:
        price = Decimal(cleaned)
    except InvalidOperation:
        return None

    if not price.is_finite() or price <= 0 or price >= MAX_PRICE:
        return None
    if price != price.quantize(CENT):
        return None

    return price.quantize(CENT)


def parse_quantity(text: str, allow_zero: bool = True) -> Optional[int]:
    """
    Parses a non-negative integer (stock level).

    Args:
        text: Raw input
        allow_zero: Whether 0 is acceptable

    Returns:
        Integer value, or None if invalid
    """
    if not text:
        return None
    cleaned = text.strip()
    if not re.fullmatch(r"\d{1,9}", cleaned, re.ASCII):
        return None
    value = int(cleaned)
    if value == 0 and not allow_zero:
        return None
    return value


def parse_index(text: str, size: int) -> Optional[int]:
    """
    Parses a 1-based list choice.

    Args:
        text: Raw input
        size: Number of options

    Returns:
        Zero-based index, or None if not a number or out of range
    """
    value = parse_quantity(text, allow_zero=False)
    if value is None or value > size:
        return None
    return value - 1


def validate_phone(text: str) -> Optional[str]:
    """
    Normalizes a phone number.

    Args:
        text: Typed number or shared contact number

    Returns:
        "+<digits>" with 7-15 digits, or None if invalid
    """
    if not text:
        return None
    text = text.strip()
    if not _PHONE_CHARS.match(text):
        return None
    digits = re.sub(r"\D", "", text)
    if not 7 <= len(digits) <= 15:
        return None
    return f"+{digits}"


def parse_contacts(text: str) -> Optional[Tuple[str, str, str]]:
    """
    Parses the shop contact line.

    Args:
        text: "phone | email | website"

    Returns:
        (phone, email, website) as typed, or None unless there are exactly
        three parts with a plausible phone and email
    """
    parts = [part.strip() for part in (text or "").split("|")]
    if len(parts) != 3 or not all(parts):
        return None
    phone, email, website = parts
    if validate_phone(phone) is None or not _EMAIL.match(email):
        return None
    return phone, email, website


def parse_chat_id(text: str) -> Optional[int]:
    if not text:
        return None
    cleaned = text.strip()
    if not re.fullmatch(r"-?\d{1,15}", cleaned, re.ASCII):
        return None
    return int(cleaned)


def is_image_url(text: str) -> bool:
    return bool(text) and bool(_IMAGE_URL.match(text.strip()))


def is_skip(text: Optional[str]) -> bool:
    return bool(text) and text.strip().casefold() in SKIP_TOKENS


def is_yes(text: Optional[str]) -> bool:
    return bool(text) and text.strip().casefold() in YES_TOKENS


def is_no(text: Optional[str]) -> bool:
    return bool(text) and text.strip().casefold() in NO_TOKENS


def sanitize_input(text: Optional[str], max_length: int = MAX_TEXT_LENGTH) -> str:
    """
    Sanitizes free text input.

    - Strips surrounding whitespace
    - Removes control characters (keeps newlines)
    - Limits length

    Args:
        text: Input text
        max_length: Maximum allowed length

    Returns:
        Sanitized text
    """
    if not text:
        return ""
    text = "".join(ch for ch in text if ch == "\n" or ord(ch) >= 32)
    return text.strip()[:max_length]
