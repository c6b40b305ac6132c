"""Shared validation utilities"""

import re
from typing import Optional
from urllib.parse import urlparse

UK_PHONE_PATTERN = re.compile(r"^(\+44|0|44)?[1-9]\d{8,9}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Trimmed, lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Please enter a valid email address")
    return email


def validate_uk_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate a UK phone number.

    Spaces, dashes and brackets are ignored; +44, 44 and 0 prefixes are accepted.
    Returns the number with those separators removed.

    Raises:
        ValueError: If the number is not a plausible UK number
    """
    if not phone:
        return phone

    cleaned = re.sub(r"[\s\-()]", "", phone)
    if not UK_PHONE_PATTERN.match(cleaned):
        raise ValueError("Please enter a valid UK phone number")
    return cleaned


def validate_website(url: Optional[str]) -> Optional[str]:
    """
    Validate a company website or bare domain (``example.com``).

    Raises:
        ValueError: If the value is not an http(s) URL with a hostname
    """
    if not url or not url.strip():
        return None

    trimmed = url.strip()
    to_parse = trimmed if "://" in trimmed else f"https://{trimmed}"
    parsed = urlparse(to_parse)
    if parsed.scheme not in ("http", "https"):
        raise ValueError("Website must use http:// or https://, or enter a domain (e.g. example.com)")
    if not parsed.hostname or len(parsed.hostname) < 2 or " " in parsed.netloc:
        raise ValueError("Please enter a valid website or domain (e.g. example.com)")
    return trimmed


def validate_slot_time(value: str) -> str:
    """HH:MM, 24-hour clock"""
    value = (value or "").strip()
    if not TIME_PATTERN.match(value):
        raise ValueError("time must be in HH:MM format")
    return value
