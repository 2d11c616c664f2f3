"""Phone number normalization and WhatsApp chat id formatting."""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"\D")

MIN_PHONE_DIGITS = 7
MAX_PHONE_DIGITS = 15

# Calling codes accepted as the leading digits of an international number
VALID_COUNTRY_CODES: tuple[str, ...] = (
    "1", "7", "20", "27", "30", "31", "32", "33", "34", "36", "39", "40", "41",
    "43", "44", "45", "46", "47", "48", "49", "51", "52", "53", "54", "55", "56",
    "57", "58", "60", "61", "62", "63", "64", "65", "66", "81", "82", "84", "86",
    "90", "91", "92", "93", "94", "95", "98", "880", "886", "960", "961", "962",
    "963", "964", "965", "966", "967", "968", "970", "971", "972", "973", "974",
    "975", "976", "977", "978", "979",
)


def digits_only(value: str) -> str:
    return _NON_DIGITS.sub("", value)


def normalize_phone_number(raw: str) -> str:
    """Strip formatting from ``raw`` and validate it as an international number.

    Args:
        raw: Phone number as typed by the caller (``+55 (11) 9 1234-5678``).

    Returns:
        The digits-only number.

    Raises:
        ValueError: If the number is missing, has the wrong length or an
            unknown country code.
    """
    if not raw or not raw.strip():
        raise ValueError("Phone number is required")

    phone = digits_only(raw)
    if not MIN_PHONE_DIGITS <= len(phone) <= MAX_PHONE_DIGITS:
        raise ValueError(
            f"Invalid phone number format. Must be {MIN_PHONE_DIGITS}-{MAX_PHONE_DIGITS} digits"
        )

    if not phone.startswith(VALID_COUNTRY_CODES):
        raise ValueError("Invalid country code in phone number")

    return phone


def to_chat_id(recipient: str) -> str:
    """Turn a recipient into a chat id understood by the messaging client.

    Ids that already carry a server suffix (``...@c.us``, ``...@g.us``) are
    passed through; anything else is reduced to digits on ``c.us``.
    """
    if "@" in recipient:
        return recipient
    return f"{digits_only(recipient)}@c.us"
