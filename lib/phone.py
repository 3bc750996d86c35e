# =============================================================================
# lib/phone.py - Phone Number Normalization
# =============================================================================
# Phone numbers reach us in several shapes: the identity provider hands out
# E.164 ("+821012345678"), while older profile rows were stored in the
# domestic form ("01012345678"). Everything written by the identity bridge
# uses the international form produced by normalize_phone().
#
# Usage:
#   from lib.phone import normalize_phone, to_domestic
#
#   normalize_phone("010-1234-5678")   # "+821012345678"
#   to_domestic("+821012345678")       # "01012345678"
# =============================================================================

import re

DEFAULT_COUNTRY_CODE = "82"

# Domestic numbers shorter than this are left untouched
DOMESTIC_MIN_DIGITS = 10

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Normalize a phone number to the international form stored in profiles.

    Rules, first match wins:
    1. Digits already start with the country code and are long enough to be
       a full international number -> "+<digits>"
    2. Digits start with the domestic trunk prefix "0" -> the leading zero is
       replaced by the country code
    3. At least DOMESTIC_MIN_DIGITS digits -> the country code is prepended
    4. Anything else is returned unchanged

    Args:
        phone: Raw phone number in any punctuation
        country_code: Country calling code without "+"

    Returns:
        Normalized phone number

    Example:
        normalize_phone("+82 10-1234-5678")  # "+821012345678"
        normalize_phone("01012345678")       # "+821012345678"
    """
    digits = _NON_DIGITS.sub("", phone)

    if digits.startswith(country_code) and len(digits) >= len(country_code) + 9:
        return f"+{digits}"
    if digits.startswith("0"):
        return f"+{country_code}{digits[1:]}"
    if len(digits) >= DOMESTIC_MIN_DIGITS:
        return f"+{country_code}{digits}"
    return phone


def to_domestic(phone: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str | None:
    """
    Convert an international number back to the domestic leading-zero form.

    Returns None when the number does not carry the given country prefix.
    """
    prefix = f"+{country_code}"
    if not phone.startswith(prefix):
        return None
    return "0" + phone[len(prefix):]


def phone_lookup_candidates(
    phone: str,
    country_code: str = DEFAULT_COUNTRY_CODE,
) -> list[str]:
    """
    List the stored forms a normalized number may have, in lookup order.

    The international form comes first; the domestic form follows when the
    number can be expressed in it.
    """
    candidates = [phone]
    domestic = to_domestic(phone, country_code)
    if domestic and domestic not in candidates:
        candidates.append(domestic)
    return candidates
