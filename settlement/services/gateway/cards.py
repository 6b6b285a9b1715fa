"""Card metadata helpers. Pure functions; the full card number is never stored."""
import re

_SEPARATORS = re.compile(r"[\s-]+")

# Leading digit -> brand
_BRANDS = {
    "4": "Visa",
    "5": "Mastercard",
    "3": "American Express",
    "6": "Discover",
}


def normalize_card_number(card_number: str | None) -> str | None:
    if not card_number:
        return None
    normalized = _SEPARATORS.sub("", card_number)
    return normalized or None


def card_last_four(card_number: str | None) -> str | None:
    normalized = normalize_card_number(card_number)
    if not normalized:
        return None
    return normalized[-4:]


def card_brand(card_number: str | None) -> str | None:
    normalized = normalize_card_number(card_number)
    if not normalized:
        return None
    return _BRANDS.get(normalized[0])
