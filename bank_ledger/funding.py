"""
Funding Source Validation

Precondition checks applied at the request boundary before the ledger runs:
card numbers must pass the Luhn checksum and belong to a recognized card
network, bank transfers need a 9-digit routing number, and amounts must fall
within [1 minor unit, configured maximum].
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import ValidationFailed
from .money import format_minor_units


class FundingSourceType(Enum):
    CARD = "card"
    BANK = "bank"


class CardNetwork(Enum):
    VISA = "visa"
    MASTERCARD = "mastercard"
    AMEX = "amex"
    DISCOVER = "discover"


@dataclass(frozen=True)
class FundingSource:
    """Where the money comes from; never persisted or logged"""
    source_type: FundingSourceType
    account_number: str
    routing_number: Optional[str] = None


_NON_DIGITS = re.compile(r"\D")
_ROUTING_NUMBER = re.compile(r"^\d{9}$")


def _digits(number: str) -> str:
    return _NON_DIGITS.sub("", number or "")


def is_valid_luhn(card_number: str) -> bool:
    """
    Validate a card number with the Luhn checksum.

    Spaces and dashes are ignored. An input without digits is invalid.
    """
    digits = _digits(card_number)
    if not digits:
        return False

    total = 0
    for position, char in enumerate(reversed(digits)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def detect_card_type(card_number: str) -> Optional[CardNetwork]:
    """Card network from the number prefix, or None if unrecognized"""
    digits = _digits(card_number)
    if not digits:
        return None

    # Visa: starts with 4
    if digits.startswith("4"):
        return CardNetwork.VISA

    # Mastercard: 51-55 or 2221-2720
    if re.match(r"^5[1-5]", digits):
        return CardNetwork.MASTERCARD
    if len(digits) >= 4 and 2221 <= int(digits[:4]) <= 2720:
        return CardNetwork.MASTERCARD

    # Amex: 34 or 37, 15 digits
    if re.match(r"^3[47]", digits) and len(digits) == 15:
        return CardNetwork.AMEX

    # Discover: 6011, 622126-622925, 644-649, 65
    if digits.startswith("6011") or digits.startswith("65"):
        return CardNetwork.DISCOVER
    if len(digits) >= 6 and 622126 <= int(digits[:6]) <= 622925:
        return CardNetwork.DISCOVER
    if len(digits) >= 3 and 644 <= int(digits[:3]) <= 649:
        return CardNetwork.DISCOVER

    return None


def is_valid_routing_number(routing_number: Optional[str]) -> bool:
    return bool(routing_number) and _ROUTING_NUMBER.match(routing_number) is not None


def validate_funding_source(source: FundingSource) -> None:
    """
    Raises:
        ValidationFailed: with the message shown to the user
    """
    if not source.account_number or not source.account_number.strip():
        raise ValidationFailed("Account or card number is required")

    if source.source_type == FundingSourceType.CARD:
        if not is_valid_luhn(source.account_number):
            raise ValidationFailed("Invalid card number. Please check the card number and try again.")
        if detect_card_type(source.account_number) is None:
            raise ValidationFailed("Unsupported card type. We accept Visa, Mastercard, American Express and Discover.")
    elif source.source_type == FundingSourceType.BANK:
        if not is_valid_routing_number(source.routing_number):
            raise ValidationFailed("Routing number is required for bank transfers and must be 9 digits")


def validate_funding_amount(amount: int, max_amount: int) -> None:
    """
    Check an amount in minor units against the funding bounds.

    Raises:
        ValidationFailed: below $0.01 or above ``max_amount``
    """
    if amount < 1:
        raise ValidationFailed("Amount must be at least $0.01")
    if amount > max_amount:
        raise ValidationFailed(f"Amount cannot exceed ${format_minor_units(max_amount)}")
