"""
Loan Policy Evaluation
======================

Pure rules over ``(property_price, bank_policy)`` that decide whether a loan
request is admissible and which bonuses apply.

Rules
-----
1. **Down payment floor**: a minimum percentage of the price, split into a
   LOW band (price <= threshold) and a HIGH band.
2. **Financing ceiling**: a maximum percentage of the price, same bands.
3. **Coherence**: ``down_payment + financed + bonuses == price`` within one
   cent of rounding slack.
4. **NCMV eligibility**: the subsidized-housing program only finances
   properties inside ``[ncmv_min, ncmv_max]`` (a higher maximum applies with
   credit-risk coverage) and requires a statutory minimum down payment.
5. **PBP ("good payer") bonus**: standard amount for
   ``[ncmv_min, pbp_threshold_low)``, plus amount for
   ``[pbp_threshold_low, ncmv_max]``, zero otherwise.
6. **Government housing bonus**: fixed amount per bonus type, only for
   properties priced at or below 200,000.

Boundary comparisons are inclusive on the side that favors the borrower
(``>=`` for floors, ``<=`` for ceilings).

The bank policy is read-only reference data supplied by the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Union

from .errors import InvalidInputError, PolicyViolationError
from .schedule import ZERO, to_decimal, to_money

logger = logging.getLogger("MORTGAGE.Policy")

Number = Union[int, float, Decimal]

COHERENCE_TOLERANCE = Decimal("0.01")
GOVERNMENT_BONUS_PRICE_CAP = Decimal("200000")
HUNDRED = Decimal("100")


class PriceBand(str, Enum):
    """Property-value band relative to the bank's price threshold."""

    LOW = "LOW"
    HIGH = "HIGH"


class BonusType(str, Enum):
    """
    Government housing bonus kinds.

    Attributes
    ----------
    ACQUISITION : str
        Purchase of a finished home.
    CONSTRUCTION : str
        Construction on the applicant's own land.
    IMPROVEMENT : str
        Improvement of an existing home.
    """

    ACQUISITION = "ACQUISITION"
    CONSTRUCTION = "CONSTRUCTION"
    IMPROVEMENT = "IMPROVEMENT"


GOVERNMENT_BONUS_AMOUNTS: Dict[BonusType, Decimal] = {
    BonusType.ACQUISITION: Decimal("37800"),
    BonusType.CONSTRUCTION: Decimal("28400"),
    BonusType.IMPROVEMENT: Decimal("18900"),
}


class PBPTier(str, Enum):
    """Tier of the good-payer bonus."""

    NONE = "NONE"
    STANDARD = "STANDARD"
    PLUS = "PLUS"


@dataclass(frozen=True)
class BankPolicy:
    """
    Lending rules of one bank.

    All amounts are in the base currency; percentages are percentages
    (``7.5`` means 7.5%).

    Parameters
    ----------
    name : str
        Bank name, for display.
    price_threshold : Decimal
        Price splitting the LOW and HIGH bands (LOW is inclusive).
    min_down_payment_low_pct, min_down_payment_high_pct : Decimal
        Minimum down payment per band.
    max_financing_low_pct, max_financing_high_pct : Decimal
        Maximum financed share per band.
    disgravamen_rate : Decimal
        Default monthly disgravamen rate.
    ncmv_min_property_value, ncmv_max_property_value : Decimal
        NCMV eligibility band.
    ncmv_max_property_value_crc : Decimal
        NCMV maximum when credit-risk coverage is used.
    ncmv_min_down_payment_pct : Decimal
        Statutory NCMV minimum down payment.
    pbp_threshold_low : Decimal
        Price at which the PBP plus tier starts.
    pbp_amount_standard, pbp_amount_plus : Decimal
        PBP bonus amounts.
    supports_ncmv : bool
        Whether the bank participates in NCMV (enables the range check).
    """

    name: str = "Default Bank"
    price_threshold: Decimal = Decimal("244600.00")
    min_down_payment_low_pct: Decimal = Decimal("7.5")
    min_down_payment_high_pct: Decimal = Decimal("10.0")
    max_financing_low_pct: Decimal = Decimal("92.5")
    max_financing_high_pct: Decimal = Decimal("90.0")
    disgravamen_rate: Decimal = Decimal("0.00049")
    ncmv_min_property_value: Decimal = Decimal("68800.00")
    ncmv_max_property_value: Decimal = Decimal("362100.00")
    ncmv_max_property_value_crc: Decimal = Decimal("488800.00")
    ncmv_min_down_payment_pct: Decimal = Decimal("7.5")
    pbp_threshold_low: Decimal = Decimal("102900.00")
    pbp_amount_standard: Decimal = Decimal("6400.00")
    pbp_amount_plus: Decimal = Decimal("17700.00")
    supports_ncmv: bool = True

    def __post_init__(self) -> None:
        for name, value in list(self.__dict__.items()):
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                object.__setattr__(self, name, to_decimal(value))
        if self.ncmv_min_property_value > self.ncmv_max_property_value:
            raise InvalidInputError("NCMV minimum property value exceeds the maximum")


@dataclass(frozen=True)
class DownPaymentInfo:
    """Down-payment and financing limits for a given price."""

    property_price: Decimal
    price_band: PriceBand
    min_down_payment_pct: Decimal
    min_down_payment_amount: Decimal
    max_financing_pct: Decimal
    max_financing_amount: Decimal
    bank_name: str


def _amount(value: Number) -> Decimal:
    amount = to_decimal(value)
    if amount is None:
        raise InvalidInputError("Amount is required")
    return amount


def _percent_of(price: Decimal, pct: Decimal) -> Decimal:
    return to_money(price * pct / HUNDRED)


def price_band(property_price: Number, policy: BankPolicy) -> PriceBand:
    """LOW when the price is at or below the threshold, HIGH otherwise."""
    return PriceBand.LOW if _amount(property_price) <= policy.price_threshold else PriceBand.HIGH


def min_down_payment_pct(property_price: Number, policy: BankPolicy) -> Decimal:
    """Minimum down payment percentage for the price band."""
    if price_band(property_price, policy) == PriceBand.LOW:
        return policy.min_down_payment_low_pct
    return policy.min_down_payment_high_pct


def min_down_payment_amount(property_price: Number, policy: BankPolicy) -> Decimal:
    """Minimum down payment amount, rounded to cents."""
    price = _amount(property_price)
    return _percent_of(price, min_down_payment_pct(price, policy))


def max_financing_pct(property_price: Number, policy: BankPolicy) -> Decimal:
    """Maximum financing percentage for the price band."""
    if price_band(property_price, policy) == PriceBand.LOW:
        return policy.max_financing_low_pct
    return policy.max_financing_high_pct


def max_financing_amount(property_price: Number, policy: BankPolicy) -> Decimal:
    """Maximum financed amount, rounded to cents."""
    price = _amount(property_price)
    return _percent_of(price, max_financing_pct(price, policy))


def is_down_payment_valid(property_price: Number, down_payment: Number, policy: BankPolicy) -> bool:
    """True when the down payment reaches the band minimum (inclusive)."""
    minimum = min_down_payment_amount(property_price, policy)
    valid = _amount(down_payment) >= minimum
    logger.debug("Down payment %s vs minimum %s: %s", down_payment, minimum, valid)
    return valid


def is_financing_amount_valid(property_price: Number, financed: Number, policy: BankPolicy) -> bool:
    """True when the financed amount stays within the band ceiling (inclusive)."""
    maximum = max_financing_amount(property_price, policy)
    valid = _amount(financed) <= maximum
    logger.debug("Financed %s vs maximum %s: %s", financed, maximum, valid)
    return valid


def validate_amount_coherence(
    property_price: Number,
    down_payment: Number,
    financed: Number,
    bonuses: Optional[Number] = None,
) -> bool:
    """
    Check that down payment, financed amount and bonuses add up to the price.

    Parameters
    ----------
    property_price : Number
        Property price.
    down_payment : Number
        Down payment.
    financed : Number
        Amount to finance.
    bonuses : Optional[Number]
        Total bonuses (government + PBP); ``None`` counts as zero.

    Returns
    -------
    bool
        True when ``|down_payment + financed + bonuses - price| <= 0.01``.
    """
    total = _amount(down_payment) + _amount(financed) + (to_decimal(bonuses) or ZERO)
    return abs(total - _amount(property_price)) <= COHERENCE_TOLERANCE


def down_payment_info(property_price: Number, policy: BankPolicy) -> DownPaymentInfo:
    """Collect the down-payment and financing limits for a price."""
    price = _amount(property_price)
    return DownPaymentInfo(
        property_price=price,
        price_band=price_band(price, policy),
        min_down_payment_pct=min_down_payment_pct(price, policy),
        min_down_payment_amount=min_down_payment_amount(price, policy),
        max_financing_pct=max_financing_pct(price, policy),
        max_financing_amount=max_financing_amount(price, policy),
        bank_name=policy.name,
    )


def require_valid_down_payment(property_price: Number, down_payment: Number, policy: BankPolicy) -> None:
    """
    Raise when the down payment is below the bank's band minimum.

    Raises
    ------
    PolicyViolationError
        With the minimum as ``threshold`` and the shortfall as ``difference``.
    """
    price = _amount(property_price)
    paid = _amount(down_payment)
    if is_down_payment_valid(price, paid, policy):
        return

    pct = min_down_payment_pct(price, policy)
    minimum = min_down_payment_amount(price, policy)
    shortfall = minimum - paid
    message = (
        f"Down payment must be at least {pct:.1f}% of the property price ({minimum:,.2f}). "
        f"Provided: {paid:,.2f}. Shortfall: {shortfall:,.2f}"
    )
    logger.warning(message)
    raise PolicyViolationError(
        message, rule="min_down_payment", threshold=minimum, actual=paid, difference=shortfall
    )


def require_valid_financing_amount(property_price: Number, financed: Number, policy: BankPolicy) -> None:
    """
    Raise when the financed amount exceeds the bank's band ceiling.

    Raises
    ------
    PolicyViolationError
        With the ceiling as ``threshold`` and the excess as ``difference``.
    """
    price = _amount(property_price)
    amount = _amount(financed)
    if is_financing_amount_valid(price, amount, policy):
        return

    pct = max_financing_pct(price, policy)
    maximum = max_financing_amount(price, policy)
    excess = amount - maximum
    message = (
        f"Financed amount exceeds the limit of {pct:.1f}% of the property price ({maximum:,.2f}). "
        f"Requested: {amount:,.2f}. Excess: {excess:,.2f}"
    )
    logger.warning(message)
    raise PolicyViolationError(
        message, rule="max_financing", threshold=maximum, actual=amount, difference=excess
    )


def require_amount_coherence(
    property_price: Number,
    down_payment: Number,
    financed: Number,
    bonuses: Optional[Number] = None,
) -> None:
    """Raise when :func:`validate_amount_coherence` fails."""
    if validate_amount_coherence(property_price, down_payment, financed, bonuses):
        return

    price = _amount(property_price)
    total = _amount(down_payment) + _amount(financed) + (to_decimal(bonuses) or ZERO)
    message = (
        f"Amounts do not add up to the property price: down payment + financed + bonuses = "
        f"{total:,.2f}, price = {price:,.2f}"
    )
    logger.warning(message)
    raise PolicyViolationError(
        message, rule="coherence", threshold=price, actual=total, difference=abs(total - price)
    )


def validate_ncmv_range(
    property_price: Number, policy: BankPolicy, use_credit_risk_coverage: bool = False
) -> None:
    """
    Check that the price is inside the NCMV eligibility band.

    Parameters
    ----------
    property_price : Number
        Price in the base currency.
    policy : BankPolicy
        Bank rules.
    use_credit_risk_coverage : bool
        Use the CRC maximum instead of the plain maximum.

    Raises
    ------
    PolicyViolationError
        If the price is below the minimum or above the applicable maximum.
    """
    price = _amount(property_price)
    minimum = policy.ncmv_min_property_value
    maximum = (
        policy.ncmv_max_property_value_crc if use_credit_risk_coverage else policy.ncmv_max_property_value
    )

    if price < minimum:
        message = (
            f"Property value ({price:,.2f}) is below the NCMV minimum ({minimum:,.2f})"
        )
        logger.warning(message)
        raise PolicyViolationError(
            message, rule="ncmv_min_value", threshold=minimum, actual=price, difference=minimum - price
        )

    if price > maximum:
        crc = "with credit-risk coverage " if use_credit_risk_coverage else ""
        message = (
            f"Property value ({price:,.2f}) exceeds the NCMV maximum {crc}({maximum:,.2f})"
        )
        logger.warning(message)
        raise PolicyViolationError(
            message, rule="ncmv_max_value", threshold=maximum, actual=price, difference=price - maximum
        )

    logger.debug("NCMV range ok: %s within [%s, %s]", price, minimum, maximum)


def validate_minimum_down_payment_ncmv(
    property_price: Number, down_payment: Number, policy: BankPolicy
) -> None:
    """
    Check the statutory NCMV minimum down payment.

    Raises
    ------
    PolicyViolationError
        If the down payment is below ``ncmv_min_down_payment_pct`` of the price.
    """
    price = _amount(property_price)
    paid = _amount(down_payment)
    pct = policy.ncmv_min_down_payment_pct
    minimum = _percent_of(price, pct)
    if paid >= minimum:
        return

    message = (
        f"Down payment ({paid:,.2f}) is below the NCMV minimum of {pct}% ({minimum:,.2f})"
    )
    logger.warning(message)
    raise PolicyViolationError(
        message, rule="ncmv_min_down_payment", threshold=minimum, actual=paid, difference=minimum - paid
    )


def pbp_tier(property_price: Number, policy: BankPolicy) -> PBPTier:
    """Which good-payer bonus tier a price falls into."""
    price = _amount(property_price)
    if policy.ncmv_min_property_value <= price < policy.pbp_threshold_low:
        return PBPTier.STANDARD
    if policy.pbp_threshold_low <= price <= policy.ncmv_max_property_value:
        return PBPTier.PLUS
    return PBPTier.NONE


def calculate_pbp_bonus(property_price: Number, policy: BankPolicy) -> Decimal:
    """
    Good-payer bonus for a price.

    Returns
    -------
    Decimal
        ``pbp_amount_standard`` for ``[ncmv_min, pbp_threshold_low)``,
        ``pbp_amount_plus`` for ``[pbp_threshold_low, ncmv_max]``, else zero.
    """
    tier = pbp_tier(property_price, policy)
    if tier == PBPTier.STANDARD:
        return policy.pbp_amount_standard
    if tier == PBPTier.PLUS:
        return policy.pbp_amount_plus
    return ZERO


def qualifies_for_pbp(property_price: Number, policy: BankPolicy) -> bool:
    """True when the price earns a non-zero good-payer bonus."""
    return calculate_pbp_bonus(property_price, policy) > 0


def pbp_info_message(property_price: Number, policy: BankPolicy) -> str:
    """Human-readable description of the PBP outcome for a price."""
    tier = pbp_tier(property_price, policy)
    if tier == PBPTier.NONE:
        return "This property does not qualify for the good-payer bonus (PBP)."
    amount = calculate_pbp_bonus(property_price, policy)
    return (
        f"This property qualifies for the {tier.value.title()} good-payer bonus of {amount:,.2f}. "
        "The bonus reduces the balance to finance."
    )


def calculate_government_bonus(property_price: Number, bonus_type: Optional[BonusType]) -> Decimal:
    """
    Government housing bonus for a price and bonus type.

    Parameters
    ----------
    property_price : Number
        Price in the base currency.
    bonus_type : Optional[BonusType]
        Requested bonus kind.

    Returns
    -------
    Decimal
        Fixed bonus amount for the type.

    Raises
    ------
    PolicyViolationError
        If the price exceeds 200,000 or no bonus type was given.
    """
    price = _amount(property_price)
    if price > GOVERNMENT_BONUS_PRICE_CAP:
        message = (
            f"The government housing bonus only applies to properties priced at or below "
            f"{GOVERNMENT_BONUS_PRICE_CAP:,.2f}; price is {price:,.2f}"
        )
        logger.warning(message)
        raise PolicyViolationError(
            message,
            rule="government_bonus_price",
            threshold=GOVERNMENT_BONUS_PRICE_CAP,
            actual=price,
            difference=price - GOVERNMENT_BONUS_PRICE_CAP,
        )
    if bonus_type is None:
        raise PolicyViolationError("A bonus type is required for the government housing bonus",
                                   rule="government_bonus_type")

    amount = GOVERNMENT_BONUS_AMOUNTS[BonusType(bonus_type)]
    logger.debug("Government bonus %s: %s", bonus_type, amount)
    return amount
