"""
Mortgage Simulation Orchestration
=================================

Composes the engine components into one simulation run:

1. **Currency**: resolve the working currency and convert the property
   price (and, on request, the down payment) from the property's currency.
2. **Eligibility**: NCMV range (banks that support the program) and the
   statutory NCMV minimum down payment, both in the base currency.
3. **Bank rules**: minimum down payment for the price band.
4. **Bonuses**: government housing bonus and good-payer (PBP) bonus,
   evaluated in the base currency and converted to the working currency.
5. **Financing**: ``financed = price - down_payment - bonuses``, checked
   against the financing ceiling and for three-way coherence.
6. **Fees**: opening commission, notary and registration fees are
   capitalized, ``loan_amount = financed + fees``.
7. **Schedule**: French-method schedule on ``loan_amount``, then grace.
8. **Indicators**: NPV/IRR/TCEA on the final schedule.
9. **Totals**: column sums and alternate-currency reference amounts.

Every validation failure raises immediately; there is no partial result.

The orchestrator holds no mutable state between runs. Defaults that used to
be global constants (discount rate, disgravamen rate, exchange rate, solver
settings) arrive through :class:`SimulationDefaults`.

Example
-------
>>> orchestrator = SimulationOrchestrator()
>>> result = orchestrator.run(SimulationRequest(
...     property_price=Decimal("244600"),
...     down_payment=Decimal("18345"),
...     annual_rate=Decimal("9"),
...     term_years=20,
... ))
>>> result.loan_amount
Decimal('226255.00')
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional, Tuple, Union

import pandas as pd

from .currency import (
    Currency,
    CurrencyConverter,
    ExchangeRateProvider,
    RateLookup,
    alternate_currency,
    currency_symbol,
    parse_currency,
)
from .errors import InvalidInputError
from .grace import GracePolicy, apply_grace_period
from .indicators import (
    DEFAULT_INITIAL_GUESS,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TOLERANCE,
    FinancialIndicators,
    IndicatorCalculator,
)
from .policy import (
    BankPolicy,
    BonusType,
    calculate_government_bonus,
    calculate_pbp_bonus,
    require_amount_coherence,
    require_valid_down_payment,
    require_valid_financing_amount,
    validate_minimum_down_payment_ncmv,
    validate_ncmv_range,
)
from .rates import MONTHS_PER_YEAR, Capitalization, InterestRateType
from .schedule import (
    MAX_TERM_YEARS,
    MIN_TERM_YEARS,
    AmortizationPeriod,
    InsuranceParameters,
    LoanParameters,
    ScheduleTotals,
    ZERO,
    first_ordinary_period,
    generate_schedule_for,
    schedule_to_frame,
    summarize_schedule,
    to_decimal,
    to_money,
)

logger = logging.getLogger("MORTGAGE.Simulation")

Number = Union[int, float, Decimal]


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class SimulationDefaults:
    """
    Explicit defaults consumed by the orchestrator.

    Parameters
    ----------
    currency : Currency
        Working currency when a request does not name one.
    base_currency : Currency
        Currency in which regulatory thresholds are expressed.
    usd_to_pen_rate : Decimal
        Fixed soles-per-dollar rate.
    discount_rate : Decimal
        Annual NPV discount rate, percent.
    disgravamen_rate : Decimal
        Monthly disgravamen rate used when neither the request nor a bank
        policy supplies one.
    disgravamen_in_installment : bool
        Whether disgravamen is embedded in the installment.
    irr_initial_guess, irr_tolerance, irr_max_iterations
        Root-finding settings for IRR/TCEA.
    """

    currency: Currency = Currency.PEN
    base_currency: Currency = Currency.PEN
    usd_to_pen_rate: Decimal = Decimal("3.75")
    discount_rate: Decimal = Decimal("10")
    disgravamen_rate: Decimal = Decimal("0.00049")
    disgravamen_in_installment: bool = True
    irr_initial_guess: float = DEFAULT_INITIAL_GUESS
    irr_tolerance: float = DEFAULT_TOLERANCE
    irr_max_iterations: int = DEFAULT_MAX_ITERATIONS

    @classmethod
    def from_settings(cls, settings: Any = None) -> "SimulationDefaults":
        """
        Build defaults from application settings.

        Parameters
        ----------
        settings : Settings, optional
            Settings instance. If None, the cached application settings are used.
        """
        if settings is None:
            try:
                from ..config import get_settings
            except ImportError:
                from config import get_settings
            settings = get_settings()

        return cls(
            currency=parse_currency(settings.default_currency),
            base_currency=parse_currency(settings.base_currency),
            usd_to_pen_rate=to_decimal(settings.usd_to_pen_rate),
            discount_rate=to_decimal(settings.default_discount_rate),
            disgravamen_rate=to_decimal(settings.default_disgravamen_rate),
            disgravamen_in_installment=settings.disgravamen_in_installment,
            irr_initial_guess=settings.irr_initial_guess,
            irr_tolerance=settings.irr_tolerance,
            irr_max_iterations=settings.irr_max_iterations,
        )


# =============================================================================
# Request / Result
# =============================================================================

@dataclass
class SimulationRequest:
    """
    Inputs for one mortgage simulation.

    Parameters
    ----------
    property_price : Decimal
        Property price in ``property_currency``.
    down_payment : Decimal
        Down payment, in the working currency unless ``auto_convert`` is set.
    annual_rate : Decimal
        Annual rate as a percentage.
    term_years : int
        Loan term in years, 1-30.
    rate_type : InterestRateType
        NOMINAL or EFFECTIVE quote.
    capitalization : Optional[Capitalization]
        Compounding tier for nominal quotes.
    currency : Optional[Currency]
        Working currency (configured default when omitted).
    property_currency : Optional[Currency]
        Currency of the listed price (working currency when omitted).
    auto_convert : bool
        Convert the down payment from the property currency as well.
    bank_policy : Optional[BankPolicy]
        Lending rules (a default policy when omitted).
    grace : GracePolicy
        Grace kind and duration.
    life_insurance_rate : Decimal
        Monthly life insurance rate.
    property_insurance_amount : Optional[Decimal]
        Fixed monthly property insurance.
    property_insurance_rate : Optional[Decimal]
        Monthly property insurance rate on the balance (wins over the amount).
    disgravamen_rate : Optional[Decimal]
        Monthly disgravamen rate (bank policy rate when omitted).
    opening_commission, notary_fees, registration_fees : Decimal
        Initial costs capitalized into the loan.
    apply_government_bonus : bool
        Request the government housing bonus.
    bonus_type : Optional[BonusType]
        Government bonus kind.
    apply_pbp : bool
        Request the good-payer bonus.
    use_credit_risk_coverage : bool
        Use the CRC maximum for the NCMV range check.
    discount_rate : Optional[Decimal]
        Annual NPV discount rate, percent (configured default when omitted).
    first_payment_date : Optional[date]
        Due date of the first installment.
    """

    property_price: Decimal
    down_payment: Decimal
    annual_rate: Decimal
    term_years: int
    rate_type: InterestRateType = InterestRateType.EFFECTIVE
    capitalization: Optional[Capitalization] = None
    currency: Optional[Currency] = None
    property_currency: Optional[Currency] = None
    auto_convert: bool = False
    bank_policy: Optional[BankPolicy] = None
    grace: GracePolicy = field(default_factory=GracePolicy.none)
    life_insurance_rate: Decimal = ZERO
    property_insurance_amount: Optional[Decimal] = None
    property_insurance_rate: Optional[Decimal] = None
    disgravamen_rate: Optional[Decimal] = None
    opening_commission: Decimal = ZERO
    notary_fees: Decimal = ZERO
    registration_fees: Decimal = ZERO
    apply_government_bonus: bool = False
    bonus_type: Optional[BonusType] = None
    apply_pbp: bool = False
    use_credit_risk_coverage: bool = False
    discount_rate: Optional[Decimal] = None
    first_payment_date: Optional[date] = None

    def __post_init__(self) -> None:
        for name in (
            "property_price",
            "down_payment",
            "annual_rate",
            "life_insurance_rate",
            "property_insurance_amount",
            "property_insurance_rate",
            "disgravamen_rate",
            "opening_commission",
            "notary_fees",
            "registration_fees",
            "discount_rate",
        ):
            setattr(self, name, to_decimal(getattr(self, name)))

    @property
    def initial_costs(self) -> Decimal:
        """Fees capitalized into the loan amount."""
        return self.opening_commission + self.notary_fees + self.registration_fees


@dataclass(frozen=True)
class SimulationResult:
    """
    Complete outcome of one simulation, amounts in the working currency.

    Attributes
    ----------
    currency : Currency
        Working currency.
    currency_symbol : str
        Display symbol of the working currency.
    exchange_rate : Decimal
        Rate applied to convert the property price (1 when not converted).
    alternate_currency : Currency
        The other supported currency.
    property_price : Decimal
        Price in the working currency.
    down_payment : Decimal
        Down payment in the working currency.
    government_bonus : Decimal
        Government housing bonus applied.
    pbp_bonus : Decimal
        Good-payer bonus applied.
    financed_amount : Decimal
        ``price - down_payment - bonuses``.
    initial_costs : Decimal
        Capitalized fees.
    loan_amount : Decimal
        ``financed_amount + initial_costs``; the schedule principal.
    monthly_rate : float
        Effective monthly rate.
    monthly_payment : Decimal
        Installment of the first ordinary period.
    first_total_payment : Decimal
        Total outflow of the first ordinary period.
    alternate_property_price : Decimal
        Price in the alternate currency.
    alternate_monthly_payment : Decimal
        Installment in the alternate currency.
    totals : ScheduleTotals
        Schedule column sums.
    indicators : FinancialIndicators
        NPV/IRR/TCEA.
    schedule : List[AmortizationPeriod]
        Final schedule, grace applied.
    grace : GracePolicy
        Grace policy used.
    """

    currency: Currency
    currency_symbol: str
    exchange_rate: Decimal
    alternate_currency: Currency
    property_price: Decimal
    down_payment: Decimal
    government_bonus: Decimal
    pbp_bonus: Decimal
    financed_amount: Decimal
    initial_costs: Decimal
    loan_amount: Decimal
    monthly_rate: float
    monthly_payment: Decimal
    first_total_payment: Decimal
    alternate_property_price: Decimal
    alternate_monthly_payment: Decimal
    totals: ScheduleTotals
    indicators: FinancialIndicators
    schedule: List[AmortizationPeriod]
    grace: GracePolicy

    @property
    def total_bonuses(self) -> Decimal:
        """Government plus good-payer bonus."""
        return self.government_bonus + self.pbp_bonus

    @property
    def total_periods(self) -> int:
        return len(self.schedule)

    @property
    def npv(self) -> Decimal:
        return self.indicators.npv

    @property
    def irr(self) -> Decimal:
        return self.indicators.irr

    @property
    def tcea(self) -> Decimal:
        return self.indicators.tcea

    def to_frame(self) -> pd.DataFrame:
        """Schedule as a DataFrame, tagged with the working currency."""
        df = schedule_to_frame(self.schedule)
        df.attrs["currency"] = self.currency.value
        return df


# =============================================================================
# Orchestrator
# =============================================================================

class SimulationOrchestrator:
    """
    Runs mortgage simulations end to end.

    Parameters
    ----------
    defaults : Optional[SimulationDefaults]
        Explicit defaults. Built-in defaults when omitted.
    rate_lookup : Optional[RateLookup]
        External ``rate(from, to)`` lookup; the fixed USD/PEN rate from
        ``defaults`` is used when omitted.

    Example
    -------
    >>> orchestrator = SimulationOrchestrator(SimulationDefaults.from_settings())
    >>> result = orchestrator.run(request)
    >>> result.indicators.tcea
    """

    def __init__(
        self,
        defaults: Optional[SimulationDefaults] = None,
        rate_lookup: Optional[RateLookup] = None,
    ) -> None:
        self.defaults = defaults or SimulationDefaults()
        self.converter = CurrencyConverter(
            ExchangeRateProvider(self.defaults.usd_to_pen_rate, rate_lookup)
        )
        self.indicator_calculator = IndicatorCalculator(
            initial_guess=self.defaults.irr_initial_guess,
            tolerance=self.defaults.irr_tolerance,
            max_iterations=self.defaults.irr_max_iterations,
        )

    def _validate(self, request: SimulationRequest) -> None:
        if request.property_price is None or request.property_price <= 0:
            raise InvalidInputError(f"Property price must be positive, got {request.property_price}")
        if request.down_payment is None or request.down_payment < 0:
            raise InvalidInputError(f"Down payment cannot be negative, got {request.down_payment}")
        if isinstance(request.term_years, bool) or not isinstance(request.term_years, int):
            raise InvalidInputError(f"Term must be a whole number of years, got {request.term_years!r}")
        if not (MIN_TERM_YEARS <= request.term_years <= MAX_TERM_YEARS):
            raise InvalidInputError(
                f"Term must be between {MIN_TERM_YEARS} and {MAX_TERM_YEARS} years, got {request.term_years}"
            )
        if request.annual_rate is None or not (0 < request.annual_rate <= 100):
            raise InvalidInputError(f"Annual rate must be in (0, 100] percent, got {request.annual_rate}")
        if request.grace.is_active and request.grace.duration >= request.term_years * MONTHS_PER_YEAR:
            raise InvalidInputError(
                f"Grace duration ({request.grace.duration}) must be shorter than the loan term"
            )
        for name in ("opening_commission", "notary_fees", "registration_fees"):
            value = getattr(request, name)
            if value is None or value < 0:
                raise InvalidInputError(f"{name} cannot be negative, got {value}")
        if request.discount_rate is not None and request.discount_rate <= -100:
            raise InvalidInputError(f"Discount rate must be above -100%, got {request.discount_rate}")
        if request.apply_government_bonus and request.bonus_type is None:
            raise InvalidInputError("bonus_type is required when apply_government_bonus is set")

    def _bonuses(
        self, request: SimulationRequest, price_base: Decimal, policy: BankPolicy, currency: Currency
    ) -> Tuple[Decimal, Decimal]:
        base = self.defaults.base_currency

        government = ZERO
        if request.apply_government_bonus:
            government = calculate_government_bonus(price_base, request.bonus_type)
            logger.info("Government bonus (%s): %s %s", BonusType(request.bonus_type).value, government, base.value)

        pbp = ZERO
        if request.apply_pbp:
            pbp = calculate_pbp_bonus(price_base, policy)
            if pbp == 0:
                logger.warning("PBP requested but the property does not qualify. Price: %s %s", price_base, base.value)
            else:
                logger.info("PBP applied: %s %s for a property of %s %s", pbp, base.value, price_base, base.value)

        return (
            self.converter.convert(government, base, currency),
            self.converter.convert(pbp, base, currency),
        )

    def run(self, request: SimulationRequest) -> SimulationResult:
        """
        Run one simulation.

        Parameters
        ----------
        request : SimulationRequest
            Simulation inputs.

        Returns
        -------
        SimulationResult
            Schedule, indicators, totals and the amount breakdown.

        Raises
        ------
        InvalidInputError
            Malformed inputs (rejected before any computation).
        PolicyViolationError
            A bank, NCMV, bonus or coherence rule failed.
        NumericDegenerateError
            The indicators could not be computed.
        """
        self._validate(request)
        defaults = self.defaults
        base = defaults.base_currency
        policy = request.bank_policy or BankPolicy(disgravamen_rate=defaults.disgravamen_rate)

        # currency
        currency = parse_currency(request.currency or defaults.currency)
        property_currency = parse_currency(request.property_currency or currency)
        price = to_money(request.property_price)
        down_payment = to_money(request.down_payment)
        exchange_rate = Decimal(1)
        if property_currency != currency:
            exchange_rate = self.converter.get_rate(property_currency, currency)
            price = self.converter.convert(price, property_currency, currency)
            if request.auto_convert:
                down_payment = self.converter.convert(down_payment, property_currency, currency)
            logger.info(
                "Converted property price %s %s -> %s %s (rate %s)",
                request.property_price, property_currency.value, price, currency.value, exchange_rate,
            )

        price_base = self.converter.convert(price, currency, base)
        down_payment_base = self.converter.convert(down_payment, currency, base)

        # eligibility and bank rules, in the base currency
        if policy.supports_ncmv:
            validate_ncmv_range(price_base, policy, request.use_credit_risk_coverage)
        validate_minimum_down_payment_ncmv(price_base, down_payment_base, policy)
        require_valid_down_payment(price_base, down_payment_base, policy)

        government_bonus, pbp_bonus = self._bonuses(request, price_base, policy, currency)
        bonuses = government_bonus + pbp_bonus

        financed = price - down_payment - bonuses
        if financed <= 0:
            raise InvalidInputError(
                f"Nothing left to finance: price {price}, down payment {down_payment}, bonuses {bonuses}"
            )
        require_valid_financing_amount(price_base, self.converter.convert(financed, currency, base), policy)
        require_amount_coherence(price, down_payment, financed, bonuses)

        initial_costs = to_money(request.initial_costs)
        loan_amount = financed + initial_costs
        logger.info(
            "Financed amount: %s, capitalized costs: %s, loan amount: %s %s",
            financed, initial_costs, loan_amount, currency.value,
        )

        # schedule
        disgravamen_rate = (
            request.disgravamen_rate if request.disgravamen_rate is not None else policy.disgravamen_rate
        )
        insurance = InsuranceParameters(
            life_insurance_rate=request.life_insurance_rate,
            property_insurance_amount=request.property_insurance_amount,
            property_insurance_rate=request.property_insurance_rate,
            disgravamen_rate=disgravamen_rate,
            disgravamen_in_installment=defaults.disgravamen_in_installment,
        )
        params = LoanParameters(
            principal=loan_amount,
            annual_rate=request.annual_rate,
            term_years=request.term_years,
            rate_type=request.rate_type,
            capitalization=request.capitalization,
            insurance=insurance,
        )
        monthly_rate = params.monthly_rate
        schedule = generate_schedule_for(params, request.first_payment_date)
        schedule = apply_grace_period(schedule, request.grace, monthly_rate, insurance)

        first = first_ordinary_period(schedule)
        monthly_payment = first.installment
        first_total_payment = first.total_payment

        # indicators and totals
        discount_rate = request.discount_rate if request.discount_rate is not None else defaults.discount_rate
        indicators = self.indicator_calculator.calculate(loan_amount, schedule, discount_rate, initial_costs)
        totals = summarize_schedule(schedule)

        alternate = alternate_currency(currency)
        logger.info(
            "Simulation complete - installment: %s %s, total paid: %s, PBP: %s, disgravamen total: %s",
            monthly_payment, currency.value, totals.total_paid, pbp_bonus, totals.total_disgravamen,
        )

        return SimulationResult(
            currency=currency,
            currency_symbol=currency_symbol(currency),
            exchange_rate=exchange_rate,
            alternate_currency=alternate,
            property_price=price,
            down_payment=down_payment,
            government_bonus=government_bonus,
            pbp_bonus=pbp_bonus,
            financed_amount=financed,
            initial_costs=initial_costs,
            loan_amount=loan_amount,
            monthly_rate=monthly_rate,
            monthly_payment=monthly_payment,
            first_total_payment=first_total_payment,
            alternate_property_price=self.converter.convert(price, currency, alternate),
            alternate_monthly_payment=self.converter.convert(monthly_payment, currency, alternate),
            totals=totals,
            indicators=indicators,
            schedule=schedule,
            grace=request.grace,
        )
