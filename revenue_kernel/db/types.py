"""
Module: revenue_kernel.db.types
Responsibility: Annotated type aliases and utility functions for money and
    ratio columns.  Centralizes precision, rounding, and currency validation
    so that every model, engine and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by engines and modules.

Invariants enforced:
    - ISO 4217 enforcement: validate_currency() rejects any code outside
      ISO_4217_CURRENCIES.
    - round_money() is the ONLY sanctioned rounding function for monetary
      values.  Allocation rounding modes flow through it.
    - No floats.  All monetary amounts and ratios use Decimal.

Failure modes:
    - ValidationError on invalid ISO 4217 code.
    - TypeError from to_decimal() when handed a float.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Annotated, Any

from sqlalchemy import Numeric, String

from revenue_kernel.exceptions import ValidationError


# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Ratios and probabilities (pct, weight, confidence)
Ratio = Annotated[Decimal, Numeric(38, 18)]

# ISO 4217 currency code (e.g., "USD", "EUR", "GBP")
Currency = Annotated[str, String(3)]

# Short identifier strings (statuses, enum values, SKUs)
ShortCode = Annotated[str, String(50)]

MONEY_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value: Any, name: str = "amount") -> Decimal:
    """
    Coerce a boundary value into Decimal.

    Accepts Decimal, int or a numeric string.  Floats are rejected: they
    cannot represent most decimal amounts exactly.

    Raises:
        TypeError: value is a float or an unsupported type.
        ValidationError: value is a non-numeric string.
    """
    if isinstance(value, bool):
        raise TypeError(f"{name} must be Decimal, not bool")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        try:
            return Decimal(value)
        except InvalidOperation as exc:
            raise ValidationError(name, f"{name} is not numeric: {value!r}") from exc
    raise TypeError(f"{name} must be Decimal, not {type(value).__name__}")


def round_money(
    value: Decimal,
    decimal_places: int = 2,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Preconditions: value is a Decimal; decimal_places >= 0.
    Postconditions: Returns value quantized using the given rounding mode.
    """
    if decimal_places == 0:
        return value.quantize(Decimal("1"), rounding=rounding)
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def validate_currency(code: str) -> str:
    """
    Validate and normalise an ISO 4217 currency code.

    Raises:
        ValidationError: code is not a recognised 3-letter ISO 4217 code.
    """
    normalised = (code or "").strip().upper()
    if normalised not in ISO_4217_CURRENCIES:
        raise ValidationError("currency", f"Invalid currency code: {code!r}")
    return normalised


# ISO 4217 Currency Codes
ISO_4217_CURRENCIES: set[str] = {
    "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD",
    "AED", "AFN", "ALL", "AMD", "ANG", "AOA", "ARS", "AWG", "AZN",
    "BAM", "BBD", "BDT", "BGN", "BHD", "BIF", "BMD", "BND", "BOB", "BRL", "BSD", "BTN", "BWP", "BYN", "BZD",
    "CDF", "CLP", "CNY", "COP", "CRC", "CUP", "CVE", "CZK",
    "DJF", "DKK", "DOP", "DZD",
    "EGP", "ERN", "ETB",
    "FJD", "FKP",
    "GEL", "GHS", "GIP", "GMD", "GNF", "GTQ", "GYD",
    "HKD", "HNL", "HTG", "HUF",
    "IDR", "ILS", "INR", "IQD", "IRR", "ISK",
    "JMD", "JOD",
    "KES", "KGS", "KHR", "KMF", "KPW", "KRW", "KWD", "KYD", "KZT",
    "LAK", "LBP", "LKR", "LRD", "LSL", "LYD",
    "MAD", "MDL", "MGA", "MKD", "MMK", "MNT", "MOP", "MRU", "MUR", "MVR", "MWK", "MXN", "MYR", "MZN",
    "NAD", "NGN", "NIO", "NOK", "NPR",
    "OMR",
    "PAB", "PEN", "PGK", "PHP", "PKR", "PLN", "PYG",
    "QAR",
    "RON", "RSD", "RUB", "RWF",
    "SAR", "SBD", "SCR", "SDG", "SEK", "SGD", "SHP", "SLE", "SOS", "SRD", "SSP", "STN", "SVC", "SYP", "SZL",
    "THB", "TJS", "TMT", "TND", "TOP", "TRY", "TTD", "TWD", "TZS",
    "UAH", "UGX", "UYU", "UZS",
    "VES", "VND", "VUV",
    "WST",
    "XAF", "XCD", "XOF", "XPF",
    "YER",
    "ZAR", "ZMW", "ZWL",
}
