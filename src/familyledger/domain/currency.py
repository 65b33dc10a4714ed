"""ISO 4217 currency codes and minor-unit precision."""

from decimal import Decimal, ROUND_HALF_UP

from familyledger.domain.errors import ValidationError, unknown_currency

# Codes whose minor unit is not two decimal places.
_NON_STANDARD_PLACES = {
    "BIF": 0, "CLP": 0, "DJF": 0, "GNF": 0, "ISK": 0, "JPY": 0, "KMF": 0,
    "KRW": 0, "PYG": 0, "RWF": 0, "UGX": 0, "UYI": 0, "VND": 0, "VUV": 0,
    "XAF": 0, "XOF": 0, "XPF": 0,
    "BHD": 3, "IQD": 3, "JOD": 3, "KWD": 3, "LYD": 3, "OMR": 3, "TND": 3,
    "CLF": 4, "UYW": 4,
}

_TWO_PLACE_CODES = """
AED AFN ALL AMD ANG AOA ARS AUD AWG AZN BAM BBD BDT BGN BMD BND BOB BRL BSD
BTN BWP BYN BZD CAD CDF CHF CNY COP CRC CUP CVE CZK DKK DOP DZD EGP ERN ETB
EUR FJD FKP GBP GEL GHS GIP GMD GTQ GYD HKD HNL HTG HUF IDR ILS INR IRR JMD
KES KGS KHR KPW KYD KZT LAK LBP LKR LRD LSL MAD MDL MGA MKD MMK MNT MOP MRU
MUR MVR MWK MXN MYR MZN NAD NGN NIO NOK NPR NZD PAB PEN PGK PHP PKR PLN QAR
RON RSD RUB SAR SBD SCR SDG SEK SGD SHP SLE SOS SRD SSP STN SVC SYP SZL THB
TJS TMT TOP TRY TTD TWD TZS UAH USD UYU UZS VES WST XCD YER ZAR ZMW ZWL
""".split()

DECIMAL_PLACES: dict[str, int] = {code: 2 for code in _TWO_PLACE_CODES}
DECIMAL_PLACES.update(_NON_STANDARD_PLACES)

# Decimal places kept in storage for amounts, trade quantities and rates.
AMOUNT_SCALE = 10
QUANTITY_SCALE = 8
RATE_SCALE = 10


def is_valid_currency(code: str) -> bool:
    """Return True if ``code`` is a recognized ISO 4217 code (upper case)."""
    return isinstance(code, str) and code in DECIMAL_PLACES


def normalize_currency(code: str) -> str:
    """Upper-case and validate a currency code.

    Raises:
        ValidationError: If the code is not recognized
    """
    normalized = (code or "").strip().upper()
    if not is_valid_currency(normalized):
        raise ValidationError(unknown_currency(code))
    return normalized


def minor_unit(code: str) -> Decimal:
    """Smallest representable amount for a currency, e.g. Decimal('0.01')."""
    return Decimal(1).scaleb(-DECIMAL_PLACES.get(code, 2))


def quantize(amount: Decimal, code: str) -> Decimal:
    """Round an amount to the currency's minor unit (half up)."""
    return amount.quantize(minor_unit(code), rounding=ROUND_HALF_UP)
