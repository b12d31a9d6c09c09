"""
Money formatting for invoice documents.

Amounts print with the currency symbol and exactly two decimals. The legal
"amount in words" line uses the Indian numbering system (Lakh, Crore) for
rupee invoices and the international one (Thousand, Million, ...) for every
other currency; one document never mixes both.
"""
from decimal import Decimal, ROUND_HALF_UP

from app.modules.invoices.models import to_money

CURRENCY_SYMBOLS = {
    "USD": "$",
    "INR": "₹",
    "AUD": "A$",
}

CURRENCY_UNITS = {
    "USD": "US Dollars",
    "INR": "Rupees",
    "AUD": "Australian Dollars",
}

INTERNATIONAL = "international"
INDIAN = "indian"

ONES = [
    "Zero", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine", "Ten",
    "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen", "Seventeen", "Eighteen", "Nineteen"
]
TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]
INTERNATIONAL_SCALES = ["", "Thousand", "Million", "Billion", "Trillion", "Quadrillion", "Quintillion"]


def currency_symbol(currency: str) -> str:
    code = (currency or "").upper()
    return CURRENCY_SYMBOLS.get(code, f"{code} ")


def format_currency(amount, currency: str) -> str:
    """``format_currency(1234.5, "USD") == "$1,234.50"``"""
    value = to_money(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{currency_symbol(currency)}{abs(value):,.2f}"


def _below_thousand(n: int) -> str:
    words = []
    if n >= 100:
        words.append(f"{ONES[n // 100]} Hundred")
        n %= 100
        if n:
            words.append("and")
    if n:
        if n < 20:
            words.append(ONES[n])
        else:
            words.append(TENS[n // 10] + (f"-{ONES[n % 10]}" if n % 10 else ""))
    return " ".join(words)


def _international(n: int) -> str:
    parts = []
    scale = 0
    while n:
        n, chunk = divmod(n, 1000)
        if chunk:
            if scale >= len(INTERNATIONAL_SCALES):
                raise ValueError("Number too large to spell out")
            label = INTERNATIONAL_SCALES[scale]
            parts.insert(0, f"{_below_thousand(chunk)} {label}".strip())
        scale += 1
    return " ".join(parts)


def _indian(n: int) -> str:
    parts = []
    crores, n = divmod(n, 10_000_000)
    if crores:
        # Above 99 crore the crore count is itself spelled in the Indian system
        parts.append(f"{_indian(crores)} Crore")
    lakhs, n = divmod(n, 100_000)
    if lakhs:
        parts.append(f"{_below_thousand(lakhs)} Lakh")
    thousands, n = divmod(n, 1000)
    if thousands:
        parts.append(f"{_below_thousand(thousands)} Thousand")
    if n:
        parts.append(_below_thousand(n))
    return " ".join(parts)


def amount_in_words(n: int, system: str = INTERNATIONAL) -> str:
    """Spell a whole number, e.g. 123 -> "One Hundred and Twenty-Three"."""
    n = int(n)
    if n == 0:
        return "Zero"
    if n < 0:
        return f"Minus {amount_in_words(-n, system)}"
    if system == INDIAN:
        return _indian(n)
    return _international(n)


def numbering_system_for(currency: str) -> str:
    return INDIAN if (currency or "").upper() == "INR" else INTERNATIONAL


def amount_in_words_for(amount, currency: str) -> str:
    """Legal amount line, e.g. "Rupees One Lakh Only"."""
    whole = int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    code = (currency or "").upper()
    unit = CURRENCY_UNITS.get(code, code)
    words = amount_in_words(whole, numbering_system_for(code))
    return f"{unit} {words} Only".strip()


def format_amount_with_code(amount, currency: str) -> str:
    """Same as format_currency but with the ISO code, for fonts without currency glyphs."""
    value = to_money(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{(currency or '').upper()} {abs(value):,.2f}"


def format_quantity(quantity) -> str:
    value = Decimal(str(quantity))
    if value == value.to_integral_value():
        return str(value.quantize(Decimal("1")))
    return format(value.normalize(), "f")
