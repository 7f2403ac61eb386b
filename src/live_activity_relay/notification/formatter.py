"""Display formatting for market figures shown on a live activity card.

Every function here is pure. Numeric inputs must be finite floats; NaN and
infinity are outside the contract of ``format_decimal`` and ``deal_number``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from decimal import Decimal

from live_activity_relay.notification.models import TokenPriceEntry

logger = logging.getLogger(__name__)

MAX_DISPLAY_LENGTH = 7
MIN_COMPACT_ZERO_RUN = 3
COMPACT_SIGNIFICANT_DIGITS = 4

DEFAULT_TOKEN_URL = "https://p2p.binance.com/zh-CN/express/buy/ETH/CNY"
QUOTE_SUFFIX = "/USDT"

SEGMENT_SEPARATOR = ";"
FIELD_SEPARATOR = "|"

# Largest first
MAGNITUDE_SUFFIXES: tuple[tuple[float, str], ...] = (
    (1e15, "Q"),
    (1e12, "T"),
    (1e9, "B"),
    (1e6, "M"),
    (1e3, "K"),
)


def format_decimal(number: float) -> str:
    """Render a price compactly, at most 7 characters where possible.

    A fraction that starts with three or more zeros is collapsed so that
    ``0.0000612`` reads ``0.0{3}612``; the run length is written minus one
    because the leading ``0`` stays literal. The collapsed form is never cut;
    its significant digits are rounded to four, without trailing zeros.

    Args:
        number: A finite float.

    Returns:
        The display string.
    """
    s = f"{number:.20f}".rstrip("0").rstrip(".")

    if "." not in s:
        return s

    zero_count = _leading_zero_run(s)
    if zero_count >= MIN_COMPACT_ZERO_RUN:
        # Round to the kept significant digits; rounding may shorten the run
        precision = zero_count + COMPACT_SIGNIFICANT_DIGITS
        s = f"{number:.{precision}f}".rstrip("0").rstrip(".")
        zero_count = _leading_zero_run(s)
        if zero_count >= MIN_COMPACT_ZERO_RUN:
            int_part, dec_part = s.split(".", 1)
            return f"{int_part}.0{{{zero_count - 1}}}{dec_part[zero_count:]}"

    return s[:MAX_DISPLAY_LENGTH]


def _leading_zero_run(s: str) -> int:
    if "." not in s:
        return 0
    dec_part = s.split(".", 1)[1]
    return len(dec_part) - len(dec_part.lstrip("0"))


def deal_number(value: float) -> str:
    """Abbreviate a dollar amount, e.g. 3435635411867.5 -> ``$3.44T``."""
    for threshold, suffix in MAGNITUDE_SUFFIXES:
        if value >= threshold:
            return f"${value / threshold:.2f}{suffix}"
    return f"${value:.2f}"


def format_percentage(value: str) -> str:
    """Format a raw percentage string, e.g. ``"-2.8544"`` -> ``"-2.85%"``.

    Unparseable, zero and non-finite inputs all render as ``"0"``.
    """
    try:
        v = float(value)
    except (TypeError, ValueError):
        return "0"

    if v == 0 or not math.isfinite(v):
        return "0"

    s = f"{abs(v):.2f}".rstrip("0").rstrip(".")
    return f"-{s}%" if v < 0 else f"{s}%"


def format_market_cap(value: float | None) -> str:
    """Abbreviate the total market cap, or ``"0"`` when absent or non-positive."""
    if value is None or not math.isfinite(value) or value <= 0:
        return "0"
    return deal_number(value)


def format_market_cap_change(value: str | None) -> str:
    """Format the 24h market-cap change, or ``"0"`` when absent."""
    if value is None:
        return "0"
    return format_percentage(value)


def format_plain(number: float) -> str:
    """Shortest round-trip rendering without exponent, e.g. 2000.0 -> ``2000``."""
    s = format(Decimal(repr(number)), "f")
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    return s


def token_display_name(symbol: str) -> str:
    """Build the pair name shown on the card, e.g. ``btc`` -> ``BTC/USDT``."""
    return f"{symbol.upper()}{QUOTE_SUFFIX}"


def encode_token_prices(tokens: Iterable[tuple[str, str, str]]) -> str:
    """Encode (symbol, price, change) triples into the stored string form.

    Each triple becomes ``SYMBOL|price|change;``.
    """
    return "".join(
        f"{symbol}{FIELD_SEPARATOR}{price}{FIELD_SEPARATOR}{change}{SEGMENT_SEPARATOR}"
        for symbol, price, change in tokens
    )


def parse_token_prices(raw: str, *, url: str = DEFAULT_TOKEN_URL) -> list[TokenPriceEntry]:
    """Parse a stored ``SYMBOL|price|change;...`` string into entries.

    Segments that do not have exactly three fields, or whose price is not a
    finite number, are dropped. Order is preserved.

    Args:
        raw: The stored token price string.
        url: Link attached to every entry.

    Returns:
        Parsed entries in input order.
    """
    entries: list[TokenPriceEntry] = []
    if not raw:
        return entries

    for segment in raw.rstrip(SEGMENT_SEPARATOR).split(SEGMENT_SEPARATOR):
        parts = segment.split(FIELD_SEPARATOR)
        if len(parts) != 3:
            logger.debug("Dropping malformed token price segment: %r", segment)
            continue

        symbol, price, change = parts
        try:
            price_value = float(price)
        except ValueError:
            logger.debug("Dropping token price segment with bad price: %r", segment)
            continue
        if not math.isfinite(price_value):
            logger.debug("Dropping token price segment with bad price: %r", segment)
            continue

        entries.append(
            TokenPriceEntry(
                name=token_display_name(symbol),
                price=format_decimal(price_value),
                change=change,
                url=url,
            )
        )

    return entries
