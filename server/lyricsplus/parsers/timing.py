"""Millisecond arithmetic shared by the converters.

Provider timestamps arrive as decimal seconds ("12.345", 12.345) or clock
strings; going through ``Decimal`` keeps e.g. 0.145 s at exactly 145 ms.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


def seconds_to_ms(value: float | int | str | None) -> int:
    """Convert decimal seconds to integer milliseconds (half-up rounding)."""
    if value is None or value == "":
        return 0
    try:
        seconds = Decimal(str(value).strip())
    except InvalidOperation:
        return 0
    if not seconds.is_finite():
        return 0
    return int((seconds * 1000).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def clock_to_ms(value: str | None) -> int:
    """Parse ``H:MM:SS.mmm``, ``MM:SS.mmm`` or ``SS.mmm`` into milliseconds.

    The layout is chosen by the number of colons. Unparsable input is 0.
    """
    if not value:
        return 0
    parts = value.strip().split(":")
    try:
        numbers = [Decimal(p) if p else Decimal(0) for p in parts]
    except InvalidOperation:
        return 0

    if len(numbers) == 3:
        hours, minutes, seconds = numbers
    elif len(numbers) == 2:
        hours, (minutes, seconds) = Decimal(0), numbers
    elif len(numbers) == 1:
        hours, minutes, seconds = Decimal(0), Decimal(0), numbers[0]
    else:
        return 0

    total = hours * 3600 + minutes * 60 + seconds
    if not total.is_finite():
        return 0
    return int((total * 1000).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def ms_to_clock(ms: int) -> str:
    """Format milliseconds the way Apple's TTML does.

    ``H:MM:SS.mmm`` is zero padded only from the leading unit down:
    ``01:02:03.004``, ``02:03.004``, ``3.004``.
    """
    ms = max(0, int(ms))
    hours, rest = divmod(ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, millis = divmod(rest, 1000)
    if hours:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"
    if minutes:
        return f"{minutes:02d}:{seconds:02d}.{millis:03d}"
    return f"{seconds}.{millis:03d}"
