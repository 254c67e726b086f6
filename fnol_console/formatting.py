"""Parsing and display helpers shared by the aggregators.

All helpers are total: ``None``, blanks and malformed input produce a
placeholder instead of raising.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"
EMPTY_CELL = "-"


def format_duration(ms: int | None) -> str:
    """Render a millisecond duration: ``N/A``, ``{ms}ms`` or ``{s:.2f}s``."""
    if ms is None:
        return NOT_AVAILABLE
    if ms < 1000:
        return f"{ms}ms"
    seconds = (Decimal(ms) / Decimal(1000)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{seconds}s"


def parse_cost(value: Any) -> Decimal:
    """Parse a decimal cost string; malformed values count as zero."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        logger.warning("Unparseable cost value %r treated as 0", value)
        return Decimal(0)
    if not parsed.is_finite():
        logger.warning("Non-finite cost value %r treated as 0", value)
        return Decimal(0)
    return parsed


def format_cost(value: Decimal | str | None, *, places: int = 4, prefix: str = "$") -> str:
    amount = value if isinstance(value, Decimal) else parse_cost(value)
    quantum = Decimal(1).scaleb(-places)
    return f"{prefix}{amount.quantize(quantum, rounding=ROUND_HALF_UP)}"


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def humanize_stage_name(stage_name: str | None) -> str:
    if not stage_name:
        return EMPTY_CELL
    return stage_name.replace("_", " ")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string to an aware UTC datetime, or ``None``."""
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: str | None, *, fmt: str = "%Y-%m-%d %H:%M:%S UTC") -> str:
    parsed = parse_timestamp(value)
    if parsed is None:
        return value or EMPTY_CELL
    return parsed.strftime(fmt)


def format_count(value: int | None) -> str:
    if value is None:
        return EMPTY_CELL
    return f"{value:,}"
