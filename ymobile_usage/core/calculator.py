"""
Usage calculations.

Derives total, remaining and percentage figures from the raw page values
and applies the display rounding rules.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from ..storage.models import RawUsageFields, UsageSnapshot

GB_QUANTUM = Decimal("0.01")
PERCENT_QUANTUM = Decimal("0.1")
DEFAULT_TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"


def round_gb(value: float) -> Decimal:
    """Round a GB figure half-up to 2 decimal places."""
    return Decimal(str(value)).quantize(GB_QUANTUM, rounding=ROUND_HALF_UP)


def compute(
    raw: RawUsageFields,
    now: Optional[datetime] = None,
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT
) -> UsageSnapshot:
    """Build an immutable snapshot from raw figures.

    Inputs are rounded first, then total and remaining are derived from the
    rounded values, so total == basic + carryover and
    remaining == total - used hold exactly on the result.

    Args:
        raw: Figures extracted from the usage page
        now: Capture instant; defaults to the current local time
        timestamp_format: strftime pattern for the display timestamp

    Returns:
        UsageSnapshot with Gb fields at 0.01 and percentage at 0.1 precision
    """
    captured_at = now or datetime.now()

    carryover = round_gb(raw.carryover_gb)
    basic = round_gb(raw.basic_gb)
    paid = round_gb(raw.paid_gb)
    used = round_gb(raw.used_gb)

    total = basic + carryover
    remaining = total - used

    if total > 0:
        percentage = (used / total * 100).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)
    else:
        percentage = Decimal("0.0")

    return UsageSnapshot(
        captured_at=captured_at,
        carryover_gb=carryover,
        basic_gb=basic,
        paid_gb=paid,
        used_gb=used,
        total_gb=total,
        remaining_gb=remaining,
        percentage=percentage,
        display_timestamp=captured_at.strftime(timestamp_format),
    )
