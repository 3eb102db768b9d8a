"""Wage-block cost model: shift coefficients, deadline alignment and the 4h block grid."""

from __future__ import annotations

from datetime import datetime, time, timedelta

from line_scheduler.models import BASE_PAY_PER_BLOCK, BLOCK_HOURS, Order

_MIDNIGHT = time(0, 0, 0)


def cost_coefficient(timestamp: datetime) -> float:
    """Return the wage multiplier for a block starting at ``timestamp``.

    Only the time of day matters:

    - exactly 00:00:00 -> 1.5 (closes the night shift)
    - (00:00, 08:00)   -> 2.0
    - [08:00, 16:00)   -> 1.0
    - [16:00, 20:00)   -> 1.2
    - [20:00, 24:00)   -> 1.5
    """
    time_of_day = timestamp.time()
    if time_of_day == _MIDNIGHT:
        return 1.5
    hour = time_of_day.hour
    if hour < 8:
        return 2.0
    if hour < 16:
        return 1.0
    if hour < 20:
        return 1.2
    return 1.5


def aligned_deadline(order: Order) -> datetime:
    """Deadline of ``order`` moved to 08:00:00 on the same calendar date."""
    return order.aligned_deadline


def block_cost(
    start: datetime, base_pay_per_block: float = BASE_PAY_PER_BLOCK
) -> float:
    """Wage charged for opening one block at ``start``."""
    return base_pay_per_block * cost_coefficient(start)


def next_block_start(
    plan_start: datetime, free_time: datetime, block_hours: float = BLOCK_HOURS
) -> datetime:
    """First grid instant (``plan_start + k * block``) that is not before ``free_time``.

    A line that is free exactly on a grid instant opens its block right there;
    otherwise the block starts at the next grid line after ``free_time``.
    """
    block = timedelta(hours=block_hours)
    elapsed = free_time - plan_start
    if elapsed <= timedelta(0):
        return plan_start
    blocks_passed, remainder = divmod(elapsed, block)
    if remainder == timedelta(0):
        return free_time
    return plan_start + block * (blocks_passed + 1)
