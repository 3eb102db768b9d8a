from datetime import datetime, timedelta
from typing import Iterable, List

from line_scheduler.models import Order


def style_datetime(dt: datetime) -> str:
    """Format datetime with styling"""
    return dt.strftime(f"%d.%m.%Y [bold italic]%H:%M[/bold italic]")


def style_duration(duration: timedelta) -> str:
    """Format duration in a readable way"""
    total_hours = duration.total_seconds() / 3600
    if total_hours < 24:
        return f"{total_hours:.1f}h"
    else:
        days = int(total_hours // 24)
        hours = total_hours % 24
        return f"{days}d {hours:.1f}h"


def select_admitted_orders(orders: Iterable[Order], cutoff: datetime) -> List[Order]:
    """Keep orders that arrived at or before ``cutoff``; later ones wait for the next plan."""
    return [order for order in orders if order.arrival_time <= cutoff]
