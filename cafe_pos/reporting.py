"""Dashboard figures folded on the fly from order history.

Nothing here touches the database: callers hand in the orders they want
summarised (already window-filtered) and get plain dicts back.

Best/least picks over the folded maps are deterministic: keys are visited in
ascending order (lexicographic for product names and dates, numeric for
hours) and the first key holding the extreme value wins.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo


@dataclass
class SalesFold:
    all_time_earning: Decimal = Decimal("0")
    all_time_products_sold: int = 0
    monthly: dict[str, Decimal] = field(default_factory=dict)
    daily: dict[str, Decimal] = field(default_factory=dict)
    hourly: dict[int, Decimal] = field(default_factory=dict)
    products: dict[str, int] = field(default_factory=dict)


def as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def fold_orders(orders: Iterable, tz: ZoneInfo) -> SalesFold:
    fold = SalesFold()
    for order in orders:
        total = Decimal(order.total)
        local = as_utc(order.created_at).astimezone(tz)
        month_key = local.strftime("%Y-%m")
        day_key = local.strftime("%Y-%m-%d")

        fold.all_time_earning += total
        fold.monthly[month_key] = fold.monthly.get(month_key, Decimal("0")) + total
        fold.daily[day_key] = fold.daily.get(day_key, Decimal("0")) + total
        fold.hourly[local.hour] = fold.hourly.get(local.hour, Decimal("0")) + total

        for item in order.items:
            fold.all_time_products_sold += item.quantity
            name = item.product.name
            fold.products[name] = fold.products.get(name, 0) + item.quantity
    return fold


def compute_trend(this_month: float, last_month: float) -> tuple[str, float]:
    if last_month == 0:
        return "up", 100.0
    trend = "down" if last_month > this_month else "up"
    return trend, (this_month - last_month) / last_month * 100


def pick_extreme(values: dict, highest: bool = True):
    if not values:
        return None
    ordered = sorted(values)
    if highest:
        return max(ordered, key=lambda key: values[key])
    return min(ordered, key=lambda key: values[key])


def _month_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m")


def _previous_month_key(moment: datetime) -> str:
    if moment.month == 1:
        return f"{moment.year - 1:04d}-12"
    return f"{moment.year:04d}-{moment.month - 1:02d}"


def build_dashboard(orders: Iterable, tz: ZoneInfo, now: Optional[datetime] = None) -> dict:
    fold = fold_orders(orders, tz)
    local_now = (now or datetime.now(timezone.utc)).astimezone(tz)

    this_month_sales = float(fold.monthly.get(_month_key(local_now), 0))
    last_month_sales = float(fold.monthly.get(_previous_month_key(local_now), 0))
    trend, trend_percent = compute_trend(this_month_sales, last_month_sales)

    return {
        "stats": {
            "all_time_earning": float(fold.all_time_earning),
            "all_time_products_sold": fold.all_time_products_sold,
            "this_month_sales": this_month_sales,
            "last_month_sales": last_month_sales,
            "trend": trend,
            "trend_percent": trend_percent,
            "best_product": pick_extreme(fold.products, highest=True),
            "least_product": pick_extreme(fold.products, highest=False),
            "busiest_day": pick_extreme(fold.daily, highest=True),
            "least_day": pick_extreme(fold.daily, highest=False),
            "busiest_hour": pick_extreme(fold.hourly, highest=True),
            "least_hour": pick_extreme(fold.hourly, highest=False),
        },
        "monthly": [
            {"month": month, "total": float(total)} for month, total in sorted(fold.monthly.items())
        ],
        "products": [
            {"product": name, "quantity": quantity} for name, quantity in sorted(fold.products.items())
        ],
        "hours": [{"hour": hour, "total": float(fold.hourly.get(hour, 0))} for hour in range(24)],
        "all_time_daily": [
            {"date": day, "total": float(total)} for day, total in sorted(fold.daily.items())
        ],
    }
