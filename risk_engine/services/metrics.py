"""Satış ve parti verisinden metrik hesaplama - saf fonksiyonlar.

- Satış hızı (günlük ortalama birim)
- Hareketli ortalama
- Trend (ilk yarı vs ikinci yarı)
- Son kullanma risk skoru (0-100)
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from risk_engine.models.inventory import Product, Sale, utcnow
from risk_engine.models.prediction import NO_STOCKOUT_DAYS, Trend

DAY = timedelta(days=1)
TREND_CHANGE_PERCENT = 10.0


def days_until(target: datetime, now: Optional[datetime] = None) -> int:
    """Hedef tarihe kalan gün sayısı (yukarı yuvarlanır, geçmişse negatif)."""
    now = now or utcnow()
    return math.ceil((target - now) / DAY)


def sale_quantities(sales: Iterable[Sale]) -> list[int]:
    return [s.quantity_sold for s in sales]


def calculate_velocity(sales: Sequence[Sale], window_days: int = 30) -> float:
    if not sales or window_days <= 0:
        return 0.0
    return sum(s.quantity_sold for s in sales) / window_days


def calculate_moving_average(values: Sequence[float], period: int = 7) -> float:
    """Son `period` değerin ortalaması; daha az değer varsa hepsinin ortalaması."""
    if not values:
        return 0.0
    if len(values) < period:
        return sum(values) / len(values)
    recent = values[-period:]
    return sum(recent) / period


def calculate_trend(values: Sequence[float]) -> Trend:
    if len(values) < 2:
        return Trend.STABLE

    half = len(values) // 2
    first_avg = sum(values[:half]) / half
    second_avg = sum(values[half:]) / (len(values) - half)

    if first_avg == 0:
        return Trend.INCREASING if second_avg > 0 else Trend.STABLE

    change = (second_avg - first_avg) / first_avg * 100
    if change > TREND_CHANGE_PERCENT:
        return Trend.INCREASING
    if change < -TREND_CHANGE_PERCENT:
        return Trend.DECREASING
    return Trend.STABLE


def days_until_stockout(total_quantity: float, velocity: float) -> float:
    if velocity > 0:
        return math.ceil(total_quantity / velocity)
    return NO_STOCKOUT_DAYS


def earliest_expiry_days(product: Product, now: Optional[datetime] = None) -> Optional[int]:
    """FEFO sırasındaki ilk partinin son kullanmaya kalan günü."""
    batches = product.fefo_batches()
    if not batches:
        return None
    return days_until(batches[0].expiry_date, now)


def _expiry_points(days_left: int) -> int:
    if days_left < 0:
        return 40
    if days_left <= 3:
        return 35
    if days_left <= 7:
        return 25
    if days_left <= 14:
        return 15
    if days_left <= 30:
        return 5
    return 0


def _sell_through_points(days_to_sell_out: float, days_left: int) -> int:
    if days_to_sell_out > days_left:
        return 30
    if days_to_sell_out > days_left * 0.8:
        return 20
    if days_to_sell_out > days_left * 0.5:
        return 10
    return 0


def _excess_stock_points(total_quantity: float, velocity: float) -> int:
    # Bir haftalık talebin üzerindeki stok
    excess = total_quantity - velocity * 7
    if excess > total_quantity * 0.5:
        return 30
    if excess > total_quantity * 0.3:
        return 20
    if excess > 0:
        return 10
    return 0


def calculate_expiry_risk(
    product: Product, velocity: float, now: Optional[datetime] = None
) -> int:
    """Ürünün satılmadan bozulma riskini 0-100 arasında puanlar.

    Üç faktör toplanır: son kullanmaya kalan gün (40), satış hızına göre
    zamanında tükenme (30), haftalık talebe göre fazla stok (30).
    Son kullanma tarihli parti yoksa risk 0'dır.
    """
    days_left = earliest_expiry_days(product, now)
    if days_left is None:
        return 0

    total = product.total_quantity
    days_to_sell_out = total / velocity if velocity > 0 else NO_STOCKOUT_DAYS

    risk = (
        _expiry_points(days_left)
        + _sell_through_points(days_to_sell_out, days_left)
        + _excess_stock_points(total, velocity)
    )
    return max(0, min(100, round(risk)))
