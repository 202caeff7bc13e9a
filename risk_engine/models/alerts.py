"""Son kullanma ve yavaş satış uyarı modelleri."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from risk_engine.models.inventory import format_datetime


class AlertLevel(str, Enum):
    EXPIRED = "expired"
    CRITICAL = "critical"
    HIGH = "high"
    EARLY = "early"
    NORMAL = "normal"
    SLOW_MOVING = "slow-moving"


class ThresholdSource(str, Enum):
    PRODUCT = "product"
    CATEGORY = "category"
    GLOBAL = "global"


class AlertSortMode(str, Enum):
    URGENCY = "urgency"
    EXPIRY = "expiry"
    QUANTITY = "quantity"


# Seviye -> (renk, öncelik)
LEVEL_STYLES: dict[AlertLevel, tuple[str, int]] = {
    AlertLevel.EXPIRED: ("#8B0000", 4),
    AlertLevel.CRITICAL: ("#FF4444", 3),
    AlertLevel.HIGH: ("#FF9500", 2),
    AlertLevel.EARLY: ("#FFCC00", 1),
    AlertLevel.NORMAL: ("#34C759", 0),
    AlertLevel.SLOW_MOVING: ("#9B59B6", 2),
}


@dataclass(frozen=True)
class EffectiveThresholds:
    critical: int
    high_urgency: int
    early_warning: int
    is_custom: bool = False
    source: ThresholdSource = ThresholdSource.GLOBAL

    def to_dict(self) -> dict:
        return {
            "critical": self.critical,
            "high_urgency": self.high_urgency,
            "early_warning": self.early_warning,
            "is_custom": self.is_custom,
            "source": self.source.value,
        }


@dataclass
class AlertAction:
    type: str
    label: str
    icon: str
    description: str
    urgent: bool = False

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "label": self.label,
            "icon": self.icon,
            "description": self.description,
            "urgent": self.urgent,
        }


@dataclass
class Alert:
    alert_id: str
    product_id: str
    product_name: str
    category: Optional[str]
    batch_number: str
    quantity: int
    level: AlertLevel
    color: str
    priority: int
    expiry_date: Optional[datetime] = None
    days_left: Optional[int] = None
    actions: list[AlertAction] = field(default_factory=list)
    has_custom_thresholds: bool = False
    threshold_source: Optional[ThresholdSource] = None
    # Yalnızca yavaş satan ürün uyarılarında dolu
    velocity: Optional[float] = None
    days_in_stock: Optional[int] = None
    sales_last_30_days: Optional[int] = None

    def to_dict(self) -> dict:
        data = {
            "alert_id": self.alert_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "category": self.category,
            "batch_number": self.batch_number,
            "quantity": self.quantity,
            "expiry_date": format_datetime(self.expiry_date),
            "days_left": self.days_left,
            "level": self.level.value,
            "color": self.color,
            "priority": self.priority,
            "actions": [a.to_dict() for a in self.actions],
            "has_custom_thresholds": self.has_custom_thresholds,
        }
        if self.threshold_source is not None:
            data["threshold_source"] = self.threshold_source.value
        if self.level == AlertLevel.SLOW_MOVING:
            data["velocity"] = self.velocity
            data["days_in_stock"] = self.days_in_stock
            data["sales_last_30_days"] = self.sales_last_30_days
        return data
