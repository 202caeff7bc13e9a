"""Envanter, satış, uyarı ayarı ve bildirim veri modelleri."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """ISO 8601 metni veya datetime değerini UTC datetime'a çevirir."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class NotificationType(str, Enum):
    CRITICAL_RISK = "critical_risk"
    STOCKOUT_WARNING = "stockout_warning"
    BULK_ALERT = "bulk_alert"
    RESTOCK_REMINDER = "restock_reminder"


class NotificationAction(str, Enum):
    APPLY_DISCOUNT = "apply_discount"
    RESTOCK = "restock"
    REVIEW = "review"
    VIEW_PRODUCT = "view_product"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Bildirim listelerinde önce kritik olanlar
PRIORITY_ORDER: dict[Priority, int] = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


@dataclass
class Batch:
    batch_number: str
    quantity: int
    expiry_date: Optional[datetime] = None
    received_date: Optional[datetime] = None
    unit_price: float = 0.0

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise ValueError(f"Parti miktarı negatif olamaz: {self.batch_number}")

    def to_dict(self) -> dict:
        return {
            "batch_number": self.batch_number,
            "quantity": self.quantity,
            "expiry_date": format_datetime(self.expiry_date),
            "received_date": format_datetime(self.received_date),
            "unit_price": self.unit_price,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Batch":
        return cls(
            batch_number=str(data.get("batch_number", "")),
            quantity=int(data.get("quantity", 0)),
            expiry_date=parse_datetime(data.get("expiry_date")),
            received_date=parse_datetime(data.get("received_date")),
            unit_price=float(data.get("unit_price", 0.0)),
        )


@dataclass
class CustomAlertThresholds:
    """Kategori veya ürün bazlı eşik override'ı; eksik alanlar globalden gelir."""
    enabled: bool = False
    critical: Optional[int] = None
    high_urgency: Optional[int] = None
    early_warning: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "critical": self.critical,
            "high_urgency": self.high_urgency,
            "early_warning": self.early_warning,
        }

    def merged_with(self, fallback: "AlertThresholds") -> tuple[int, int, int]:
        """Eksik alanları fallback'ten doldurulmuş (critical, high, early) üçlüsü."""
        return (
            self.critical if self.critical is not None else fallback.critical,
            self.high_urgency if self.high_urgency is not None else fallback.high_urgency,
            self.early_warning if self.early_warning is not None else fallback.early_warning,
        )

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["CustomAlertThresholds"]:
        if not data:
            return None

        def _opt(key: str) -> Optional[int]:
            value = data.get(key)
            return int(value) if value is not None else None

        return cls(
            enabled=bool(data.get("enabled", False)),
            critical=_opt("critical"),
            high_urgency=_opt("high_urgency"),
            early_warning=_opt("early_warning"),
        )


@dataclass
class Product:
    product_id: str
    store_id: Optional[str]
    name: str
    category: Optional[str] = None
    is_perishable: bool = False
    batches: list[Batch] = field(default_factory=list)
    custom_alert_thresholds: Optional[CustomAlertThresholds] = None

    @property
    def total_quantity(self) -> int:
        return sum(b.quantity for b in self.batches)

    def fefo_batches(self) -> list[Batch]:
        """Son kullanma tarihi olan partileri FEFO sırasıyla döndürür."""
        dated = [b for b in self.batches if b.expiry_date is not None]
        return sorted(dated, key=lambda b: b.expiry_date)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "store_id": self.store_id,
            "name": self.name,
            "category": self.category,
            "is_perishable": self.is_perishable,
            "total_quantity": self.total_quantity,
            "batches": [b.to_dict() for b in self.batches],
            "custom_alert_thresholds": (
                self.custom_alert_thresholds.to_dict()
                if self.custom_alert_thresholds
                else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        return cls(
            product_id=str(data["product_id"]),
            store_id=data.get("store_id"),
            name=data.get("name", ""),
            category=data.get("category") or None,
            is_perishable=bool(data.get("is_perishable", False)),
            batches=[Batch.from_dict(b) for b in data.get("batches", [])],
            custom_alert_thresholds=CustomAlertThresholds.from_dict(
                data.get("custom_alert_thresholds")
            ),
        )


@dataclass
class Category:
    store_id: str
    name: str
    custom_alert_thresholds: Optional[CustomAlertThresholds] = None

    def to_dict(self) -> dict:
        return {
            "store_id": self.store_id,
            "name": self.name,
            "custom_alert_thresholds": (
                self.custom_alert_thresholds.to_dict()
                if self.custom_alert_thresholds
                else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Category":
        return cls(
            store_id=data["store_id"],
            name=data["name"],
            custom_alert_thresholds=CustomAlertThresholds.from_dict(
                data.get("custom_alert_thresholds")
            ),
        )


@dataclass(frozen=True)
class Sale:
    """Satış kaydı; oluşturulduktan sonra değişmez."""
    sale_id: str
    product_id: str
    store_id: Optional[str]
    quantity_sold: int
    price_at_sale: float
    sale_date: datetime
    product_name: str = ""
    category: Optional[str] = None

    @property
    def total_amount(self) -> float:
        return self.quantity_sold * self.price_at_sale

    def to_dict(self) -> dict:
        return {
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "store_id": self.store_id,
            "product_name": self.product_name,
            "category": self.category,
            "quantity_sold": self.quantity_sold,
            "price_at_sale": self.price_at_sale,
            "total_amount": self.total_amount,
            "sale_date": format_datetime(self.sale_date),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Sale":
        return cls(
            sale_id=str(data.get("sale_id") or uuid.uuid4()),
            product_id=str(data["product_id"]),
            store_id=data.get("store_id"),
            quantity_sold=int(data.get("quantity_sold", 0)),
            price_at_sale=float(data.get("price_at_sale", 0.0)),
            sale_date=parse_datetime(data["sale_date"]),
            product_name=data.get("product_name", ""),
            category=data.get("category") or None,
        )


@dataclass
class AlertThresholds:
    critical: int = 7
    high_urgency: int = 14
    early_warning: int = 30

    def to_dict(self) -> dict:
        return {
            "critical": self.critical,
            "high_urgency": self.high_urgency,
            "early_warning": self.early_warning,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "AlertThresholds":
        data = data or {}
        return cls(
            critical=int(data.get("critical", 7)),
            high_urgency=int(data.get("high_urgency", 14)),
            early_warning=int(data.get("early_warning", 30)),
        )


@dataclass
class NotificationSettings:
    enable_critical: bool = True
    enable_high_urgency: bool = True
    enable_early_warning: bool = False
    notification_time: str = "09:00"

    def to_dict(self) -> dict:
        return {
            "enable_critical": self.enable_critical,
            "enable_high_urgency": self.enable_high_urgency,
            "enable_early_warning": self.enable_early_warning,
            "notification_time": self.notification_time,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "NotificationSettings":
        data = data or {}
        return cls(
            enable_critical=bool(data.get("enable_critical", True)),
            enable_high_urgency=bool(data.get("enable_high_urgency", True)),
            enable_early_warning=bool(data.get("enable_early_warning", False)),
            notification_time=str(data.get("notification_time", "09:00")),
        )


@dataclass
class AlertSettings:
    store_id: str
    thresholds: AlertThresholds = field(default_factory=AlertThresholds)
    notification_settings: NotificationSettings = field(default_factory=NotificationSettings)
    user_id: str = "admin"
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "store_id": self.store_id,
            "user_id": self.user_id,
            "thresholds": self.thresholds.to_dict(),
            "notification_settings": self.notification_settings.to_dict(),
            "updated_at": format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AlertSettings":
        return cls(
            store_id=data["store_id"],
            user_id=data.get("user_id", "admin"),
            thresholds=AlertThresholds.from_dict(data.get("thresholds")),
            notification_settings=NotificationSettings.from_dict(
                data.get("notification_settings")
            ),
            updated_at=parse_datetime(data.get("updated_at")) or utcnow(),
        )


@dataclass
class Notification:
    store_id: str
    type: NotificationType
    product_id: Optional[str]
    title: str
    message: str
    priority: Priority = Priority.MEDIUM
    action: Optional[NotificationAction] = None
    action_params: dict = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)
    read: bool = False
    dismissed: bool = False
    user_id: str = "admin"
    notification_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "notification_id": self.notification_id,
            "store_id": self.store_id,
            "type": self.type.value,
            "product_id": self.product_id,
            "title": self.title,
            "message": self.message,
            "priority": self.priority.value,
            "actionable": {
                "action": self.action.value if self.action else None,
                "params": dict(self.action_params),
            },
            "metadata": dict(self.metadata),
            "read": self.read,
            "dismissed": self.dismissed,
            "user_id": self.user_id,
            "created_at": format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Notification":
        actionable = data.get("actionable") or {}
        action = actionable.get("action")
        return cls(
            notification_id=data["notification_id"],
            store_id=data["store_id"],
            type=NotificationType(data["type"]),
            product_id=data.get("product_id"),
            title=data.get("title", ""),
            message=data.get("message", ""),
            priority=Priority(data.get("priority", Priority.MEDIUM.value)),
            action=NotificationAction(action) if action else None,
            action_params=dict(actionable.get("params") or {}),
            metadata=dict(data.get("metadata") or {}),
            read=bool(data.get("read", False)),
            dismissed=bool(data.get("dismissed", False)),
            user_id=data.get("user_id", "admin"),
            created_at=parse_datetime(data.get("created_at")) or utcnow(),
        )
