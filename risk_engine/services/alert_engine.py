"""Alert Engine - Son kullanma ve yavaş satış uyarıları.

- Bozulabilir ürünlerin partilerini çok kademeli eşiklere göre sınıflandırır
- Ürün/kategori bazlı eşik override'larını uygular
- Uzun süredir stokta bekleyen, yavaş satan bozulmaz ürünleri işaretler
- Mağaza eşik ayarlarını okur ve doğrulayarak günceller

Tarama durumsuzdur ve her istekte yeniden hesaplanır; sonuç kaydedilmez.
"""

from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import Any, Optional

from risk_engine.data.repository import InventoryRepository
from risk_engine.errors import ValidationError
from risk_engine.models.alerts import (
    LEVEL_STYLES,
    Alert,
    AlertAction,
    AlertLevel,
    AlertSortMode,
    EffectiveThresholds,
)
from risk_engine.models.inventory import (
    AlertSettings,
    AlertThresholds,
    NotificationSettings,
    format_datetime,
)
from risk_engine.services.base_service import BaseService
from risk_engine.services.metrics import DAY, calculate_velocity, days_until
from risk_engine.services.thresholds import ThresholdResolver, validate_thresholds

logger = logging.getLogger(__name__)

SLOW_MOVING_VELOCITY = 0.5
SLOW_MOVING_MIN_STOCK = 5
SLOW_MOVING_MIN_DAYS = 30
VELOCITY_WINDOW_DAYS = 30


def classify(days_left: int, thresholds: EffectiveThresholds) -> AlertLevel:
    """Kalan güne göre uyarı seviyesini belirler (sınır değerler dahil)."""
    if days_left < 0:
        return AlertLevel.EXPIRED
    if days_left <= thresholds.critical:
        return AlertLevel.CRITICAL
    if days_left <= thresholds.high_urgency:
        return AlertLevel.HIGH
    if days_left <= thresholds.early_warning:
        return AlertLevel.EARLY
    return AlertLevel.NORMAL


def recommended_actions(level: AlertLevel, days_left: int, quantity: int) -> list[AlertAction]:
    if level == AlertLevel.EXPIRED:
        return [
            AlertAction("remove", "Remove Immediately", "trash", "Product has expired", urgent=True),
        ]
    if level == AlertLevel.CRITICAL:
        actions = [
            AlertAction(
                "markdown", "Discount 30-50%", "pricetag", f"Only {days_left} days left", urgent=True
            ),
        ]
        if quantity > 5:
            actions.append(
                AlertAction("transfer", "Transfer Stock", "swap-horizontal", "Move to faster location")
            )
        return actions
    if level == AlertLevel.HIGH:
        return [
            AlertAction("markdown", "Discount 15-25%", "pricetag", "Boost sales velocity"),
            AlertAction("promote", "Feature Item", "megaphone", "Add to promotions"),
        ]
    if level == AlertLevel.EARLY:
        return [
            AlertAction("monitor", "Monitor Sales", "eye", "Track daily movement"),
            AlertAction("adjust", "Adjust Reorder", "refresh", "Reduce next order"),
        ]
    return []


SLOW_MOVING_ACTIONS = (
    ("promote", "Promote Product", "megaphone", "Feature in promotions"),
    ("markdown", "Apply Discount", "pricetag", "Boost sales with discount"),
    ("review", "Review Pricing", "analytics", "Check if price is competitive"),
)


def sort_alerts(alerts: list[Alert], sort_by: AlertSortMode) -> list[Alert]:
    # Yavaş satan uyarıların kalan günü yok; gün sıralamasında sona kalır
    def _days(alert: Alert) -> float:
        return alert.days_left if alert.days_left is not None else math.inf

    if sort_by == AlertSortMode.URGENCY:
        return sorted(alerts, key=lambda a: (-a.priority, _days(a)))
    if sort_by == AlertSortMode.EXPIRY:
        return sorted(alerts, key=_days)
    return sorted(alerts, key=lambda a: -a.quantity)


def summarize(alerts: list[Alert]) -> dict:
    def _count(level: AlertLevel) -> int:
        return sum(1 for a in alerts if a.level == level)

    return {
        "total": len(alerts),
        "expired": _count(AlertLevel.EXPIRED),
        "critical": _count(AlertLevel.CRITICAL),
        "high": _count(AlertLevel.HIGH),
        "early": _count(AlertLevel.EARLY),
        "slow_moving": _count(AlertLevel.SLOW_MOVING),
        "total_units": sum(a.quantity for a in alerts),
        "urgent_count": sum(1 for a in alerts if a.priority >= 3),
    }


class AlertEngine(BaseService):
    """Envanter üzerinde istek bazlı uyarı taraması yapan servis."""

    def __init__(
        self,
        repository: InventoryRepository,
        threshold_resolver: Optional[ThresholdResolver] = None,
        **kwargs: Any,
    ):
        super().__init__(service_name="AlertEngine", **kwargs)
        self.repository = repository
        self.threshold_resolver = threshold_resolver or ThresholdResolver(repository)

    # --- Eşik ayarları ---

    def get_settings(self, store_id: str) -> AlertSettings:
        """Mağaza ayarlarını döndürür; yoksa varsayılan {7, 14, 30} ile oluşturur."""
        if not store_id:
            raise ValidationError("Store ID is required", field="store_id")
        settings = self.repository.get_alert_settings(store_id)
        if settings is None:
            logger.info("Yeni uyarı ayarları oluşturuluyor: %s", store_id)
            settings = AlertSettings(store_id=store_id, updated_at=self.now())
            self.repository.save_alert_settings(settings)
        return settings

    def update_settings(
        self,
        store_id: str,
        thresholds: Optional[dict] = None,
        notification_settings: Optional[dict] = None,
    ) -> AlertSettings:
        """Kısmi ayarları mevcut değerlerle birleştirir, doğrular ve kaydeder.

        Doğrulama yazmadan önce yapılır; ihlalde hiçbir alan kaydedilmez.
        """
        if not store_id:
            raise ValidationError("Store ID is required", field="store_id")
        current = self.repository.get_alert_settings(store_id) or AlertSettings(store_id=store_id)

        merged_thresholds = current.thresholds
        if thresholds:
            unknown = set(thresholds) - {"critical", "high_urgency", "early_warning"}
            if unknown:
                raise ValidationError(
                    f"Unknown threshold fields: {', '.join(sorted(unknown))}",
                    field=sorted(unknown)[0],
                )
            values = {**current.thresholds.to_dict(), **thresholds}
            validate_thresholds(values["critical"], values["high_urgency"], values["early_warning"])
            merged_thresholds = AlertThresholds(**values)

        merged_notifications = current.notification_settings
        if notification_settings:
            merged_notifications = NotificationSettings.from_dict(
                {**current.notification_settings.to_dict(), **notification_settings}
            )

        updated = AlertSettings(
            store_id=store_id,
            user_id=current.user_id,
            thresholds=merged_thresholds,
            notification_settings=merged_notifications,
            updated_at=self.now(),
        )
        self.repository.save_alert_settings(updated)
        logger.info("Uyarı ayarları güncellendi: %s -> %s", store_id, merged_thresholds.to_dict())
        return updated

    # --- Son kullanma taraması ---

    def scan_expiry(self, store_id: str, global_thresholds: AlertThresholds) -> list[Alert]:
        now = self.now()
        alerts: list[Alert] = []

        for product in self.repository.list_products(store_id, perishable=True):
            if not product.batches:
                continue
            effective = self.threshold_resolver.resolve(product, global_thresholds)

            for batch in product.batches:
                if batch.expiry_date is None:
                    continue
                days_left = days_until(batch.expiry_date, now)
                # Yalnızca erken uyarı eşiği içindekiler veya süresi geçmişler
                if days_left > effective.early_warning and days_left >= 0:
                    continue

                level = classify(days_left, effective)
                color, priority = LEVEL_STYLES[level]
                alerts.append(
                    Alert(
                        alert_id=f"{product.product_id}_{batch.batch_number}",
                        product_id=product.product_id,
                        product_name=product.name,
                        category=product.category,
                        batch_number=batch.batch_number,
                        quantity=batch.quantity,
                        expiry_date=batch.expiry_date,
                        days_left=days_left,
                        level=level,
                        color=color,
                        priority=priority,
                        actions=recommended_actions(level, days_left, batch.quantity),
                        has_custom_thresholds=effective.is_custom,
                        threshold_source=effective.source,
                    )
                )

        return alerts

    # --- Yavaş satan ürün taraması ---

    def scan_slow_moving(self, store_id: str) -> list[Alert]:
        """Bozulmaz ürünlerde düşük hız ve uzun stok süresini tespit eder.

        Stok yaşı en eski partinin teslim tarihinden hesaplanır; teslim
        tarihi olmayan partiler bugünden sayılır.
        """
        now = self.now()
        since = now - timedelta(days=VELOCITY_WINDOW_DAYS)
        alerts: list[Alert] = []

        for product in self.repository.list_products(store_id, perishable=False):
            quantity = product.total_quantity
            if quantity <= SLOW_MOVING_MIN_STOCK:
                continue

            sales = self.repository.list_sales(product.product_id, since, store_id=store_id)
            total_sold = sum(s.quantity_sold for s in sales)
            velocity = calculate_velocity(sales, VELOCITY_WINDOW_DAYS)
            if velocity >= SLOW_MOVING_VELOCITY:
                continue

            oldest = min((b.received_date or now for b in product.batches), default=now)
            days_in_stock = math.ceil((now - oldest) / DAY)
            if days_in_stock < SLOW_MOVING_MIN_DAYS:
                continue

            color, priority = LEVEL_STYLES[AlertLevel.SLOW_MOVING]
            alerts.append(
                Alert(
                    alert_id=f"slow_{product.product_id}",
                    product_id=product.product_id,
                    product_name=product.name,
                    category=product.category,
                    batch_number="N/A",
                    quantity=quantity,
                    level=AlertLevel.SLOW_MOVING,
                    color=color,
                    priority=priority,
                    actions=[AlertAction(*fields) for fields in SLOW_MOVING_ACTIONS],
                    velocity=round(velocity, 2),
                    days_in_stock=days_in_stock,
                    sales_last_30_days=total_sold,
                )
            )

        return alerts

    def get_alerts(
        self,
        store_id: str,
        level: Optional[str] = None,
        category: Optional[str] = None,
        sort_by: str = AlertSortMode.URGENCY.value,
    ) -> dict:
        """Tüm uyarıları toplar, filtreler, sıralar ve özetler.

        Özet filtrelenmemiş uyarı kümesi üzerinden hesaplanır.
        """
        if not store_id:
            raise ValidationError("Store ID is required", field="store_id")
        try:
            sort_mode = AlertSortMode(sort_by)
        except ValueError:
            raise ValidationError(f"Unsupported sort mode: {sort_by}", field="sort_by") from None
        if level and level != "all":
            try:
                AlertLevel(level)
            except ValueError:
                raise ValidationError(f"Unknown alert level: {level}", field="level") from None

        settings = self.get_settings(store_id)
        alerts = self.scan_expiry(store_id, settings.thresholds) + self.scan_slow_moving(store_id)

        filtered = alerts
        if level and level != "all":
            filtered = [a for a in filtered if a.level.value == level]
        if category and category != "all":
            wanted = category.lower()
            filtered = [a for a in filtered if (a.category or "").lower() == wanted]

        filtered = sort_alerts(filtered, sort_mode)
        summary = summarize(alerts)

        logger.info(
            "Uyarı taraması: mağaza=%s toplam=%d acil=%d",
            store_id,
            summary["total"],
            summary["urgent_count"],
        )

        return {
            "alerts": [a.to_dict() for a in filtered],
            "summary": summary,
            "thresholds": settings.thresholds.to_dict(),
            "filters": {"level": level, "category": category, "sort_by": sort_mode.value},
        }

    def acknowledge_alert(self, alert_id: str, action: str, notes: Optional[str] = None) -> dict:
        """Uyarı onayını loglar (kalıcı kayıt tutulmaz)."""
        if not alert_id:
            raise ValidationError("alert_id is required", field="alert_id")
        logger.info("Uyarı %s onaylandı, aksiyon: %s (%s)", alert_id, action, notes or "")
        return {"alert_id": alert_id, "action": action, "timestamp": format_datetime(self.now())}
