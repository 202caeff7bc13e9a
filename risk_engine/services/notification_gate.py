"""Notification Gate - Kritik risk ve stok tükenme bildirimleri.

Her taze tahmin için en fazla bir bildirim üretir; aynı ürün, tür ve mağaza
için bekleme süresi (varsayılan 24 saat) içinde benzer bildirim varsa yenisi
oluşturulmaz. Kontrol oku-sonra-yaz şeklindedir; kısa bir yineleme penceresi
kabul edilir.
"""

from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import Any, Optional

from risk_engine.data.repository import InventoryRepository
from risk_engine.errors import NotFoundError
from risk_engine.models.inventory import (
    PRIORITY_ORDER,
    Notification,
    NotificationAction,
    NotificationType,
    Priority,
    Product,
)
from risk_engine.models.prediction import Prediction
from risk_engine.services.base_service import BaseService
from risk_engine.services.events import EventBus
from risk_engine.services.metrics import earliest_expiry_days

logger = logging.getLogger(__name__)

CRITICAL_RISK_SCORE = 70
STOCKOUT_WARNING_DAYS = 3
RECOMMENDED_DISCOUNT = 30
RESTOCK_COVER_DAYS = 14
NOTIFICATION_RETENTION_DAYS = 7
UNREAD_LIMIT = 50


class NotificationGate(BaseService):
    """Bildirimleri tekilleştirip oluşturan ve yayınlayan servis."""

    def __init__(
        self,
        repository: InventoryRepository,
        event_bus: Optional[EventBus] = None,
        **kwargs: Any,
    ):
        super().__init__(service_name="NotificationGate", **kwargs)
        self.repository = repository
        self.event_bus = event_bus

    def _exists_similar(
        self, product_id: str, notification_type: NotificationType, store_id: str
    ) -> bool:
        cutoff = self.now() - timedelta(hours=self.config.notification_cooldown_hours)
        existing = self.repository.find_recent_notification(
            product_id, notification_type, store_id, cutoff
        )
        return existing is not None

    def evaluate(self, product: Product, prediction: Prediction) -> Optional[Notification]:
        """Tahmine göre bildirim gerekip gerekmediğine karar verir.

        Kritik risk, stok tükenme uyarısından önceliklidir; risk eşiği aşılmışsa
        stok tükenme kontrolü yapılmaz.
        """
        store_id = product.store_id or prediction.store_id
        if not store_id:
            logger.warning("Mağaza kimliği yok, bildirim atlanıyor: %s", product.product_id)
            return None

        metrics = prediction.metrics
        if metrics.risk_score >= CRITICAL_RISK_SCORE:
            if self._exists_similar(product.product_id, NotificationType.CRITICAL_RISK, store_id):
                logger.debug("Benzer kritik bildirim mevcut: %s", product.product_id)
                return None
            notification = self._critical_risk(product, prediction, store_id)
        elif 0 < metrics.days_until_stockout <= STOCKOUT_WARNING_DAYS:
            if self._exists_similar(product.product_id, NotificationType.STOCKOUT_WARNING, store_id):
                logger.debug("Benzer stok bildirimi mevcut: %s", product.product_id)
                return None
            notification = self._stockout_warning(product, prediction, store_id)
        else:
            return None

        self.repository.save_notification(notification)
        logger.info(
            "Bildirim oluşturuldu: %s (%s, mağaza=%s)",
            notification.type.value,
            product.product_id,
            store_id,
        )
        self.log_decision(
            decision_type="notification_created",
            input_data={
                "product_id": product.product_id,
                "risk_score": metrics.risk_score,
                "days_until_stockout": metrics.days_until_stockout,
            },
            output_data={"type": notification.type.value, "priority": notification.priority.value},
            reasoning=notification.message,
        )

        if self.event_bus is not None:
            self.event_bus.broadcast_notification(notification.to_dict())
            if notification.priority == Priority.CRITICAL:
                self.event_bus.broadcast_urgent_alert(
                    {
                        "title": notification.title,
                        "message": notification.message,
                        "product_id": product.product_id,
                    }
                )
        return notification

    def _critical_risk(
        self, product: Product, prediction: Prediction, store_id: str
    ) -> Notification:
        risk = prediction.metrics.risk_score
        days_to_expiry = earliest_expiry_days(product, self.now())
        expiry_text = (
            f" Earliest batch expires in {days_to_expiry} days."
            if days_to_expiry is not None
            else ""
        )
        return Notification(
            store_id=store_id,
            type=NotificationType.CRITICAL_RISK,
            product_id=product.product_id,
            title=f"Critical risk: {product.name}",
            message=(
                f"{product.name} has a risk score of {risk:.0f}/100.{expiry_text} "
                f"Apply a {RECOMMENDED_DISCOUNT}% discount to move {product.total_quantity} units."
            ),
            priority=Priority.CRITICAL,
            action=NotificationAction.APPLY_DISCOUNT,
            action_params={"product_id": product.product_id, "discount": RECOMMENDED_DISCOUNT},
            metadata={
                "risk_score": risk,
                "days_to_expiry": days_to_expiry,
                "recommended_discount": RECOMMENDED_DISCOUNT,
            },
            created_at=self.now(),
        )

    def _stockout_warning(
        self, product: Product, prediction: Prediction, store_id: str
    ) -> Notification:
        metrics = prediction.metrics
        restock_quantity = math.ceil(metrics.velocity * RESTOCK_COVER_DAYS)
        days_left = metrics.days_until_stockout
        return Notification(
            store_id=store_id,
            type=NotificationType.STOCKOUT_WARNING,
            product_id=product.product_id,
            title=f"Stockout warning: {product.name}",
            message=(
                f"Only {days_left:.0f} days of stock left at {metrics.velocity:.1f} units/day. "
                f"Restock {restock_quantity} units."
            ),
            priority=Priority.HIGH,
            action=NotificationAction.RESTOCK,
            action_params={"product_id": product.product_id, "quantity": restock_quantity},
            metadata={"days_until_stockout": days_left, "velocity": metrics.velocity},
            created_at=self.now(),
        )

    # --- Bildirim kutusu ---

    def _active(self, store_id: str) -> list[Notification]:
        since = self.now() - timedelta(days=NOTIFICATION_RETENTION_DAYS)
        return [n for n in self.repository.list_notifications(store_id, since) if not n.dismissed]

    def list_unread(self, store_id: str) -> list[Notification]:
        """Okunmamış bildirimler: önce öncelik, sonra en yeni."""
        unread = [n for n in self._active(store_id) if not n.read]
        unread.sort(key=lambda n: n.created_at, reverse=True)
        unread.sort(key=lambda n: PRIORITY_ORDER[n.priority])
        return unread[:UNREAD_LIMIT]

    def unread_count(self, store_id: str) -> int:
        return sum(1 for n in self._active(store_id) if not n.read)

    def _get(self, notification_id: str) -> Notification:
        notification = self.repository.get_notification(notification_id)
        if notification is None:
            raise NotFoundError(f"Notification not found: {notification_id}")
        return notification

    def mark_read(self, notification_id: str) -> Notification:
        notification = self._get(notification_id)
        notification.read = True
        return self.repository.save_notification(notification)

    def dismiss(self, notification_id: str) -> Notification:
        notification = self._get(notification_id)
        notification.dismissed = True
        return self.repository.save_notification(notification)

    def mark_all_read(self, store_id: str) -> int:
        updated = 0
        for notification in self._active(store_id):
            if notification.read:
                continue
            notification.read = True
            self.repository.save_notification(notification)
            updated += 1
        return updated
