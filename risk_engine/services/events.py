"""Anlık bildirim olay yolu (yayınla/abone ol).

Konular: `product:{id}`, `dashboard`, `category:{name}` ve tüm abonelere
yayın. Teslimat en fazla bir kez, onay ve kalıcılık yoktur; yayın anında
kayıtlı olmayan aboneler olayı kaçırır.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from risk_engine.models.inventory import format_datetime, utcnow
from risk_engine.models.prediction import Prediction

logger = logging.getLogger(__name__)

BROADCAST = "*"
DASHBOARD = "dashboard"
URGENT_RISK = 70
URGENT_STOCKOUT_DAYS = 7


def product_topic(product_id: str) -> str:
    return f"product:{product_id}"


def category_topic(category: str) -> str:
    return f"category:{category}"


@dataclass
class Event:
    event_id: str
    topic: str
    name: str
    payload: dict
    timestamp: str = field(default_factory=lambda: format_datetime(utcnow()))


Handler = Callable[[Event], None]


class EventBus:
    """Konu bazlı olay yayıncısı."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._lock = threading.Lock()
        self._clock = clock or utcnow

    def subscribe(self, topic: str, handler: Handler) -> None:
        with self._lock:
            self._handlers.setdefault(topic, []).append(handler)

    def unsubscribe(self, topic: str, handler: Handler) -> bool:
        with self._lock:
            handlers = self._handlers.get(topic, [])
            if handler not in handlers:
                return False
            handlers.remove(handler)
            return True

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._handlers.get(topic, []))

    def publish(self, topic: str, name: str, payload: dict) -> int:
        """Olayı konunun abonelerine iletir, teslim edilen abone sayısını döndürür.

        BROADCAST konusu tüm abonelere gider. Hata veren handler loglanır ve atlanır.
        """
        event = Event(
            event_id=str(uuid.uuid4()),
            topic=topic,
            name=name,
            payload=payload,
            timestamp=format_datetime(self._clock()),
        )
        with self._lock:
            if topic == BROADCAST:
                candidates = [h for hs in self._handlers.values() for h in hs]
            else:
                candidates = list(self._handlers.get(topic, [])) + list(
                    self._handlers.get(BROADCAST, [])
                )

        # Birden fazla konuya abone olan handler olayı bir kez alır
        handlers: list[Handler] = []
        seen: set[int] = set()
        for handler in candidates:
            if id(handler) not in seen:
                seen.add(id(handler))
                handlers.append(handler)

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.warning("Olay handler hatası [%s/%s]: %s", topic, name, e)

        logger.debug("Olay yayınlandı: %s -> %s (%d abone)", name, topic, delivered)
        return delivered

    # --- Tahmin ve uyarı olayları ---

    def publish_prediction_update(self, prediction: Prediction) -> int:
        payload = {
            "product_id": prediction.product_id,
            "prediction": {
                "forecast": prediction.forecast.to_dict(),
                "metrics": prediction.metrics.to_dict(),
                "recommendations": [r.to_dict() for r in prediction.recommendations],
                "warning": prediction.warning,
            },
        }
        delivered = self.publish(
            product_topic(prediction.product_id), "prediction:update", payload
        )
        metrics = prediction.metrics
        if (
            metrics.risk_score >= URGENT_RISK
            or metrics.days_until_stockout <= URGENT_STOCKOUT_DAYS
        ):
            delivered += self.publish(DASHBOARD, "prediction:urgent", payload)
        return delivered

    def publish_dashboard_update(self, insights: dict) -> int:
        return self.publish(DASHBOARD, "dashboard:update", {"insights": insights})

    def publish_category_update(self, category: str, insights: dict) -> int:
        return self.publish(
            category_topic(category), "category:update", {"category": category, "insights": insights}
        )

    def broadcast_urgent_alert(self, alert: dict) -> int:
        return self.publish(BROADCAST, "alert:urgent", alert)

    def broadcast_notification(self, notification: dict) -> int:
        return self.publish(BROADCAST, "notification:new", notification)
