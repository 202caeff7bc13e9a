"""Ortak test yardımcıları: bellek içi depo ve kontrol edilebilir saat."""

import copy
from datetime import datetime, timedelta, timezone
from typing import Optional
from unittest.mock import MagicMock

import pytest

from risk_engine.config import EngineConfig
from risk_engine.data.repository import InventoryRepository
from risk_engine.models.inventory import (
    AlertSettings,
    Category,
    Notification,
    NotificationType,
    Product,
    Sale,
)
from risk_engine.models.prediction import Prediction

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Testlerde ileri sarılabilen saat."""

    def __init__(self, start: datetime = NOW):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class InMemoryRepository(InventoryRepository):
    """DynamoDB yerine sözlüklerde tutan depo; kayıtlar dict olarak saklanır."""

    def __init__(self):
        self.products: dict[str, Product] = {}
        self.sales: list[Sale] = []
        self.predictions: dict[str, dict] = {}
        self.settings: dict[str, dict] = {}
        self.categories: dict[tuple, Category] = {}
        self.notifications: dict[str, dict] = {}
        self.prediction_writes = 0

    # Test kurulum yardımcıları
    def add_product(self, product: Product) -> Product:
        self.products[product.product_id] = product
        return product

    def add_sale(self, sale: Sale) -> Sale:
        self.sales.append(sale)
        return sale

    def add_category(self, category: Category) -> Category:
        self.categories[(category.store_id, category.name)] = category
        return category

    # InventoryRepository
    def get_product(self, product_id: str, store_id: Optional[str] = None) -> Optional[Product]:
        product = self.products.get(product_id)
        if product is None or (store_id is not None and product.store_id != store_id):
            return None
        return product

    def list_products(self, store_id, perishable=None, category=None) -> list[Product]:
        return [
            p
            for p in self.products.values()
            if (store_id is None or p.store_id == store_id)
            and (perishable is None or p.is_perishable == perishable)
            and (category is None or p.category == category)
        ]

    def list_sales(self, product_id, since, store_id=None) -> list[Sale]:
        sales = [
            s
            for s in self.sales
            if s.product_id == product_id
            and s.sale_date >= since
            and (store_id is None or s.store_id == store_id)
        ]
        return sorted(sales, key=lambda s: s.sale_date)

    def list_store_sales(self, store_id, since) -> list[Sale]:
        sales = [
            s
            for s in self.sales
            if s.sale_date >= since and (store_id is None or s.store_id == store_id)
        ]
        return sorted(sales, key=lambda s: s.sale_date)

    def get_prediction(self, product_id: str) -> Optional[Prediction]:
        data = self.predictions.get(product_id)
        return Prediction.from_dict(copy.deepcopy(data)) if data else None

    def list_predictions(self, store_id=None) -> list[Prediction]:
        return [
            Prediction.from_dict(copy.deepcopy(d))
            for d in self.predictions.values()
            if store_id is None or d.get("store_id") == store_id
        ]

    def save_prediction(self, prediction: Prediction) -> Prediction:
        self.predictions[prediction.product_id] = prediction.to_dict()
        self.prediction_writes += 1
        return prediction

    def delete_prediction(self, product_id: str) -> bool:
        return self.predictions.pop(product_id, None) is not None

    def get_alert_settings(self, store_id: str) -> Optional[AlertSettings]:
        data = self.settings.get(store_id)
        return AlertSettings.from_dict(copy.deepcopy(data)) if data else None

    def save_alert_settings(self, settings: AlertSettings) -> AlertSettings:
        self.settings[settings.store_id] = settings.to_dict()
        return settings

    def get_category(self, store_id, name) -> Optional[Category]:
        if store_id is None:
            return next((c for (_, n), c in self.categories.items() if n == name), None)
        return self.categories.get((store_id, name))

    def find_recent_notification(
        self, product_id, notification_type: NotificationType, store_id, since
    ) -> Optional[Notification]:
        for data in self.notifications.values():
            n = Notification.from_dict(copy.deepcopy(data))
            if (
                n.product_id == product_id
                and n.type == notification_type
                and n.store_id == store_id
                and n.created_at >= since
            ):
                return n
        return None

    def save_notification(self, notification: Notification) -> Notification:
        self.notifications[notification.notification_id] = notification.to_dict()
        return notification

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        data = self.notifications.get(notification_id)
        return Notification.from_dict(copy.deepcopy(data)) if data else None

    def list_notifications(self, store_id, since) -> list[Notification]:
        result = [Notification.from_dict(copy.deepcopy(d)) for d in self.notifications.values()]
        return [n for n in result if n.store_id == store_id and n.created_at >= since]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def service_kwargs(config, clock) -> dict:
    """Servislere verilen ortak bağımlılıklar (AWS sahte)."""
    return {"config": config, "dynamodb_resource": MagicMock(), "clock": clock}
