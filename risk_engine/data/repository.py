"""Kalıcı depo sözleşmesi ve DynamoDB implementasyonu.

Ürün, satış, tahmin, uyarı ayarı, kategori ve bildirim kayıtları için
okuma/yazma işlemleri. Mağaza (tenant) kapsamı her çağrıda dışarıdan verilir;
yetkilendirme burada yapılmaz.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from risk_engine.config import EngineConfig
from risk_engine.models.inventory import (
    AlertSettings,
    Category,
    Notification,
    NotificationType,
    Product,
    Sale,
    format_datetime,
)
from risk_engine.models.prediction import Prediction

logger = logging.getLogger(__name__)


def to_dynamo(obj: Any) -> Any:
    """float değerlerini DynamoDB'nin kabul ettiği Decimal'e çevirir."""
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: to_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [to_dynamo(i) for i in obj]
    return obj


def from_dynamo(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return int(obj) if obj == int(obj) else float(obj)
    if isinstance(obj, dict):
        return {k: from_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [from_dynamo(i) for i in obj]
    return obj


class InventoryRepository(ABC):
    """Risk motorunun kullandığı kalıcı depo sözleşmesi."""

    @abstractmethod
    def get_product(self, product_id: str, store_id: Optional[str] = None) -> Optional[Product]:
        ...

    @abstractmethod
    def list_products(
        self,
        store_id: Optional[str],
        perishable: Optional[bool] = None,
        category: Optional[str] = None,
    ) -> list[Product]:
        ...

    @abstractmethod
    def list_sales(
        self, product_id: str, since: datetime, store_id: Optional[str] = None
    ) -> list[Sale]:
        """Satışları tarih sırasına göre (eskiden yeniye) döndürür."""
        ...

    @abstractmethod
    def list_store_sales(self, store_id: Optional[str], since: datetime) -> list[Sale]:
        ...

    @abstractmethod
    def get_prediction(self, product_id: str) -> Optional[Prediction]:
        ...

    @abstractmethod
    def list_predictions(self, store_id: Optional[str] = None) -> list[Prediction]:
        ...

    @abstractmethod
    def save_prediction(self, prediction: Prediction) -> Prediction:
        ...

    @abstractmethod
    def delete_prediction(self, product_id: str) -> bool:
        ...

    @abstractmethod
    def get_alert_settings(self, store_id: str) -> Optional[AlertSettings]:
        ...

    @abstractmethod
    def save_alert_settings(self, settings: AlertSettings) -> AlertSettings:
        ...

    @abstractmethod
    def get_category(self, store_id: Optional[str], name: str) -> Optional[Category]:
        ...

    @abstractmethod
    def find_recent_notification(
        self,
        product_id: str,
        notification_type: NotificationType,
        store_id: str,
        since: datetime,
    ) -> Optional[Notification]:
        ...

    @abstractmethod
    def save_notification(self, notification: Notification) -> Notification:
        ...

    @abstractmethod
    def get_notification(self, notification_id: str) -> Optional[Notification]:
        ...

    @abstractmethod
    def list_notifications(self, store_id: str, since: datetime) -> list[Notification]:
        ...


class DynamoDBRepository(InventoryRepository):
    """boto3 DynamoDB resource üzerinden depo implementasyonu."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        dynamodb_resource: Optional[Any] = None,
    ):
        self.config = config or EngineConfig.from_env()
        # dependency injection destekli
        self.dynamodb = dynamodb_resource or boto3.resource(
            "dynamodb", region_name=self.config.region_name
        )
        self.products_table = self.dynamodb.Table(self.config.table_name("Products"))
        self.sales_table = self.dynamodb.Table(self.config.table_name("Sales"))
        self.predictions_table = self.dynamodb.Table(self.config.table_name("Predictions"))
        self.settings_table = self.dynamodb.Table(self.config.table_name("AlertSettings"))
        self.categories_table = self.dynamodb.Table(self.config.table_name("Categories"))
        self.notifications_table = self.dynamodb.Table(self.config.table_name("Notifications"))

    # --- Sayfalama yardımcıları ---

    @staticmethod
    def _query_all(table: Any, **kwargs: Any) -> list[dict]:
        items: list[dict] = []
        while True:
            response = table.query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return [from_dynamo(i) for i in items]
            kwargs["ExclusiveStartKey"] = last_key

    @staticmethod
    def _scan_all(table: Any, **kwargs: Any) -> list[dict]:
        items: list[dict] = []
        while True:
            response = table.scan(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return [from_dynamo(i) for i in items]
            kwargs["ExclusiveStartKey"] = last_key

    @staticmethod
    def _get_item(table: Any, key: dict) -> Optional[dict]:
        response = table.get_item(Key=key)
        item = response.get("Item")
        return from_dynamo(item) if item else None

    # --- Ürünler ---

    def get_product(self, product_id: str, store_id: Optional[str] = None) -> Optional[Product]:
        item = self._get_item(self.products_table, {"product_id": product_id})
        if not item:
            return None
        if store_id is not None and item.get("store_id") != store_id:
            return None
        return Product.from_dict(item)

    def list_products(
        self,
        store_id: Optional[str],
        perishable: Optional[bool] = None,
        category: Optional[str] = None,
    ) -> list[Product]:
        filters = []
        if perishable is not None:
            filters.append(Attr("is_perishable").eq(perishable))
        if category is not None:
            filters.append(Attr("category").eq(category))

        kwargs: dict[str, Any] = {}
        if filters:
            expression = filters[0]
            for extra in filters[1:]:
                expression = expression & extra
            kwargs["FilterExpression"] = expression

        if store_id is None:
            items = self._scan_all(self.products_table, **kwargs)
        else:
            items = self._query_all(
                self.products_table,
                IndexName="StoreIndex",
                KeyConditionExpression=Key("store_id").eq(store_id),
                **kwargs,
            )
        return [Product.from_dict(i) for i in items]

    # --- Satışlar ---

    def list_sales(
        self, product_id: str, since: datetime, store_id: Optional[str] = None
    ) -> list[Sale]:
        kwargs: dict[str, Any] = {
            "KeyConditionExpression": (
                Key("product_id").eq(product_id)
                & Key("sale_date").gte(format_datetime(since))
            ),
            "ScanIndexForward": True,
        }
        if store_id is not None:
            kwargs["FilterExpression"] = Attr("store_id").eq(store_id)
        items = self._query_all(self.sales_table, **kwargs)
        return [Sale.from_dict(i) for i in items]

    def list_store_sales(self, store_id: Optional[str], since: datetime) -> list[Sale]:
        expression = Attr("sale_date").gte(format_datetime(since))
        if store_id is not None:
            expression = expression & Attr("store_id").eq(store_id)
        items = self._scan_all(self.sales_table, FilterExpression=expression)
        sales = [Sale.from_dict(i) for i in items]
        sales.sort(key=lambda s: s.sale_date)
        return sales

    # --- Tahminler ---

    def get_prediction(self, product_id: str) -> Optional[Prediction]:
        item = self._get_item(self.predictions_table, {"product_id": product_id})
        return Prediction.from_dict(item) if item else None

    def list_predictions(self, store_id: Optional[str] = None) -> list[Prediction]:
        if store_id is None:
            items = self._scan_all(self.predictions_table)
        else:
            items = self._query_all(
                self.predictions_table,
                IndexName="StoreIndex",
                KeyConditionExpression=Key("store_id").eq(store_id),
            )
        return [Prediction.from_dict(i) for i in items]

    def save_prediction(self, prediction: Prediction) -> Prediction:
        # Tek put_item: tahmin belgesi ya tamamen yazılır ya hiç yazılmaz
        item = {k: v for k, v in prediction.to_dict().items() if v is not None}
        self.predictions_table.put_item(Item=to_dynamo(item))
        return prediction

    def delete_prediction(self, product_id: str) -> bool:
        try:
            self.predictions_table.delete_item(
                Key={"product_id": product_id},
                ConditionExpression=Attr("product_id").exists(),
            )
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            raise

    # --- Uyarı ayarları ve kategoriler ---

    def get_alert_settings(self, store_id: str) -> Optional[AlertSettings]:
        item = self._get_item(self.settings_table, {"store_id": store_id})
        return AlertSettings.from_dict(item) if item else None

    def save_alert_settings(self, settings: AlertSettings) -> AlertSettings:
        self.settings_table.put_item(Item=to_dynamo(settings.to_dict()))
        return settings

    def get_category(self, store_id: Optional[str], name: str) -> Optional[Category]:
        if store_id is None:
            items = self._scan_all(self.categories_table, FilterExpression=Attr("name").eq(name))
            return Category.from_dict(items[0]) if items else None
        item = self._get_item(self.categories_table, {"store_id": store_id, "name": name})
        return Category.from_dict(item) if item else None

    # --- Bildirimler ---

    def find_recent_notification(
        self,
        product_id: str,
        notification_type: NotificationType,
        store_id: str,
        since: datetime,
    ) -> Optional[Notification]:
        items = self._query_all(
            self.notifications_table,
            IndexName="ProductIndex",
            KeyConditionExpression=(
                Key("product_id").eq(product_id)
                & Key("created_at").gte(format_datetime(since))
            ),
            FilterExpression=(
                Attr("type").eq(notification_type.value) & Attr("store_id").eq(store_id)
            ),
        )
        return Notification.from_dict(items[0]) if items else None

    def save_notification(self, notification: Notification) -> Notification:
        # Ürünsüz bildirimlerde product_id (ProductIndex anahtarı) yazılmaz
        item = {k: v for k, v in notification.to_dict().items() if v is not None}
        # 7 günlük DynamoDB TTL
        item["expires_at"] = int(notification.created_at.timestamp()) + 7 * 24 * 3600
        self.notifications_table.put_item(Item=to_dynamo(item))
        return notification

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        item = self._get_item(self.notifications_table, {"notification_id": notification_id})
        return Notification.from_dict(item) if item else None

    def list_notifications(self, store_id: str, since: datetime) -> list[Notification]:
        items = self._query_all(
            self.notifications_table,
            IndexName="StoreIndex",
            KeyConditionExpression=(
                Key("store_id").eq(store_id) & Key("created_at").gte(format_datetime(since))
            ),
        )
        return [Notification.from_dict(i) for i in items]
