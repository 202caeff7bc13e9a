"""Prediction Store - Ürün bazlı tahmin hesaplama ve kalıcılık orkestrasyonu.

- Satış olayında artımlı veya tam yeniden hesaplama arasında karar verir
- Metrik, tahmin ve önerileri tek belge olarak kaydeder
- Az veri olan ürünlerde kategori ortalamasına düşer
- NaN/sonsuz değer içeren sonuçları kaydetmez
- Kayıt sonrası önbelleği geçersiz kılar, bildirim kontrolünü tetikler ve
  güncellemeyi yayınlar
- Hızlı içgörü, kategori içgörüsü ve dashboard okumalarını önbellek üzerinden sunar

Aynı ürün üzerindeki eşzamanlı güncellemelerde son yazan kazanır.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from botocore.exceptions import ClientError

from risk_engine.data.repository import InventoryRepository
from risk_engine.errors import DataQualityError, NotFoundError
from risk_engine.models.inventory import Product, Sale, format_datetime
from risk_engine.models.prediction import (
    Confidence,
    Metrics,
    Prediction,
    PredictionMetadata,
)
from risk_engine.services.base_service import BaseService
from risk_engine.services.cache import CacheKeys, TTLCache
from risk_engine.services.events import EventBus
from risk_engine.services.forecast import (
    ForecastProvider,
    build_forecaster,
    confidence_for,
    scale_forecast,
)
from risk_engine.services.metrics import (
    calculate_expiry_risk,
    calculate_moving_average,
    calculate_trend,
    calculate_velocity,
    days_until_stockout,
    sale_quantities,
)
from risk_engine.services.notification_gate import NotificationGate
from risk_engine.services.recommendations import RecommendationEngine

logger = logging.getLogger(__name__)

SALES_WINDOW_DAYS = 30
MOVING_AVERAGE_PERIOD = 7
URGENT_RISK_SCORE = 70
URGENT_STOCKOUT_DAYS = 7
HIGH_RISK_SCORE = 70
MEDIUM_RISK_SCORE = 40
QUICK_INSIGHTS_LIMIT = 10
DASHBOARD_TOP_LIMIT = 10
CATEGORY_PERFORMER_LIMIT = 5
LOW_CONFIDENCE_WARNING = "Forecast confidence is low. Treat predicted demand as an estimate."


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _limited_data_warning(n: int, min_points: int) -> str:
    return (
        f"Limited sales data ({n} sales). Predictions may be inaccurate "
        f"until at least {min_points} sales are recorded."
    )


class PredictionStore(BaseService):
    """Tahmin yaşam döngüsünü yöneten orkestratör."""

    def __init__(
        self,
        repository: InventoryRepository,
        forecaster: Optional[ForecastProvider] = None,
        recommendation_engine: Optional[RecommendationEngine] = None,
        notification_gate: Optional[NotificationGate] = None,
        cache: Optional[TTLCache] = None,
        event_bus: Optional[EventBus] = None,
        bedrock_runtime_client: Optional[Any] = None,
        **kwargs: Any,
    ):
        super().__init__(service_name="PredictionStore", **kwargs)
        self.repository = repository
        self.forecaster = forecaster or build_forecaster(self.config, bedrock_runtime_client)
        self.recommendation_engine = recommendation_engine or RecommendationEngine()
        self.notification_gate = notification_gate
        self.cache = cache or TTLCache(default_ttl=self.config.cache_ttl_seconds)
        self.event_bus = event_bus

    # --- Yardımcılar ---

    def _find_product(self, product_id: str, store_id: Optional[str] = None) -> Optional[Product]:
        if not product_id:
            return None
        return self.repository.get_product(product_id, store_id)

    def _recent_sales(self, product: Product, now: datetime) -> list[Sale]:
        since = now - timedelta(days=SALES_WINDOW_DAYS)
        return self.repository.list_sales(product.product_id, since, store_id=product.store_id)

    # --- Tam hesaplama hattı ---

    def compute_full(self, product: Product, sales: Sequence[Sale], now: datetime) -> Prediction:
        """30 günlük satıştan tüm metrikleri, tahmini ve önerileri türetir.

        Aynı girdilerle deterministiktir; artımlı güncellemeler de zamanla bu
        sonuca yakınsar.
        """
        quantities = sale_quantities(sales)
        velocity = calculate_velocity(sales, SALES_WINDOW_DAYS)
        moving_average = calculate_moving_average(quantities, MOVING_AVERAGE_PERIOD)

        metrics = Metrics(
            velocity=velocity,
            moving_average=moving_average,
            trend=calculate_trend(quantities),
            risk_score=calculate_expiry_risk(product, velocity, now),
            days_until_stockout=days_until_stockout(product.total_quantity, velocity),
            sales_last_30_days=sum(quantities),
        )
        forecast = self.forecaster.forecast(product.product_id, sales)

        prediction = Prediction(
            product_id=product.product_id,
            store_id=product.store_id,
            product_name=product.name,
            category=product.category,
            metrics=metrics,
            forecast=forecast,
            data_points=len(sales),
            calculated_at=now,
        )
        prediction.recommendations = self.recommendation_engine.generate(
            product, metrics.velocity, metrics.risk_score, forecast
        )
        return prediction

    # --- Düşük güven yönetimi ---

    def _category_peers(self, product: Product) -> list[Prediction]:
        if not product.category:
            return []
        return [
            p
            for p in self.repository.list_predictions(product.store_id)
            if p.category == product.category
            and p.product_id != product.product_id
            and p.data_points >= self.config.min_data_points
        ]

    def apply_low_confidence(self, prediction: Prediction, product: Product) -> Prediction:
        """Az veri varsa kategori ortalamasını kullanır veya uyarı ekler."""
        min_points = self.config.min_data_points
        n = prediction.data_points

        if n < min_points:
            peers = self._category_peers(product)
            if not peers:
                prediction.warning = _limited_data_warning(n, min_points)
                return prediction

            avg_velocity = _mean([p.metrics.velocity for p in peers])
            avg_risk = _mean([p.metrics.risk_score for p in peers])
            prediction.metrics.velocity = avg_velocity
            prediction.metrics.moving_average = avg_velocity
            scaled = scale_forecast(
                avg_velocity, prediction.forecast.confidence, prediction.forecast.model_type
            )
            prediction.forecast.next_7_days = scaled.next_7_days
            prediction.forecast.next_14_days = scaled.next_14_days
            prediction.forecast.next_30_days = scaled.next_30_days
            prediction.forecast.daily_predictions = None
            prediction.metadata = PredictionMetadata(
                used_category_fallback=True,
                original_data_points=n,
                category_average_velocity=avg_velocity,
            )
            prediction.warning = (
                f"Limited sales data ({n} sales). Using {product.category} category average "
                f"of {avg_velocity:.1f} units/day from {len(peers)} products "
                f"(average risk {avg_risk:.0f}/100)."
            )
            logger.info(
                "Kategori ortalaması kullanıldı: %s (%s, %d ürün)",
                product.product_id,
                product.category,
                len(peers),
            )
        elif prediction.forecast.confidence == Confidence.LOW:
            prediction.warning = LOW_CONFIDENCE_WARNING

        return prediction

    def _incremental_warning(
        self, existing: Prediction, data_points: int, confidence: Confidence
    ) -> tuple[Optional[str], Optional[PredictionMetadata]]:
        """Artımlı yolda uyarıyı yeni veri noktası sayısına göre yeniden üretir."""
        min_points = self.config.min_data_points
        if data_points >= min_points:
            return (LOW_CONFIDENCE_WARNING if confidence == Confidence.LOW else None), None

        metadata = existing.metadata
        if metadata is not None and metadata.used_category_fallback:
            warning = (
                f"Limited sales data ({data_points} sales). Using {existing.category} "
                f"category average of {metadata.category_average_velocity:.1f} units/day."
            )
            return warning, metadata
        return _limited_data_warning(data_points, min_points), None

    # --- Veri kalitesi kapısı ---

    @staticmethod
    def sanitize(prediction: Prediction) -> None:
        """Sayısal alanlardan biri sonlu değilse DataQualityError fırlatır."""
        fields = {
            **{f"metrics.{k}": v for k, v in prediction.metrics.numeric_fields().items()},
            **{f"forecast.{k}": v for k, v in prediction.forecast.numeric_fields().items()},
        }
        for name, value in fields.items():
            if value is None or not math.isfinite(value):
                raise DataQualityError(f"{name} geçersiz değer: {value}")

    def _reject(self, product: Product, path: str, error: Exception) -> None:
        logger.error("Tahmin kaydedilmedi (%s): %s", product.product_id, error)
        self.log_decision(
            decision_type="prediction_rejected",
            input_data={"product_id": product.product_id, "path": path},
            output_data={"error": str(error)},
            reasoning="Sonlu olmayan değer içeren tahmin reddedildi.",
        )

    def _persist(self, product: Product, prediction: Prediction, path: str) -> Optional[Prediction]:
        try:
            self.sanitize(prediction)
        except DataQualityError as e:
            self._reject(product, path, e)
            return None

        self.repository.save_prediction(prediction)
        self.cache.invalidate_prediction(product.product_id, product.category)

        self.log_decision(
            decision_type="prediction_saved",
            input_data={
                "product_id": product.product_id,
                "path": path,
                "data_points": prediction.data_points,
            },
            output_data={
                "risk_score": prediction.metrics.risk_score,
                "velocity": prediction.metrics.velocity,
                "model_type": prediction.forecast.model_type,
                "used_category_fallback": prediction.used_category_fallback,
            },
            reasoning=(
                f"Tahmin kaydedildi ({path}): hız={prediction.metrics.velocity:.2f}, "
                f"risk={prediction.metrics.risk_score:.0f}, model={prediction.forecast.model_type}"
            ),
        )

        if self.notification_gate is not None:
            try:
                self.notification_gate.evaluate(product, prediction)
            except ClientError as e:
                logger.warning("Bildirim kontrolü başarısız (%s): %s", product.product_id, e)

        if self.event_bus is not None:
            self.event_bus.publish_prediction_update(prediction)
            if prediction.category:
                self.event_bus.publish_category_update(
                    prediction.category,
                    self.get_category_insights(prediction.category, prediction.store_id),
                )

        return prediction

    # --- Dışa açık işlemler ---

    def save_prediction(self, product_id: str, store_id: Optional[str] = None) -> Optional[Prediction]:
        """Tam hesaplama + düşük güven yönetimi + veri kalitesi kapısı ile kaydeder."""
        product = self._find_product(product_id, store_id)
        if product is None:
            logger.warning("Ürün bulunamadı, tahmin hesaplanmadı: %s", product_id)
            return None

        now = self.now()
        existing = self.repository.get_prediction(product.product_id)
        path = "full" if existing is not None else "initial"

        try:
            prediction = self.compute_full(product, self._recent_sales(product, now), now)
            self.apply_low_confidence(prediction, product)
            # Geri düşüş değerleri değiştirmiş olabilir
            prediction.recommendations = self.recommendation_engine.generate(
                product, prediction.metrics.velocity, prediction.metrics.risk_score, prediction.forecast
            )
        except (ValueError, OverflowError) as e:
            # NaN/sonsuz girdi round/ceil içinde patlar
            self._reject(product, path, DataQualityError(f"hesaplama başarısız: {e}"))
            return None

        logger.info(
            "Tahmin hesaplandı (%s): %s, %d satış, model=%s",
            path,
            product.product_id,
            prediction.data_points,
            prediction.forecast.model_type,
        )
        return self._persist(product, prediction, path)

    def update_prediction_after_sale(
        self, product_id: str, sale: Sale, store_id: Optional[str] = None
    ) -> Optional[Prediction]:
        """Satış sonrası tahmini günceller.

        Mevcut tahmin yoksa ilk hesaplama, tahmin pencere süresinden (varsayılan
        5 sn) yeniyse artımlı güncelleme, değilse tam yeniden hesaplama yapılır.
        """
        product = self._find_product(product_id, store_id)
        if product is None:
            logger.warning("Ürün bulunamadı, satış sonrası güncelleme atlandı: %s", product_id)
            return None

        existing = self.repository.get_prediction(product.product_id)
        if existing is None:
            return self.save_prediction(product.product_id, store_id)

        now = self.now()
        age = (now - existing.calculated_at).total_seconds()
        if age >= self.config.incremental_window_seconds:
            return self.save_prediction(product.product_id, store_id)

        return self._apply_incremental(product, existing, sale, now)

    def _apply_incremental(
        self, product: Product, existing: Prediction, sale: Sale, now: datetime
    ) -> Optional[Prediction]:
        weight = self.config.velocity_blend_weight
        previous = existing.metrics
        quantity = sale.quantity_sold

        velocity = weight * previous.velocity + (1 - weight) * quantity
        data_points = existing.data_points + 1
        try:
            metrics = Metrics(
                velocity=velocity,
                moving_average=previous.moving_average,
                trend=previous.trend,
                risk_score=calculate_expiry_risk(product, velocity, now),
                days_until_stockout=days_until_stockout(product.total_quantity, velocity),
                sales_last_30_days=previous.sales_last_30_days + quantity,
            )
            forecast = scale_forecast(
                previous.moving_average or velocity, confidence_for(data_points)
            )
            recommendations = self.recommendation_engine.generate(
                product, velocity, metrics.risk_score, forecast
            )
        except (ValueError, OverflowError) as e:
            self._reject(product, "incremental", DataQualityError(f"hesaplama başarısız: {e}"))
            return None
        warning, metadata = self._incremental_warning(existing, data_points, forecast.confidence)

        prediction = Prediction(
            product_id=product.product_id,
            store_id=product.store_id or existing.store_id,
            product_name=product.name,
            category=product.category,
            metrics=metrics,
            forecast=forecast,
            recommendations=recommendations,
            data_points=data_points,
            calculated_at=now,
            warning=warning,
            metadata=metadata,
        )
        logger.info(
            "Artımlı güncelleme: %s, hız %.2f -> %.2f", product.product_id, previous.velocity, velocity
        )
        return self._persist(product, prediction, "incremental")

    def batch_update_predictions(self, product_ids: Sequence[str]) -> list[Prediction]:
        """Ürünleri eşzamanlı yeniden hesaplar; yalnızca başarılı olanları döndürür."""
        if not product_ids:
            return []

        results: dict[str, Prediction] = {}
        workers = max(1, min(self.config.batch_workers, len(product_ids)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self.save_prediction, pid): pid for pid in product_ids}
            for future in as_completed(futures):
                pid = futures[future]
                try:
                    prediction = future.result()
                except Exception as e:
                    logger.error("Toplu tahmin hatası (%s): %s", pid, e)
                    continue
                if prediction is not None:
                    results[pid] = prediction

        return [results[pid] for pid in product_ids if pid in results]

    def initialize_all_predictions(self, store_id: Optional[str] = None) -> dict:
        """Mağazadaki tüm ürünler için tahmin oluşturur."""
        products = self.repository.list_products(store_id)
        saved = self.batch_update_predictions([p.product_id for p in products])
        summary = {
            "total": len(products),
            "success": len(saved),
            "failed": len(products) - len(saved),
        }
        logger.info("Tahmin başlatma tamamlandı: %s", summary)

        if self.event_bus is not None and saved:
            self.event_bus.publish_dashboard_update(self.get_quick_insights(store_id))
        return summary

    def recalculate_prediction(
        self, product_id: str, store_id: Optional[str] = None
    ) -> Optional[Prediction]:
        """Önbelleği temizleyip tam yeniden hesaplama yapar."""
        product = self._find_product(product_id, store_id)
        if product is None:
            return None
        self.cache.invalidate_prediction(product.product_id, product.category)
        return self.save_prediction(product.product_id, store_id)

    def delete_prediction(self, product_id: str, category: Optional[str] = None) -> bool:
        """Ürün silindiğinde tahmini kaldırır."""
        deleted = self.repository.delete_prediction(product_id)
        self.cache.invalidate_prediction(product_id, category)
        return deleted

    # --- Okuma uçları ---

    def get_predictive_analytics(self, product_id: str, store_id: Optional[str] = None) -> dict:
        """Kaydetmeden tam analiz yapar; ham satış geçmişini de döndürür."""
        product = self._find_product(product_id, store_id)
        if product is None:
            raise NotFoundError(f"Product not found: {product_id}")

        now = self.now()
        sales = self._recent_sales(product, now)
        prediction = self.compute_full(product, sales, now)

        return {
            **prediction.to_dict(),
            "current_stock": product.total_quantity,
            "sales_history": [
                {
                    "date": format_datetime(s.sale_date),
                    "quantity": s.quantity_sold,
                    "amount": s.total_amount,
                }
                for s in sales
            ],
        }

    def get_prediction(self, product_id: str, store_id: Optional[str] = None) -> Optional[Prediction]:
        """Kayıtlı tahmini döndürür; yoksa oluşturur."""

        def _load() -> Optional[Prediction]:
            prediction = self.repository.get_prediction(product_id)
            if prediction is None:
                prediction = self.save_prediction(product_id, store_id)
            return prediction

        prediction = self.cache.get_or_set(CacheKeys.product_prediction(product_id), _load)
        if prediction is not None and store_id is not None and prediction.store_id != store_id:
            return None
        return prediction

    def get_batch_predictions(self, product_ids: Sequence[str]) -> list[Prediction]:
        def _load() -> list[Prediction]:
            predictions = []
            for pid in product_ids:
                try:
                    prediction = self.repository.get_prediction(pid) or self.save_prediction(pid)
                except ClientError as e:
                    logger.error("Tahmin okunamadı (%s): %s", pid, e)
                    continue
                if prediction is not None:
                    predictions.append(prediction)
            return predictions

        # Anahtar sırasız; sonuç istenen sıraya göre dizilir
        cached = self.cache.get_or_set(CacheKeys.batch_predictions(product_ids), _load)
        by_id = {p.product_id: p for p in cached}
        return [by_id[pid] for pid in product_ids if pid in by_id]

    def get_quick_insights(self, store_id: Optional[str] = None) -> dict:
        """Acil ürün sayısı ve risk skoruna göre ilk 10 kritik ürün."""

        def _compute() -> dict:
            urgent = [
                p
                for p in self.repository.list_predictions(store_id)
                if p.metrics.risk_score >= URGENT_RISK_SCORE
                or p.metrics.days_until_stockout <= URGENT_STOCKOUT_DAYS
            ]
            urgent.sort(key=lambda p: p.metrics.risk_score, reverse=True)
            return {
                "urgent_count": len(urgent),
                "critical_items": [
                    {
                        "product_id": p.product_id,
                        "product_name": p.product_name,
                        "category": p.category,
                        "risk_score": p.metrics.risk_score,
                        "days_until_stockout": p.metrics.days_until_stockout,
                        "top_recommendation": (
                            p.recommendations[0].to_dict() if p.recommendations else None
                        ),
                    }
                    for p in urgent[:QUICK_INSIGHTS_LIMIT]
                ],
                "last_update": format_datetime(self.now()),
            }

        return self.cache.get_or_set(
            CacheKeys.scoped(CacheKeys.QUICK_INSIGHTS, store_id),
            _compute,
            self.config.quick_insights_ttl_seconds,
        )

    def get_category_insights(self, category: str, store_id: Optional[str] = None) -> dict:
        def _performer(p: Prediction) -> dict:
            return {
                "product_id": p.product_id,
                "product_name": p.product_name,
                "velocity": p.metrics.velocity,
                "risk_score": p.metrics.risk_score,
                "trend": p.metrics.trend.value,
            }

        def _compute() -> dict:
            predictions = [
                p for p in self.repository.list_predictions(store_id) if p.category == category
            ]
            by_velocity = sorted(predictions, key=lambda p: p.metrics.velocity, reverse=True)
            return {
                "summary": {
                    "category": category,
                    "total_products": len(predictions),
                    "average_risk_score": _mean([p.metrics.risk_score for p in predictions]),
                    "average_velocity": _mean([p.metrics.velocity for p in predictions]),
                    "high_risk_count": sum(
                        1 for p in predictions if p.metrics.risk_score >= HIGH_RISK_SCORE
                    ),
                    "total_forecast_7_days": sum(p.forecast.next_7_days for p in predictions),
                },
                "top_performers": [_performer(p) for p in by_velocity[:CATEGORY_PERFORMER_LIMIT]],
                "bottom_performers": [
                    _performer(p) for p in list(reversed(by_velocity))[:CATEGORY_PERFORMER_LIMIT]
                ],
            }

        return self.cache.get_or_set(
            CacheKeys.scoped(CacheKeys.category_insights(category), store_id), _compute
        )

    def get_dashboard_analytics(self, store_id: Optional[str] = None) -> dict:
        """Tüm ürünler için risk/hız özeti (risk skoruna göre azalan)."""

        def _compute() -> dict:
            now = self.now()
            products = self.repository.list_products(store_id)
            sales = self.repository.list_store_sales(
                store_id, now - timedelta(days=SALES_WINDOW_DAYS)
            )
            by_product: dict[str, list[Sale]] = {}
            for sale in sales:
                by_product.setdefault(sale.product_id, []).append(sale)

            analytics = []
            for product in products:
                product_sales = by_product.get(product.product_id, [])
                velocity = calculate_velocity(product_sales, SALES_WINDOW_DAYS)
                analytics.append(
                    {
                        "product_id": product.product_id,
                        "product_name": product.name,
                        "category": product.category,
                        "current_stock": product.total_quantity,
                        "velocity": round(velocity, 1),
                        "risk_score": calculate_expiry_risk(product, velocity, now),
                        "trend": calculate_trend(sale_quantities(product_sales)).value,
                        "sales_count": len(product_sales),
                    }
                )
            analytics.sort(key=lambda a: a["risk_score"], reverse=True)

            summary = {
                "total_products": len(products),
                "high_risk_products": sum(1 for a in analytics if a["risk_score"] >= HIGH_RISK_SCORE),
                "medium_risk_products": sum(
                    1 for a in analytics if MEDIUM_RISK_SCORE <= a["risk_score"] < HIGH_RISK_SCORE
                ),
                "low_risk_products": sum(1 for a in analytics if a["risk_score"] < MEDIUM_RISK_SCORE),
                "total_sales": sum(s.total_amount for s in sales),
                "total_units_sold": sum(s.quantity_sold for s in sales),
                "average_velocity": _mean([a["velocity"] for a in analytics]),
                "top_risk_products": analytics[:DASHBOARD_TOP_LIMIT],
                "top_selling_products": sorted(
                    analytics, key=lambda a: a["velocity"], reverse=True
                )[:DASHBOARD_TOP_LIMIT],
            }
            return {"summary": summary, "product_analytics": analytics}

        return self.cache.get_or_set(CacheKeys.scoped(CacheKeys.DASHBOARD, store_id), _compute)
