"""Tahmin, metrik ve öneri veri modelleri."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from risk_engine.models.inventory import Priority, format_datetime, parse_datetime, utcnow

NO_STOCKOUT_DAYS = 999


class Trend(str, Enum):
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendationAction(str, Enum):
    URGENT_MARKDOWN = "urgent_markdown"
    MODERATE_MARKDOWN = "moderate_markdown"
    REDUCE_ORDER = "reduce_order"
    RESTOCK_SOON = "restock_soon"
    OVERSTOCKED = "overstocked"
    MONITOR_CLOSELY = "monitor_closely"


@dataclass
class Metrics:
    velocity: float = 0.0
    moving_average: float = 0.0
    trend: Trend = Trend.STABLE
    risk_score: float = 0.0
    days_until_stockout: float = NO_STOCKOUT_DAYS
    sales_last_30_days: float = 0.0

    def numeric_fields(self) -> dict[str, float]:
        return {
            "velocity": self.velocity,
            "moving_average": self.moving_average,
            "risk_score": self.risk_score,
            "days_until_stockout": self.days_until_stockout,
            "sales_last_30_days": self.sales_last_30_days,
        }

    def to_dict(self) -> dict:
        data: dict = dict(self.numeric_fields())
        data["trend"] = self.trend.value
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Metrics":
        data = data or {}
        return cls(
            velocity=float(data.get("velocity", 0.0)),
            moving_average=float(data.get("moving_average", 0.0)),
            trend=Trend(data.get("trend", Trend.STABLE.value)),
            risk_score=float(data.get("risk_score", 0.0)),
            days_until_stockout=float(data.get("days_until_stockout", NO_STOCKOUT_DAYS)),
            sales_last_30_days=float(data.get("sales_last_30_days", 0.0)),
        )


@dataclass
class Forecast:
    next_7_days: float = 0
    next_14_days: float = 0
    next_30_days: float = 0
    confidence: Confidence = Confidence.LOW
    model_type: str = "statistical"
    daily_predictions: Optional[list[float]] = None

    @property
    def predicted(self) -> float:
        """Öneri kuralları için 7 günlük talep."""
        return self.next_7_days

    def numeric_fields(self) -> dict[str, float]:
        values = {
            "next_7_days": self.next_7_days,
            "next_14_days": self.next_14_days,
            "next_30_days": self.next_30_days,
        }
        for i, value in enumerate(self.daily_predictions or []):
            values[f"daily_predictions[{i}]"] = value
        return values

    def to_dict(self) -> dict:
        data = {
            "next_7_days": self.next_7_days,
            "next_14_days": self.next_14_days,
            "next_30_days": self.next_30_days,
            "confidence": self.confidence.value,
            "model_type": self.model_type,
        }
        if self.daily_predictions is not None:
            data["daily_predictions"] = list(self.daily_predictions)
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Forecast":
        data = data or {}
        daily = data.get("daily_predictions")
        return cls(
            next_7_days=data.get("next_7_days", 0),
            next_14_days=data.get("next_14_days", 0),
            next_30_days=data.get("next_30_days", 0),
            confidence=Confidence(data.get("confidence", Confidence.LOW.value)),
            model_type=data.get("model_type", "statistical"),
            daily_predictions=[float(v) for v in daily] if daily is not None else None,
        )


@dataclass
class Recommendation:
    action: RecommendationAction
    priority: Priority
    message: str
    icon: str = "information-circle"

    def to_dict(self) -> dict:
        return {
            "action": self.action.value,
            "priority": self.priority.value,
            "message": self.message,
            "icon": self.icon,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Recommendation":
        return cls(
            action=RecommendationAction(data["action"]),
            priority=Priority(data["priority"]),
            message=data.get("message", ""),
            icon=data.get("icon", "information-circle"),
        )


@dataclass
class PredictionMetadata:
    """Yalnızca kategori ortalaması kullanıldığında eklenir."""
    used_category_fallback: bool = True
    original_data_points: Optional[int] = None
    category_average_velocity: Optional[float] = None

    def to_dict(self) -> dict:
        data: dict = {"used_category_fallback": self.used_category_fallback}
        if self.original_data_points is not None:
            data["original_data_points"] = self.original_data_points
        if self.category_average_velocity is not None:
            data["category_average_velocity"] = self.category_average_velocity
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["PredictionMetadata"]:
        if not data:
            return None
        avg = data.get("category_average_velocity")
        original = data.get("original_data_points")
        return cls(
            used_category_fallback=bool(data.get("used_category_fallback", False)),
            original_data_points=int(original) if original is not None else None,
            category_average_velocity=float(avg) if avg is not None else None,
        )


@dataclass
class Prediction:
    product_id: str
    store_id: Optional[str]
    product_name: str = ""
    category: Optional[str] = None
    metrics: Metrics = field(default_factory=Metrics)
    forecast: Forecast = field(default_factory=Forecast)
    recommendations: list[Recommendation] = field(default_factory=list)
    data_points: int = 0
    calculated_at: datetime = field(default_factory=utcnow)
    warning: Optional[str] = None
    metadata: Optional[PredictionMetadata] = None

    @property
    def used_category_fallback(self) -> bool:
        return bool(self.metadata and self.metadata.used_category_fallback)

    def to_dict(self) -> dict:
        data = {
            "product_id": self.product_id,
            "store_id": self.store_id,
            "product_name": self.product_name,
            "category": self.category,
            "metrics": self.metrics.to_dict(),
            "forecast": self.forecast.to_dict(),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "data_points": self.data_points,
            "calculated_at": format_datetime(self.calculated_at),
        }
        # Opsiyonel alanlar yalnızca mevcutsa yazılır
        if self.warning is not None:
            data["warning"] = self.warning
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Prediction":
        return cls(
            product_id=str(data["product_id"]),
            store_id=data.get("store_id"),
            product_name=data.get("product_name", ""),
            category=data.get("category") or None,
            metrics=Metrics.from_dict(data.get("metrics")),
            forecast=Forecast.from_dict(data.get("forecast")),
            recommendations=[
                Recommendation.from_dict(r) for r in data.get("recommendations", [])
            ],
            data_points=int(data.get("data_points", 0)),
            calculated_at=parse_datetime(data.get("calculated_at")) or utcnow(),
            warning=data.get("warning"),
            metadata=PredictionMetadata.from_dict(data.get("metadata")),
        )
