from risk_engine.services.alert_engine import AlertEngine
from risk_engine.services.base_service import BaseService
from risk_engine.services.cache import CacheKeys, TTLCache
from risk_engine.services.events import EventBus
from risk_engine.services.forecast import (
    BedrockForecaster,
    FallbackForecaster,
    ForecastProvider,
    StatisticalForecaster,
    build_forecaster,
)
from risk_engine.services.notification_gate import NotificationGate
from risk_engine.services.prediction_store import PredictionStore
from risk_engine.services.recommendations import RecommendationEngine
from risk_engine.services.thresholds import ThresholdResolver

__all__ = [
    "AlertEngine",
    "BaseService",
    "BedrockForecaster",
    "CacheKeys",
    "EventBus",
    "FallbackForecaster",
    "ForecastProvider",
    "NotificationGate",
    "PredictionStore",
    "RecommendationEngine",
    "StatisticalForecaster",
    "TTLCache",
    "ThresholdResolver",
    "build_forecaster",
]
