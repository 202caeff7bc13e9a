from risk_engine.models.alerts import (
    Alert,
    AlertAction,
    AlertLevel,
    AlertSortMode,
    EffectiveThresholds,
    ThresholdSource,
)
from risk_engine.models.audit import EngineDecision
from risk_engine.models.inventory import (
    AlertSettings,
    AlertThresholds,
    Batch,
    Category,
    CustomAlertThresholds,
    Notification,
    NotificationAction,
    NotificationSettings,
    NotificationType,
    Priority,
    Product,
    Sale,
    utcnow,
)
from risk_engine.models.prediction import (
    Confidence,
    Forecast,
    Metrics,
    Prediction,
    PredictionMetadata,
    Recommendation,
    RecommendationAction,
    Trend,
)

__all__ = [
    "Alert",
    "AlertAction",
    "AlertLevel",
    "AlertSettings",
    "AlertSortMode",
    "AlertThresholds",
    "Batch",
    "Category",
    "Confidence",
    "CustomAlertThresholds",
    "EffectiveThresholds",
    "EngineDecision",
    "Forecast",
    "Metrics",
    "Notification",
    "NotificationAction",
    "NotificationSettings",
    "NotificationType",
    "Prediction",
    "PredictionMetadata",
    "Priority",
    "Product",
    "Recommendation",
    "RecommendationAction",
    "Sale",
    "ThresholdSource",
    "Trend",
    "utcnow",
]
