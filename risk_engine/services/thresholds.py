"""Uyarı eşiklerinin çözümlenmesi ve doğrulanması.

Öncelik: ürün override'ı -> kategori override'ı -> mağaza varsayılanı.
"""

from __future__ import annotations

import logging
from typing import Optional

from risk_engine.data.repository import InventoryRepository
from risk_engine.errors import ValidationError
from risk_engine.models.alerts import EffectiveThresholds, ThresholdSource
from risk_engine.models.inventory import AlertThresholds, CustomAlertThresholds, Product

logger = logging.getLogger(__name__)

# Alan -> (min, max) gün
THRESHOLD_BOUNDS: dict[str, tuple[int, int]] = {
    "critical": (1, 30),
    "high_urgency": (1, 60),
    "early_warning": (1, 90),
}


def validate_thresholds(critical: int, high_urgency: int, early_warning: int) -> None:
    """Eşik sırasını ve sınırlarını doğrular; ihlalde ValidationError fırlatır."""
    values = {
        "critical": critical,
        "high_urgency": high_urgency,
        "early_warning": early_warning,
    }
    for name, value in values.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{name} threshold must be an integer", field=name)
        low, high = THRESHOLD_BOUNDS[name]
        if not low <= value <= high:
            raise ValidationError(
                f"{name} threshold must be between {low} and {high} days", field=name
            )

    if critical >= high_urgency:
        raise ValidationError(
            "Critical threshold must be less than High Urgency threshold",
            field="critical",
        )
    if high_urgency >= early_warning:
        raise ValidationError(
            "High Urgency threshold must be less than Early Warning threshold",
            field="high_urgency",
        )


def _merge(
    custom: CustomAlertThresholds, fallback: AlertThresholds, source: ThresholdSource
) -> EffectiveThresholds:
    """Override'ı globalle birleştirir; birleşik üçlü geçersizse ValidationError."""
    critical, high_urgency, early_warning = custom.merged_with(fallback)
    validate_thresholds(critical, high_urgency, early_warning)
    return EffectiveThresholds(
        critical=critical,
        high_urgency=high_urgency,
        early_warning=early_warning,
        is_custom=True,
        source=source,
    )


class ThresholdResolver:
    """Bir ürün için geçerli uyarı eşiklerini belirler.

    Geçersiz bir override (sıra veya sınır ihlali) loglanır ve bir sonraki
    kaynağa geçilir.
    """

    def __init__(self, repository: InventoryRepository):
        self.repository = repository

    def resolve(
        self, product: Product, global_thresholds: AlertThresholds
    ) -> EffectiveThresholds:
        candidates = (
            (product.custom_alert_thresholds, ThresholdSource.PRODUCT),
            (self._category_thresholds(product), ThresholdSource.CATEGORY),
        )
        for custom, source in candidates:
            if custom is None or not custom.enabled:
                continue
            try:
                return _merge(custom, global_thresholds, source)
            except ValidationError as e:
                logger.warning(
                    "Geçersiz %s eşik override'ı atlandı (%s): %s",
                    source.value,
                    product.product_id,
                    e,
                )

        return EffectiveThresholds(
            critical=global_thresholds.critical,
            high_urgency=global_thresholds.high_urgency,
            early_warning=global_thresholds.early_warning,
            is_custom=False,
            source=ThresholdSource.GLOBAL,
        )

    def _category_thresholds(self, product: Product) -> Optional[CustomAlertThresholds]:
        if not product.category:
            return None
        category = self.repository.get_category(product.store_id, product.category)
        return category.custom_alert_thresholds if category else None
