"""Metrik ve tahminden öncelikli aksiyon önerileri üretir.

Kurallar birbirinden bağımsız değerlendirilir; bir ürün birden fazla öneri
alabilir. Sıralama kuralların tanım sırasıdır.
"""

from __future__ import annotations

import math

from risk_engine.models.inventory import Priority, Product
from risk_engine.models.prediction import Forecast, Recommendation, RecommendationAction

URGENT_RISK = 70
MODERATE_RISK = 50
SLOW_VELOCITY = 0.5
FAST_VELOCITY = 5


class RecommendationEngine:
    """Deterministik öneri kuralları."""

    def generate(
        self,
        product: Product,
        velocity: float,
        risk_score: float,
        forecast: Forecast,
    ) -> list[Recommendation]:
        quantity = product.total_quantity
        recommendations: list[Recommendation] = []

        if risk_score >= URGENT_RISK:
            days_to_sell = math.ceil(quantity / (velocity or 1))
            recommendations.append(
                Recommendation(
                    action=RecommendationAction.URGENT_MARKDOWN,
                    priority=Priority.CRITICAL,
                    message=(
                        f"Apply 30-50% discount immediately. "
                        f"{days_to_sell} days to sell {quantity} units at current rate."
                    ),
                    icon="alert-circle",
                )
            )
        elif risk_score >= MODERATE_RISK:
            recommendations.append(
                Recommendation(
                    action=RecommendationAction.MODERATE_MARKDOWN,
                    priority=Priority.HIGH,
                    message=(
                        f"Risk score {risk_score:.0f}/100. Consider 15-30% discount. "
                        f"Monitor closely for next 7 days."
                    ),
                    icon="warning",
                )
            )

        if velocity < SLOW_VELOCITY and quantity > 5:
            recommendations.append(
                Recommendation(
                    action=RecommendationAction.REDUCE_ORDER,
                    priority=Priority.MEDIUM,
                    message=(
                        f"Slow-moving item ({velocity:.1f} units/day, {quantity} in stock). "
                        f"Reduce next order quantity by 50%."
                    ),
                    icon="trending-down",
                )
            )

        if velocity > FAST_VELOCITY and quantity < velocity * 3:
            days_left = math.ceil(quantity / velocity)
            recommendations.append(
                Recommendation(
                    action=RecommendationAction.RESTOCK_SOON,
                    priority=Priority.HIGH,
                    message=(
                        f"High demand ({velocity:.1f} units/day)! "
                        f"Restock within {days_left} days."
                    ),
                    icon="trending-up",
                )
            )

        if forecast.predicted < quantity * 0.3:
            recommendations.append(
                Recommendation(
                    action=RecommendationAction.OVERSTOCKED,
                    priority=Priority.MEDIUM,
                    message=(
                        f"Predicted 7-day demand ({forecast.predicted:.0f} units) is far below "
                        f"current stock ({quantity} units). Consider promotions."
                    ),
                    icon="archive",
                )
            )

        return recommendations
