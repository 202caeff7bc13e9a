"""Talep tahmini stratejileri.

- StatisticalForecaster: hareketli ortalama × {7, 14, 30}, her zaman kullanılabilir
- BedrockForecaster: Bedrock üzerinde barındırılan modelden günlük tahmin ister
- FallbackForecaster: önce öğrenilmiş modeli dener, herhangi bir hatada
  istatistiksel stratejiye sessizce düşer
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from risk_engine.config import EngineConfig
from risk_engine.errors import ForecastUnavailableError
from risk_engine.models.inventory import Sale
from risk_engine.models.prediction import Confidence, Forecast
from risk_engine.services.metrics import calculate_moving_average, sale_quantities

logger = logging.getLogger(__name__)

HORIZONS = (7, 14, 30)


def confidence_for(data_points: int) -> Confidence:
    if data_points >= 14:
        return Confidence.HIGH
    if data_points >= 7:
        return Confidence.MEDIUM
    return Confidence.LOW


def scale_forecast(
    daily_rate: float, confidence: Confidence, model_type: str = "statistical"
) -> Forecast:
    """Günlük oranı 7/14/30 günlük ufuklara ölçekler."""
    return Forecast(
        next_7_days=round(daily_rate * 7),
        next_14_days=round(daily_rate * 14),
        next_30_days=round(daily_rate * 30),
        confidence=confidence,
        model_type=model_type,
    )


class ForecastProvider(ABC):
    """Tahmin stratejisi sözleşmesi."""

    model_type: str = "unknown"

    @abstractmethod
    def forecast(self, product_id: str, sales_history: Sequence[Sale]) -> Forecast:
        ...


class StatisticalForecaster(ForecastProvider):
    model_type = "statistical"

    def __init__(self, period: int = 7):
        self.period = period

    def forecast(self, product_id: str, sales_history: Sequence[Sale]) -> Forecast:
        moving_avg = calculate_moving_average(sale_quantities(sales_history), self.period)
        return scale_forecast(
            moving_avg, confidence_for(len(sales_history)), self.model_type
        )


class BedrockForecaster(ForecastProvider):
    """Bedrock modelinden 30 günlük günlük talep tahmini alır."""

    model_type = "bedrock"

    def __init__(
        self,
        model_id: str,
        min_records: int = 14,
        region_name: str = "us-west-2",
        bedrock_runtime_client: Optional[Any] = None,
    ):
        self.model_id = model_id
        self.min_records = min_records
        self.bedrock_runtime = bedrock_runtime_client or boto3.client(
            "bedrock-runtime", region_name=region_name
        )

    def invoke_model(self, prompt: str, max_tokens: int = 800, temperature: float = 0.2) -> str:
        """Bedrock modelini çağırır (inference profile kullanarak)."""
        response = self.bedrock_runtime.invoke_model(
            modelId=self.model_id,
            contentType="application/json",
            accept="application/json",
            body=json.dumps(
                {
                    "messages": [{"role": "user", "content": [{"text": prompt}]}],
                    "inferenceConfig": {
                        "max_new_tokens": max_tokens,
                        "temperature": temperature,
                    },
                }
            ),
        )
        result = json.loads(response["body"].read())
        return result.get("output", {}).get("message", {}).get("content", [{}])[0].get("text", "")

    def _build_prompt(self, product_id: str, sales_history: Sequence[Sale]) -> str:
        daily: dict[str, int] = {}
        for sale in sales_history:
            key = sale.sale_date.date().isoformat()
            daily[key] = daily.get(key, 0) + sale.quantity_sold
        series = ", ".join(f"{day}: {qty}" for day, qty in sorted(daily.items()))
        return (
            f"Product {product_id} daily unit sales:\n{series}\n\n"
            f"Forecast daily unit demand for the next 30 days. "
            f'Respond only with JSON: {{"daily": [d1, d2, ..., d30]}}'
        )

    @staticmethod
    def _parse_daily(text: str) -> list[float]:
        match = re.search(r"\{.*\}", text, re.DOTALL)
        if not match:
            raise ForecastUnavailableError("Model yanıtında JSON bulunamadı")
        try:
            payload = json.loads(match.group(0))
            values = [max(0.0, float(v)) for v in payload["daily"]]
        except (ValueError, KeyError, TypeError) as e:
            raise ForecastUnavailableError(f"Model yanıtı çözümlenemedi: {e}") from e
        if len(values) < 30:
            raise ForecastUnavailableError(f"Yetersiz günlük tahmin: {len(values)}")
        return [float(round(v)) for v in values[:30]]

    def forecast(self, product_id: str, sales_history: Sequence[Sale]) -> Forecast:
        if len(sales_history) < self.min_records:
            raise ForecastUnavailableError(
                f"Yetersiz satış kaydı: {len(sales_history)} < {self.min_records}"
            )
        try:
            text = self.invoke_model(self._build_prompt(product_id, sales_history))
        except (ClientError, BotoCoreError) as e:
            raise ForecastUnavailableError(f"Bedrock API hatası: {e}") from e

        daily = self._parse_daily(text)
        n = len(sales_history)
        confidence = Confidence.HIGH if n >= 30 else Confidence.MEDIUM if n >= 15 else Confidence.LOW
        return Forecast(
            next_7_days=sum(daily[:7]),
            next_14_days=sum(daily[:14]),
            next_30_days=sum(daily),
            confidence=confidence,
            model_type=self.model_type,
            daily_predictions=daily,
        )


class FallbackForecaster(ForecastProvider):
    """Birincil stratejiyi dener; her hatada yedek stratejiye düşer."""

    def __init__(self, primary: ForecastProvider, fallback: ForecastProvider):
        self.primary = primary
        self.fallback = fallback
        self.model_type = primary.model_type

    def forecast(self, product_id: str, sales_history: Sequence[Sale]) -> Forecast:
        try:
            return self.primary.forecast(product_id, sales_history)
        except ForecastUnavailableError as e:
            logger.info("Öğrenilmiş model kullanılamadı (%s): %s", product_id, e)
        except Exception as e:
            logger.error("Öğrenilmiş model hatası (%s): %s", product_id, e)
        return self.fallback.forecast(product_id, sales_history)


def build_forecaster(
    config: EngineConfig, bedrock_runtime_client: Optional[Any] = None
) -> ForecastProvider:
    """Yapılandırmaya göre tahmin stratejisini bir kez seçer."""
    statistical = StatisticalForecaster()
    if not config.learned_model_enabled:
        return statistical
    learned = BedrockForecaster(
        model_id=config.learned_model_id,
        min_records=config.learned_model_min_records,
        region_name=config.region_name,
        bedrock_runtime_client=bedrock_runtime_client,
    )
    return FallbackForecaster(learned, statistical)
