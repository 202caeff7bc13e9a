"""Talep tahmini stratejileri unit testleri."""

import io
import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from risk_engine.config import EngineConfig
from risk_engine.errors import ForecastUnavailableError
from risk_engine.models.inventory import Sale
from risk_engine.models.prediction import Confidence
from risk_engine.services.forecast import (
    BedrockForecaster,
    FallbackForecaster,
    StatisticalForecaster,
    build_forecaster,
    confidence_for,
)

from conftest import NOW


def _create_sales(count, quantity=2) -> list[Sale]:
    return [
        Sale(sale_id=f"s{i}", product_id="P1", store_id="S1", quantity_sold=quantity,
             price_at_sale=1.5, sale_date=NOW - timedelta(days=count - i))
        for i in range(count)
    ]


def _bedrock_response(text: str) -> dict:
    body = {"output": {"message": {"content": [{"text": text}]}}}
    return {"body": io.BytesIO(json.dumps(body).encode())}


def _create_bedrock(text: str, min_records=14) -> BedrockForecaster:
    client = MagicMock()
    client.invoke_model.return_value = _bedrock_response(text)
    return BedrockForecaster(model_id="test-model", min_records=min_records,
                             bedrock_runtime_client=client)


class TestConfidence:

    @pytest.mark.parametrize("points,expected", [
        (0, Confidence.LOW), (6, Confidence.LOW), (7, Confidence.MEDIUM),
        (13, Confidence.MEDIUM), (14, Confidence.HIGH), (40, Confidence.HIGH),
    ])
    def test_boundaries(self, points, expected):
        assert confidence_for(points) == expected


class TestStatisticalForecaster:

    def test_scales_moving_average(self):
        forecast = StatisticalForecaster().forecast("P1", _create_sales(14, quantity=2))
        assert (forecast.next_7_days, forecast.next_14_days, forecast.next_30_days) == (14, 28, 60)
        assert forecast.confidence == Confidence.HIGH
        assert forecast.model_type == "statistical"

    def test_no_history(self):
        forecast = StatisticalForecaster().forecast("P1", [])
        assert forecast.next_30_days == 0
        assert forecast.confidence == Confidence.LOW


class TestBedrockForecaster:

    def test_parses_daily_predictions(self):
        forecaster = _create_bedrock('Here you go: {"daily": ' + json.dumps([2] * 30) + "}")
        forecast = forecaster.forecast("P1", _create_sales(20))
        assert forecast.next_7_days == 14
        assert forecast.next_30_days == 60
        assert forecast.model_type == "bedrock"
        assert forecast.confidence == Confidence.MEDIUM
        assert len(forecast.daily_predictions) == 30

    def test_negative_values_clamped(self):
        forecaster = _create_bedrock(json.dumps({"daily": [-5] * 30}))
        forecast = forecaster.forecast("P1", _create_sales(30))
        assert forecast.next_30_days == 0
        assert forecast.confidence == Confidence.HIGH

    def test_insufficient_history(self):
        forecaster = _create_bedrock(json.dumps({"daily": [1] * 30}))
        with pytest.raises(ForecastUnavailableError):
            forecaster.forecast("P1", _create_sales(5))
        forecaster.bedrock_runtime.invoke_model.assert_not_called()

    def test_unparseable_response(self):
        forecaster = _create_bedrock("no forecast today")
        with pytest.raises(ForecastUnavailableError):
            forecaster.forecast("P1", _create_sales(20))

    def test_client_error(self):
        forecaster = _create_bedrock("")
        forecaster.bedrock_runtime.invoke_model.side_effect = ClientError(
            {"Error": {"Code": "ThrottlingException", "Message": "slow down"}}, "InvokeModel"
        )
        with pytest.raises(ForecastUnavailableError):
            forecaster.forecast("P1", _create_sales(20))


class TestFallbackForecaster:
    """Öğrenilmiş model hatalarında istatistiksel tahmine düşüş."""

    def test_unavailable_falls_back(self):
        primary = MagicMock()
        primary.model_type = "bedrock"
        primary.forecast.side_effect = ForecastUnavailableError("no model")
        forecast = FallbackForecaster(primary, StatisticalForecaster()).forecast(
            "P1", _create_sales(10)
        )
        assert forecast.model_type == "statistical"
        assert forecast.next_7_days == 14

    def test_unexpected_error_falls_back(self):
        primary = MagicMock()
        primary.forecast.side_effect = RuntimeError("boom")
        forecast = FallbackForecaster(primary, StatisticalForecaster()).forecast(
            "P1", _create_sales(10)
        )
        assert forecast.model_type == "statistical"

    def test_primary_result_used(self):
        forecaster = FallbackForecaster(
            _create_bedrock(json.dumps({"daily": [1] * 30})), StatisticalForecaster()
        )
        assert forecaster.forecast("P1", _create_sales(20)).model_type == "bedrock"


class TestBuildForecaster:

    def test_statistical_by_default(self):
        assert isinstance(build_forecaster(EngineConfig()), StatisticalForecaster)

    def test_learned_model_wrapped(self):
        config = EngineConfig(learned_model_enabled=True)
        forecaster = build_forecaster(config, bedrock_runtime_client=MagicMock())
        assert isinstance(forecaster, FallbackForecaster)
        assert isinstance(forecaster.primary, BedrockForecaster)
