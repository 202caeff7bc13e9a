"""Alert Engine unit testleri."""

from datetime import timedelta

import pytest

from risk_engine.errors import ValidationError
from risk_engine.models.alerts import AlertLevel, AlertSortMode, EffectiveThresholds
from risk_engine.models.inventory import Batch, CustomAlertThresholds, Product, Sale
from risk_engine.services.alert_engine import AlertEngine, classify, recommended_actions

from conftest import NOW


def _create_engine(repo, service_kwargs) -> AlertEngine:
    return AlertEngine(repo, **service_kwargs)


def _perishable(product_id, expiry_days, quantity=10, category="Dairy", custom=None) -> Product:
    return Product(
        product_id=product_id, store_id="S1", name=f"Item {product_id}", category=category,
        is_perishable=True, custom_alert_thresholds=custom,
        batches=[Batch(f"{product_id}-B1", quantity, expiry_date=NOW + timedelta(days=expiry_days))],
    )


def _slow_mover(product_id, quantity=20, received_days_ago=40) -> Product:
    return Product(
        product_id=product_id, store_id="S1", name=f"Item {product_id}", category="Hardware",
        is_perishable=False,
        batches=[Batch(f"{product_id}-B1", quantity,
                       received_date=NOW - timedelta(days=received_days_ago))],
    )


def _sale(product_id, quantity, days_ago=1) -> Sale:
    return Sale(sale_id=f"{product_id}-{days_ago}-{quantity}", product_id=product_id,
                store_id="S1", quantity_sold=quantity, price_at_sale=3.0,
                sale_date=NOW - timedelta(days=days_ago))


class TestClassification:
    """Sınır değerler dahil sınıflandırma."""

    THRESHOLDS = EffectiveThresholds(critical=7, high_urgency=14, early_warning=30)

    @pytest.mark.parametrize("days,level", [
        (-1, AlertLevel.EXPIRED), (0, AlertLevel.CRITICAL), (7, AlertLevel.CRITICAL),
        (8, AlertLevel.HIGH), (14, AlertLevel.HIGH), (15, AlertLevel.EARLY),
        (30, AlertLevel.EARLY), (31, AlertLevel.NORMAL),
    ])
    def test_boundaries(self, days, level):
        assert classify(days, self.THRESHOLDS) == level

    def test_critical_transfer_only_for_larger_batches(self):
        assert [a.type for a in recommended_actions(AlertLevel.CRITICAL, 3, 10)] == [
            "markdown", "transfer"]
        assert [a.type for a in recommended_actions(AlertLevel.CRITICAL, 3, 5)] == ["markdown"]


class TestExpiryScan:

    def test_batch_with_14_days_is_high_urgency(self, repo, service_kwargs):
        repo.add_product(_perishable("P1", expiry_days=14))
        result = _create_engine(repo, service_kwargs).get_alerts("S1")
        alert = result["alerts"][0]
        assert alert["level"] == "high"
        assert alert["color"] == "#FF9500"
        assert alert["days_left"] == 14

    def test_batches_beyond_early_warning_excluded(self, repo, service_kwargs):
        repo.add_product(_perishable("P1", expiry_days=31))
        assert _create_engine(repo, service_kwargs).get_alerts("S1")["alerts"] == []

    def test_expired_included(self, repo, service_kwargs):
        repo.add_product(_perishable("P1", expiry_days=-3))
        alert = _create_engine(repo, service_kwargs).get_alerts("S1")["alerts"][0]
        assert alert["level"] == "expired"
        assert alert["actions"][0]["type"] == "remove"

    def test_product_thresholds_applied(self, repo, service_kwargs):
        custom = CustomAlertThresholds(enabled=True, critical=10, high_urgency=20, early_warning=40)
        repo.add_product(_perishable("P1", expiry_days=9, custom=custom))
        alert = _create_engine(repo, service_kwargs).get_alerts("S1")["alerts"][0]
        assert alert["level"] == "critical"
        assert alert["has_custom_thresholds"] is True
        assert alert["threshold_source"] == "product"

    def test_other_store_products_ignored(self, repo, service_kwargs):
        other = _perishable("P9", expiry_days=1)
        other.store_id = "S2"
        repo.add_product(other)
        assert _create_engine(repo, service_kwargs).get_alerts("S1")["summary"]["total"] == 0


class TestSlowMovingScan:

    def test_slow_mover_flagged(self, repo, service_kwargs):
        repo.add_product(_slow_mover("H1"))
        repo.add_sale(_sale("H1", 3, days_ago=5))
        alert = _create_engine(repo, service_kwargs).get_alerts("S1")["alerts"][0]
        assert alert["level"] == "slow-moving"
        assert alert["velocity"] == 0.1
        assert alert["days_in_stock"] == 40
        assert alert["sales_last_30_days"] == 3
        assert [a["type"] for a in alert["actions"]] == ["promote", "markdown", "review"]

    def test_recent_stock_not_flagged(self, repo, service_kwargs):
        repo.add_product(_slow_mover("H1", received_days_ago=10))
        assert _create_engine(repo, service_kwargs).get_alerts("S1")["alerts"] == []

    def test_small_stock_not_flagged(self, repo, service_kwargs):
        repo.add_product(_slow_mover("H1", quantity=5))
        assert _create_engine(repo, service_kwargs).get_alerts("S1")["alerts"] == []

    def test_fast_seller_not_flagged(self, repo, service_kwargs):
        repo.add_product(_slow_mover("H1"))
        repo.add_sale(_sale("H1", 30, days_ago=2))
        assert _create_engine(repo, service_kwargs).get_alerts("S1")["alerts"] == []


class TestAlertQuery:

    def _seed(self, repo):
        repo.add_product(_perishable("P1", expiry_days=20, quantity=50))
        repo.add_product(_perishable("P2", expiry_days=3, quantity=5, category="Bakery"))
        repo.add_product(_perishable("P3", expiry_days=-1, quantity=8))
        repo.add_product(_perishable("P4", expiry_days=10, quantity=30))
        repo.add_product(_slow_mover("H1", quantity=100))

    def test_urgency_sort(self, repo, service_kwargs):
        self._seed(repo)
        alerts = _create_engine(repo, service_kwargs).get_alerts("S1")["alerts"]
        assert [a["product_id"] for a in alerts] == ["P3", "P2", "P4", "H1", "P1"]

    def test_expiry_sort(self, repo, service_kwargs):
        self._seed(repo)
        alerts = _create_engine(repo, service_kwargs).get_alerts("S1", sort_by="expiry")["alerts"]
        assert [a["product_id"] for a in alerts] == ["P3", "P2", "P4", "P1", "H1"]

    def test_quantity_sort(self, repo, service_kwargs):
        self._seed(repo)
        alerts = _create_engine(repo, service_kwargs).get_alerts(
            "S1", sort_by=AlertSortMode.QUANTITY.value)["alerts"]
        assert [a["quantity"] for a in alerts] == [100, 50, 30, 8, 5]

    def test_summary_ignores_filters(self, repo, service_kwargs):
        self._seed(repo)
        result = _create_engine(repo, service_kwargs).get_alerts("S1", level="critical")
        assert [a["product_id"] for a in result["alerts"]] == ["P2"]
        summary = result["summary"]
        assert summary["total"] == 5
        assert (summary["expired"], summary["critical"], summary["high"], summary["early"],
                summary["slow_moving"]) == (1, 1, 1, 1, 1)
        assert summary["total_units"] == 193
        assert summary["urgent_count"] == 2

    def test_category_filter_case_insensitive(self, repo, service_kwargs):
        self._seed(repo)
        result = _create_engine(repo, service_kwargs).get_alerts("S1", category="bakery")
        assert [a["product_id"] for a in result["alerts"]] == ["P2"]

    def test_invalid_sort_rejected(self, repo, service_kwargs):
        with pytest.raises(ValidationError) as exc:
            _create_engine(repo, service_kwargs).get_alerts("S1", sort_by="name")
        assert exc.value.field == "sort_by"

    def test_missing_store_rejected(self, repo, service_kwargs):
        with pytest.raises(ValidationError):
            _create_engine(repo, service_kwargs).get_alerts("")


class TestAlertSettings:

    def test_defaults_created(self, repo, service_kwargs):
        settings = _create_engine(repo, service_kwargs).get_settings("S1")
        assert settings.thresholds.to_dict() == {"critical": 7, "high_urgency": 14, "early_warning": 30}
        assert "S1" in repo.settings

    def test_partial_update_merges(self, repo, service_kwargs):
        engine = _create_engine(repo, service_kwargs)
        engine.update_settings("S1", thresholds={"critical": 5},
                               notification_settings={"enable_early_warning": True})
        stored = repo.get_alert_settings("S1")
        assert stored.thresholds.to_dict() == {"critical": 5, "high_urgency": 14, "early_warning": 30}
        assert stored.notification_settings.enable_early_warning is True

    def test_invalid_update_not_saved(self, repo, service_kwargs):
        engine = _create_engine(repo, service_kwargs)
        engine.get_settings("S1")
        with pytest.raises(ValidationError):
            engine.update_settings("S1", thresholds={"critical": 20})
        assert repo.get_alert_settings("S1").thresholds.critical == 7

    def test_unknown_field_rejected(self, repo, service_kwargs):
        with pytest.raises(ValidationError):
            _create_engine(repo, service_kwargs).update_settings("S1", thresholds={"urgent": 3})

    def test_new_thresholds_change_classification(self, repo, service_kwargs):
        engine = _create_engine(repo, service_kwargs)
        repo.add_product(_perishable("P1", expiry_days=10))
        engine.update_settings("S1", thresholds={"critical": 10, "high_urgency": 20})
        assert engine.get_alerts("S1")["alerts"][0]["level"] == "critical"

    def test_acknowledge(self, repo, service_kwargs):
        result = _create_engine(repo, service_kwargs).acknowledge_alert("P1_B1", "markdown")
        assert result["alert_id"] == "P1_B1"
        assert result["timestamp"] == NOW.isoformat()
