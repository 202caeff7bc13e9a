"""Olay yolu unit testleri."""

from risk_engine.models.prediction import Metrics, Prediction
from risk_engine.services.events import BROADCAST, DASHBOARD, EventBus, product_topic

from conftest import NOW


def _create_prediction(risk_score=10, days_until_stockout=30) -> Prediction:
    return Prediction(
        product_id="P1", store_id="S1", product_name="Milk",
        metrics=Metrics(velocity=2, risk_score=risk_score, days_until_stockout=days_until_stockout),
        calculated_at=NOW,
    )


class TestEventBus:

    def test_topic_subscribers_receive_events(self):
        bus = EventBus(clock=lambda: NOW)
        received = []
        bus.subscribe(product_topic("P1"), received.append)
        bus.subscribe(product_topic("P2"), lambda e: received.append("wrong"))

        assert bus.publish(product_topic("P1"), "prediction:update", {"x": 1}) == 1
        assert received[0].name == "prediction:update"
        assert received[0].timestamp == NOW.isoformat()

    def test_broadcast_reaches_everyone(self):
        bus = EventBus()
        product, dashboard = [], []
        bus.subscribe(product_topic("P1"), product.append)
        bus.subscribe(DASHBOARD, dashboard.append)
        assert bus.broadcast_notification({"title": "hi"}) == 2
        assert len(product) == len(dashboard) == 1

    def test_broadcast_delivers_once_per_handler(self):
        bus = EventBus()
        seen = []

        def handler(event):
            seen.append(event)

        bus.subscribe(product_topic("P1"), handler)
        bus.subscribe(DASHBOARD, handler)
        assert bus.broadcast_urgent_alert({"product_id": "P1"}) == 1
        assert len(seen) == 1

    def test_topic_and_wildcard_subscriber_gets_one_copy(self):
        bus = EventBus()
        seen = []

        def handler(event):
            seen.append(event)

        bus.subscribe(DASHBOARD, handler)
        bus.subscribe(BROADCAST, handler)
        assert bus.publish(DASHBOARD, "dashboard:update", {}) == 1
        assert len(seen) == 1

    def test_wildcard_subscriber_sees_topic_events(self):
        bus = EventBus()
        seen = []
        bus.subscribe(BROADCAST, seen.append)
        bus.publish(DASHBOARD, "dashboard:update", {})
        assert len(seen) == 1

    def test_failing_handler_skipped(self):
        bus = EventBus()
        seen = []

        def broken(event):
            raise RuntimeError("client gone")

        bus.subscribe(DASHBOARD, broken)
        bus.subscribe(DASHBOARD, seen.append)
        assert bus.publish(DASHBOARD, "dashboard:update", {}) == 1
        assert len(seen) == 1

    def test_unsubscribe(self):
        bus = EventBus()
        handler = lambda e: None  # noqa: E731
        bus.subscribe(DASHBOARD, handler)
        assert bus.unsubscribe(DASHBOARD, handler) is True
        assert bus.subscriber_count(DASHBOARD) == 0
        assert bus.unsubscribe(DASHBOARD, handler) is False


class TestPredictionEvents:

    def test_normal_prediction_only_product_topic(self):
        bus = EventBus()
        dashboard = []
        bus.subscribe(DASHBOARD, dashboard.append)
        bus.publish_prediction_update(_create_prediction())
        assert dashboard == []

    def test_urgent_prediction_reaches_dashboard(self):
        bus = EventBus()
        product, dashboard = [], []
        bus.subscribe(product_topic("P1"), product.append)
        bus.subscribe(DASHBOARD, dashboard.append)
        bus.publish_prediction_update(_create_prediction(risk_score=75))
        assert product[0].name == "prediction:update"
        assert dashboard[0].name == "prediction:urgent"

    def test_imminent_stockout_is_urgent(self):
        bus = EventBus()
        dashboard = []
        bus.subscribe(DASHBOARD, dashboard.append)
        bus.publish_prediction_update(_create_prediction(days_until_stockout=7))
        assert len(dashboard) == 1
