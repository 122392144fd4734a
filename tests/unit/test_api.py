"""
Unit tests for the dashboard API
"""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from addon_insights.api.dashboard_api import DASHBOARD_OFFLINE_MESSAGE, create_app


def ok(data):
    return {"ok": True, "data": data, "error": None}


@pytest.fixture
def live_routes(sample_kpis, sample_cities, sample_segments, sample_meal_times, sample_ab_results):
    """Backend routes for a healthy recommendation service"""
    return {
        "/health": ok({"status": "healthy"}),
        "/v1/dashboard/kpis": ok(sample_kpis),
        "/v1/dashboard/city-breakdown": ok(sample_cities),
        "/v1/dashboard/segment-performance": ok(sample_segments),
        "/v1/dashboard/meal-time-breakdown": ok(sample_meal_times),
        "/v1/dashboard/ab-test-results": ok(sample_ab_results),
    }


@pytest.fixture
def client(dashboard_settings, backend, live_routes):
    return TestClient(create_app(dashboard_settings, transport=backend(live_routes)))


@pytest.fixture
def offline_client(dashboard_settings, offline_backend):
    return TestClient(create_app(dashboard_settings, transport=offline_backend))


class TestProxyRoutes:
    """Test pass-through routes to the recommendation backend"""

    def test_health_relayed(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == ok({"status": "healthy"})

    def test_health_backend_down(self, offline_client):
        response = offline_client.get("/api/health")

        assert response.status_code == 502
        body = response.json()
        assert body["ok"] is False
        assert body["data"] is None
        assert body["error"]["code"] == "PROXY_ERROR"
        assert "Connection refused" in body["error"]["message"]

    def test_dashboard_relayed(self, client, sample_kpis):
        response = client.get("/api/dashboard/kpis")

        assert response.status_code == 200
        assert response.json()["data"] == sample_kpis

    def test_dashboard_backend_down(self, offline_client):
        response = offline_client.get("/api/dashboard/kpis")

        assert response.status_code == 502
        assert response.json()["error"]["message"] == DASHBOARD_OFFLINE_MESSAGE

    def test_dashboard_error_status_relayed(self, dashboard_settings, backend):
        error = {"ok": False, "data": None, "error": {"code": "NOT_READY", "message": "warming up"}}
        app = create_app(dashboard_settings, transport=backend({"/v1/dashboard/kpis": (503, error)}))

        response = TestClient(app).get("/api/dashboard/kpis")

        assert response.status_code == 503
        assert response.json() == error

    def test_dashboard_non_json_body(self, dashboard_settings, backend):
        app = create_app(dashboard_settings, transport=backend({"/v1/dashboard/kpis": (500, "oops")}))

        response = TestClient(app).get("/api/dashboard/kpis")

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "PROXY_ERROR"

    def test_recommendations_forwarded(self, dashboard_settings):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=ok({"recommendations": []}))

        app = create_app(dashboard_settings, transport=httpx.MockTransport(handler))
        sent = {
            "user_id": "U1",
            "restaurant_id": "R10",
            "city": "Delhi",
            "cart_item_ids": ["I1"],
            "top_k": 5,
        }
        response = TestClient(app).post("/api/recommendations", json=sent)

        assert response.status_code == 200
        assert seen[0] == sent

    def test_recommendations_defaults_not_injected(self, dashboard_settings):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=ok({"recommendations": []}))

        app = create_app(dashboard_settings, transport=httpx.MockTransport(handler))
        TestClient(app).post(
            "/api/recommendations", json={"user_id": "U1", "restaurant_id": "R10", "city": "Delhi"}
        )

        assert "segment" not in seen[0]
        assert "veg_preference" not in seen[0]
        assert "cart_item_ids" not in seen[0]

    def test_recommendations_validated(self, client):
        response = client.post("/api/recommendations", json={"user_id": "U1"})
        assert response.status_code == 422


class TestViewRoutes:
    """Test dashboard page views"""

    def test_overview_live(self, client):
        body = client.get("/api/views/overview").json()

        assert body["offline"] is False
        assert body["kpis"][0]["value"] == 4.1
        assert body["cities"][2]["short"] == "Thiruvanan…"
        assert all(source["status"] == "live" for source in body["sources"].values())

    def test_overview_offline(self, offline_client):
        response = offline_client.get("/api/views/overview")

        assert response.status_code == 200
        body = response.json()
        assert body["offline"] is True
        assert body["sources"]["kpis"]["reason"]["kind"] == "transport"
        assert body["kpis"][0]["value"] == 3.22

    def test_data_explorer(self, client):
        body = client.get("/api/views/data-explorer").json()

        assert body["offline"] is False
        assert body["total_users"] == 1000

    def test_ab_testing(self, client):
        body = client.get("/api/views/ab-testing").json()

        assert body["offline"] is False
        assert body["experiments"][0]["experiment"]["id"] == "TOP5-TOP8"
        assert body["mde_calculator"]["required_n_per_arm"] == 62430

    def test_ab_testing_offline(self, offline_client):
        body = offline_client.get("/api/views/ab-testing", params={"desired_lift": "10"}).json()

        assert body["offline"] is True
        assert len(body["experiments"]) == 3
        assert body["mde_calculator"]["required_n_per_arm"] == 5754

    def test_ab_testing_impossible_lift(self, client):
        assert client.get("/api/views/ab-testing", params={"desired_lift": "500"}).status_code == 422

    def test_model_lab(self, client):
        body = client.get("/api/views/model-lab").json()

        assert body["live"]["auc"] == 0.93
        assert body["models"][0]["rank"] == 1

    def test_monitoring_records_upstream_calls(self, client):
        body = client.get("/api/views/monitoring").json()

        assert body["health"] == "healthy"
        assert body["error_rate"]["requests"] == 1
        assert len(body["stream"]) == 1

    def test_monitoring_backend_down(self, offline_client):
        body = offline_client.get("/api/views/monitoring").json()

        assert body["offline"] is True
        assert body["error_rate"] == {"percent": "100.00%", "requests": 1, "errors": 1}

    def test_feature_pipeline(self, client):
        body = client.get("/api/views/feature-pipeline", params={"stage": "serving"}).json()
        assert body["open_stage"] == "serving"

    def test_system_design(self, client):
        body = client.get("/api/views/system-design").json()
        assert body["remaining_percent"] == 77


class TestRecommendationDemoRoute:
    """Test the live cart simulator view"""

    REQUEST = {
        "user_id": "U000123",
        "restaurant_id": "R00010",
        "city": "Delhi",
        "cart_item_ids": ["I0000012", "I0000155"],
        "top_k": 8,
    }

    @pytest.fixture
    def recommendation_result(self):
        return {
            "recommendations": [
                {"rank": 1, "item_id": "I0001122", "name": "Cola", "category": "beverage",
                 "price": 40, "score": 0.91},
                {"rank": 2, "item_id": "I0009999", "name": "Masala Papad", "category": "starter",
                 "price": 55, "score": 0.74},
            ],
            "metadata": {
                "strategy": "two_stage",
                "stage1_candidates": 120,
                "stage2_ranked": 40,
                "displayed": 2,
                "latency_ms": 48.6,
                "latency_budget_ms": 250,
                "within_budget": True,
            },
        }

    def test_demo_live(self, dashboard_settings, recommendation_result):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=ok(recommendation_result))

        app = create_app(dashboard_settings, transport=httpx.MockTransport(handler))
        body = TestClient(app).post("/api/views/recommendation-demo", json=self.REQUEST).json()

        assert seen[0] == self.REQUEST
        assert body["offline"] is False
        assert body["strategy"]["label"] == "TWO-STAGE"
        assert body["latency"] == {"ms": 49, "color": "#4ade80", "within_budget": True}
        assert set(body["recommendations"]) == {"beverage", "snack"}
        assert body["cart_total"] == "240.00"
        assert body["meal_completeness"] == 40

    def test_demo_backend_rejects(self, dashboard_settings, backend):
        routes = {
            "/v1/recommendations": (
                503,
                {"ok": False, "data": None, "error": {"code": "MODEL_NOT_READY", "message": "warming up"}},
            )
        }
        app = create_app(dashboard_settings, transport=backend(routes))
        body = TestClient(app).post("/api/views/recommendation-demo", json=self.REQUEST).json()

        assert body["offline"] is True
        assert body["error"]["code"] == "MODEL_NOT_READY"
        assert body["recommendations"] == {}
        assert body["meal_completeness"] == 40

    def test_demo_backend_down(self, offline_client):
        response = offline_client.post("/api/views/recommendation-demo", json=self.REQUEST)

        assert response.status_code == 200
        assert response.json()["error"]["kind"] == "transport"

    def test_demo_validated(self, client):
        assert client.post("/api/views/recommendation-demo", json={"city": "Delhi"}).status_code == 422


class TestSampleSizeRoute:
    """Test the MDE calculator endpoint"""

    def test_default(self, client):
        body = client.get("/api/experiments/sample-size").json()

        assert body["desired_lift_percent"] == 3.0
        assert body["required_n_per_arm"] == 62430

    def test_junk_lift_clamped(self, client):
        body = client.get("/api/experiments/sample-size", params={"desired_lift": "abc"}).json()
        assert body["required_n_per_arm"] == 2691654

    def test_custom_baseline(self, client):
        response = client.get(
            "/api/experiments/sample-size", params={"desired_lift": "3", "baseline_rate": "0.05"}
        )
        assert response.json()["required_n_per_arm"] == 335722

    def test_invalid_baseline(self, client):
        response = client.get("/api/experiments/sample-size", params={"baseline_rate": "1.5"})

        assert response.status_code == 422
        assert "baseline_rate" in response.json()["detail"]


class TestMetricsEndpoint:
    """Test Prometheus metrics endpoint"""

    def test_metrics(self, client):
        client.get("/api/health")
        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "dashboard_proxy_requests_total" in response.text
