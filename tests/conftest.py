"""
PyTest configuration and fixtures for testing
"""

import shutil
import tempfile
from pathlib import Path

import httpx
import pytest

from addon_insights.utils.config import Settings

BACKEND_URL = "http://backend.test"


# Register test markers
def pytest_configure(config):
    """Register custom test markers"""
    config.addinivalue_line("markers", "smoke: Mark test as smoke test")
    config.addinivalue_line("markers", "unit: Mark test as unit test")
    config.addinivalue_line("markers", "integration: Mark test as integration test")
    config.addinivalue_line("markers", "slow: Mark test as slow running")
    config.addinivalue_line("markers", "performance: Mark test as performance test")


def envelope(data=None, ok=True, error=None):
    """Backend `{ok, data, error}` response body"""
    return {"ok": ok, "data": data, "error": error}


def mock_backend(routes):
    """
    MockTransport serving `routes`, a mapping of path to either a JSON body or a
    `(status_code, body)` tuple. Unknown paths get a 404 envelope.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(
                404, json=envelope(ok=False, error={"code": "NOT_FOUND", "message": "No route"})
            )
        if isinstance(route, tuple):
            status_code, body = route
        else:
            status_code, body = 200, route
        if isinstance(body, str):
            return httpx.Response(status_code, text=body)
        return httpx.Response(status_code, json=body)

    return httpx.MockTransport(handler)


def unreachable_backend():
    """MockTransport that refuses every connection"""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    return httpx.MockTransport(handler)


@pytest.fixture
def backend():
    """Factory for a MockTransport serving the given routes"""
    return mock_backend


@pytest.fixture
def offline_backend():
    """MockTransport for a backend that is down"""
    return unreachable_backend()


@pytest.fixture
def dashboard_settings():
    """Settings pointing at a fake backend"""
    return Settings(
        backend_url=BACKEND_URL,
        timeout_seconds=1.0,
        latency_budget_ms=250.0,
        baseline_rate=0.22,
        default_desired_lift=3.0,
        stream_window=50,
        error_window=100,
    )


@pytest.fixture
def sample_kpis():
    """Sample /v1/dashboard/kpis data"""
    return {
        "aov_lift": {"aov_lift_percentage": 4.1},
        "attach_rate": {"attach_rate": 0.5},
        "latency": {"p50": 40, "p95": 110, "p99": 170},
        "auc": 0.93,
        "ndcg_at_8": 0.87,
    }


@pytest.fixture
def sample_cities():
    """Sample city breakdown rows"""
    return {
        "cities": [
            {"city": "Delhi", "session_count": 1200, "addon_accept_rate": 0.264, "avg_cart_value": 361.4},
            {"city": "Mumbai", "session_count": 1100, "addon_accept_rate": 0.241, "avg_cart_value": 350.0},
            {"city": "Thiruvananthapuram", "session_count": 300},
        ]
    }


@pytest.fixture
def sample_segments():
    """Sample segment performance keyed by segment name"""
    return {
        "budget": {"session_count": 400, "addon_accept_rate": 0.118, "avg_cart_value": 230.2},
        "mid": {"session_count": 500, "addon_accept_rate": 0.225},
        "premium": {"session_count": 100, "addon_accept_rate": 0.35, "avg_cart_value": 470},
    }


@pytest.fixture
def sample_meal_times():
    """Sample meal-time breakdown rows"""
    return {
        "meals": [
            {"meal": "breakfast", "addon_accept_rate": 0.142, "avg_cart_value": 209.6, "sessions": 52},
            {"meal": "late_night", "addon_accept_rate": 0.17},
        ]
    }


@pytest.fixture
def sample_ab_results():
    """Sample ab-test-results in the keyed `experiment_<slug>` shape"""
    return {
        "experiment_top5_top8": {
            "control_accept_rate": 0.214,
            "treatment_accept_rate": 0.221,
            "p_value": 0.08,
        },
        "summary": {"running": 1},
    }


@pytest.fixture
def temp_directory():
    """Create temporary directory for testing"""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir)
