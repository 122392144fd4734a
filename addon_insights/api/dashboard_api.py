"""
Dashboard API
Proxy routes to the recommendation backend plus JSON page views for the analytics dashboard
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from addon_insights import __version__
from addon_insights.api.proxy import UpstreamClient, UpstreamUnavailable, proxy_error_body
from addon_insights.dashboard import views
from addon_insights.dashboard.schemas import (
    RecommendationRequest,
    decode_cities,
    decode_health,
    decode_kpis,
    decode_meal_times,
    decode_recommendation_result,
    decode_segments,
)
from addon_insights.dashboard.state import resolve
from addon_insights.experiments.ab_testing import MDECalculator
from addon_insights.utils.config import Settings, load_config
from addon_insights.utils.metrics import LatencyMonitor

logger = structlog.get_logger()

DASHBOARD_OFFLINE_MESSAGE = (
    "Could not reach the recommendation backend. Ensure it is running on port 5000."
)

PROXY_REQUESTS = Counter(
    "dashboard_proxy_requests_total",
    "Requests forwarded to the recommendation backend",
    ["route", "outcome"],
)
PROXY_LATENCY = Histogram(
    "dashboard_proxy_latency_seconds",
    "Latency of requests forwarded to the recommendation backend",
    ["route"],
)
VIEW_RENDERS = Counter(
    "dashboard_view_renders_total",
    "Dashboard page views built",
    ["page", "offline"],
)


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the dashboard API; `transport` replaces the network for tests"""
    settings = settings or load_config()
    monitor = LatencyMonitor(settings.stream_window, settings.error_window)
    upstream = UpstreamClient(
        settings.backend_url,
        timeout=settings.timeout_seconds,
        transport=transport,
        observer=monitor.record,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Dashboard API starting", backend_url=settings.backend_url)
        yield
        await upstream.close()

    app = FastAPI(
        title="Add-on Recommendation Insights",
        description="Analytics dashboard API for add-on recommendations",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.upstream = upstream
    app.state.monitor = monitor
    app.state.started_at = time.time()

    _register_routes(app)
    return app


def get_upstream(request: Request) -> UpstreamClient:
    return request.app.state.upstream


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_monitor(request: Request) -> LatencyMonitor:
    return request.app.state.monitor


async def _forward(route: str, call, offline_message: Optional[str] = None) -> JSONResponse:
    """Relay the backend's JSON and status, or a 502 envelope if it is unreachable"""
    with PROXY_LATENCY.labels(route=route).time():
        try:
            response = await call
        except UpstreamUnavailable as e:
            PROXY_REQUESTS.labels(route=route, outcome="unreachable").inc()
            logger.error("Backend unreachable", route=route, error=e.message)
            return JSONResponse(proxy_error_body(offline_message or e.message), status_code=502)

    PROXY_REQUESTS.labels(route=route, outcome=str(response.status_code)).inc()
    return JSONResponse(response.payload, status_code=response.status_code)


def _record_view(body: dict) -> dict:
    VIEW_RENDERS.labels(page=body["page"], offline=str(body.get("offline", False)).lower()).inc()
    return body


def _register_routes(app: FastAPI):
    @app.get("/api/health")
    async def proxy_health(upstream: UpstreamClient = Depends(get_upstream)):
        return await _forward("health", upstream.get_health())

    @app.get("/api/dashboard/{path:path}")
    async def proxy_dashboard(path: str, upstream: UpstreamClient = Depends(get_upstream)):
        return await _forward(
            "dashboard", upstream.get_dashboard(path), offline_message=DASHBOARD_OFFLINE_MESSAGE
        )

    @app.post("/api/recommendations")
    async def proxy_recommendations(
        body: RecommendationRequest,
        request: Request,
        upstream: UpstreamClient = Depends(get_upstream),
    ):
        # Validated for a 422, but forwarded exactly as the caller sent it
        payload = await request.json()
        return await _forward("recommendations", upstream.post_recommendations(payload))

    @app.post("/api/views/recommendation-demo")
    async def recommendation_demo_view(
        body: RecommendationRequest,
        request: Request,
        upstream: UpstreamClient = Depends(get_upstream),
    ):
        outcome = await upstream.fetch_recommendations(await request.json())
        return _record_view(
            views.build_recommendation_demo(
                resolve(outcome, decode_recommendation_result), body.cart_item_ids
            )
        )

    @app.get("/api/views/overview")
    async def overview_view(upstream: UpstreamClient = Depends(get_upstream)):
        kpis, meal_times, cities, segments = await asyncio.gather(
            upstream.fetch_dashboard("kpis"),
            upstream.fetch_dashboard("meal-time-breakdown"),
            upstream.fetch_dashboard("city-breakdown"),
            upstream.fetch_dashboard("segment-performance"),
        )
        return _record_view(
            views.build_overview(
                resolve(kpis, decode_kpis),
                resolve(meal_times, decode_meal_times),
                resolve(cities, decode_cities),
                resolve(segments, decode_segments),
            )
        )

    @app.get("/api/views/data-explorer")
    async def data_explorer_view(upstream: UpstreamClient = Depends(get_upstream)):
        segments, cities = await asyncio.gather(
            upstream.fetch_dashboard("segment-performance"),
            upstream.fetch_dashboard("city-breakdown"),
        )
        return _record_view(
            views.build_data_explorer(
                resolve(segments, decode_segments), resolve(cities, decode_cities)
            )
        )

    @app.get("/api/views/ab-testing")
    async def ab_testing_view(
        desired_lift: Optional[str] = Query(None),
        upstream: UpstreamClient = Depends(get_upstream),
        settings: Settings = Depends(get_settings),
    ):
        outcome = await upstream.fetch_dashboard("ab-test-results")
        lift = desired_lift if desired_lift is not None else settings.default_desired_lift
        try:
            body = views.build_ab_testing(resolve(outcome), lift, settings.baseline_rate)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return _record_view(body)

    @app.get("/api/views/model-lab")
    async def model_lab_view(upstream: UpstreamClient = Depends(get_upstream)):
        outcome = await upstream.fetch_dashboard("kpis")
        return _record_view(views.build_model_lab(resolve(outcome, decode_kpis)))

    @app.get("/api/views/monitoring")
    async def monitoring_view(
        upstream: UpstreamClient = Depends(get_upstream),
        monitor: LatencyMonitor = Depends(get_monitor),
        settings: Settings = Depends(get_settings),
    ):
        outcome = await upstream.fetch_health()
        return _record_view(
            views.build_monitoring(
                resolve(outcome, decode_health), monitor.snapshot(), settings.latency_budget_ms
            )
        )

    @app.get("/api/views/feature-pipeline")
    async def feature_pipeline_view(stage: Optional[str] = Query(None)):
        return _record_view(views.build_feature_pipeline(stage))

    @app.get("/api/views/system-design")
    async def system_design_view(settings: Settings = Depends(get_settings)):
        return _record_view(views.build_system_design(settings.latency_budget_ms))

    @app.get("/api/experiments/sample-size")
    async def sample_size(
        desired_lift: str = Query("3"),
        baseline_rate: Optional[float] = Query(None),
        settings: Settings = Depends(get_settings),
    ):
        calculator = MDECalculator(
            baseline_rate if baseline_rate is not None else settings.baseline_rate
        )
        try:
            return calculator.describe(desired_lift)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))

    @app.get("/metrics")
    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app = create_app()
