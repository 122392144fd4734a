"""
Dashboard Page Views
Builds the JSON body of each dashboard page from resolved load states, with sample-data fallbacks
"""

import math
import re
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
import structlog

from addon_insights.dashboard import fallback
from addon_insights.dashboard.schemas import (
    HealthPayload,
    KpiPayload,
    Recommendation,
    RecommendationMetadata,
    RecommendationResult,
)
from addon_insights.dashboard.state import (
    LoadState,
    Live,
    Offline,
    OfflineKind,
    OfflineReason,
    combine,
    describe,
)
from addon_insights.experiments.ab_testing import (
    FALLBACK_EXPERIMENTS,
    normalize_experiments,
    summarize_experiments,
)
from addon_insights.experiments.stats import delta_percent
from addon_insights.utils.metrics import calculate_trend, compare_to_targets, latency_status

logger = structlog.get_logger()


def _round(value: float) -> int:
    """Half-up rounding, as the dashboard front end rounds"""
    return int(math.floor(value + 0.5))


def _title(key: str) -> str:
    """'late_night' -> 'Late Night'"""
    return re.sub(r"\b\w", lambda m: m.group().upper(), key.replace("_", " ", 1))


def _capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


def _short_city(city: str) -> str:
    return f"{city[:10]}…" if len(city) > 12 else city


def _require_rows(state: LoadState) -> LoadState:
    """An ok response with an empty row list is reported as offline, not live"""
    if isinstance(state, Live) and not state.data:
        return Offline(OfflineReason(OfflineKind.INVALID, "NO_ROWS", "Backend sent no rows"))
    return state


# Overview


def _kpi_cards(state: LoadState) -> List[Dict[str, Any]]:
    defaults = fallback.KPI_DEFAULTS
    cards = [dict(card) for card in fallback.KPI_FALLBACK]

    if isinstance(state, Live):
        kpis: KpiPayload = state.data
        aov = kpis.aov_lift.aov_lift_percentage if kpis.aov_lift else None
        attach = kpis.attach_rate.attach_rate if kpis.attach_rate else None
        p50 = kpis.latency.p50 if kpis.latency else None

        values = [
            aov if aov is not None else defaults["aov_lift_percentage"],
            (attach if attach is not None else defaults["attach_rate"]) * 100,
            p50 if p50 is not None else defaults["p50"],
            (kpis.auc if kpis.auc is not None else defaults["auc"]) * 100,
        ]
        for card, value in zip(cards, values):
            card["value"] = value

    for card in cards:
        card["trend"] = calculate_trend(card["spark"])["trend"]

    return cards


def _meal_points(state: LoadState) -> List[Dict[str, Any]]:
    if isinstance(state, Live):
        return [
            {
                "meal": _title(row.meal),
                "acceptance": _round((row.addon_accept_rate or 0) * 100),
                "avg_cart": _round(row.avg_cart_value if row.avg_cart_value is not None else 200),
                "sessions": row.sessions,
            }
            for row in state.data
        ]
    return [dict(point) for point in fallback.MEAL_FALLBACK]


def _city_volumes(state: LoadState) -> List[Dict[str, Any]]:
    if isinstance(state, Live):
        cities = [{"city": row.city, "volume": row.session_count} for row in state.data[:5]]
    else:
        cities = [{"city": row["city"], "volume": row["volume"]} for row in fallback.CITY_FALLBACK]

    for entry in cities:
        entry["short"] = _short_city(entry["city"])
    return cities


def _segment_rates(state: LoadState) -> List[Dict[str, Any]]:
    if isinstance(state, Live):
        return [
            {
                "segment": _capitalize(row.segment),
                "value": _round(
                    (row.addon_accept_rate if row.addon_accept_rate is not None else 0.2) * 100
                ),
                "color": fallback.SEGMENT_COLORS.get(row.segment, fallback.DEFAULT_SEGMENT_COLOR),
            }
            for row in state.data[:3]
        ]
    return [
        {"segment": seg["name"], "value": seg["acceptance"], "color": seg["color"]}
        for seg in fallback.SEGMENT_FALLBACK
    ]


def _feed() -> List[Dict[str, Any]]:
    return [
        {"id": i + 1, "message": message, "ts": f"{12 + i:02d}:{(i * 7) % 60:02d}"}
        for i, message in enumerate(fallback.FEED_SEED[:5])
    ]


def build_overview(
    kpis: LoadState, meal_times: LoadState, cities: LoadState, segments: LoadState
) -> Dict[str, Any]:
    """Home page: KPI cards, meal-time acceptance, city volume, segment rates, live feed"""
    meal_times = _require_rows(meal_times)
    cities = _require_rows(cities)
    segments = _require_rows(segments)
    sources = {"kpis": kpis, "meal_times": meal_times, "cities": cities, "segments": segments}

    return {
        "page": "overview",
        # KPIs drive the page; the breakdowns fall back individually
        "offline": combine(sources, critical="kpis"),
        "sources": {name: describe(state) for name, state in sources.items()},
        "kpis": _kpi_cards(kpis),
        "meal_times": _meal_points(meal_times),
        "cities": _city_volumes(cities),
        "segments": _segment_rates(segments),
        "feed": _feed(),
        "rings": [dict(ring) for ring in fallback.RING_METRICS],
    }


# Data explorer


def _segment_cards(state: LoadState) -> List[Dict[str, Any]]:
    if not isinstance(state, Live):
        return [dict(card) for card in fallback.SEGMENT_FALLBACK]

    cards = []
    for row in state.data:
        default_aov = fallback.SEGMENT_AOV_DEFAULTS.get(row.segment, fallback.DEFAULT_SEGMENT_AOV)
        cards.append(
            {
                "name": _capitalize(row.segment),
                "users": row.session_count,
                "acceptance": _round(
                    (row.addon_accept_rate if row.addon_accept_rate is not None else 0.2) * 100
                ),
                "aov": _round(row.avg_cart_value if row.avg_cart_value is not None else default_aov),
                "color": fallback.SEGMENT_COLORS.get(row.segment, fallback.DEFAULT_SEGMENT_COLOR),
            }
        )
    return cards


def _city_rows(state: LoadState) -> List[Dict[str, Any]]:
    if not isinstance(state, Live):
        return [dict(row) for row in fallback.CITY_FALLBACK]

    return [
        {
            "city": row.city,
            "volume": row.session_count,
            "acceptance": _round(
                (row.addon_accept_rate if row.addon_accept_rate is not None else 0.22) * 100
            ),
            "aov": _round(row.avg_cart_value if row.avg_cart_value is not None else 320),
        }
        for row in state.data[:5]
    ]


def build_data_explorer(segments: LoadState, cities: LoadState) -> Dict[str, Any]:
    """Segment cards, city table and meal-slot radar; offline only when both sources fail"""
    segments, cities = _require_rows(segments), _require_rows(cities)
    segment_cards = _segment_cards(segments)
    city_rows = _city_rows(cities)

    return {
        "page": "data-explorer",
        "offline": combine({"segments": segments, "cities": cities}),
        "sources": {"segments": describe(segments), "cities": describe(cities)},
        "segments": segment_cards,
        "total_users": sum(card["users"] for card in segment_cards),
        "cities": city_rows,
        "meal_radar": [dict(slot) for slot in fallback.MEAL_RADAR],
    }


# A/B testing


def build_ab_testing(
    results: LoadState, desired_lift: Any = 3, baseline_rate: float = 0.22
) -> Dict[str, Any]:
    """Experiment control room; an ok response with no usable experiments counts as offline"""
    experiments = normalize_experiments(results.data) if isinstance(results, Live) else []

    if isinstance(results, Live) and not experiments:
        results = Offline(
            OfflineReason(OfflineKind.INVALID, "NO_EXPERIMENTS", "No experiments in payload")
        )

    offline = not experiments
    if offline:
        experiments = list(FALLBACK_EXPERIMENTS)

    body = summarize_experiments(experiments, desired_lift=desired_lift, baseline_rate=baseline_rate)
    body.update({"page": "ab-testing", "offline": offline, "sources": {"experiments": describe(results)}})
    return body


# Model lab


def _loss_curve(epochs: int = 32) -> List[Dict[str, Any]]:
    return [
        {
            "epoch": i + 1,
            "train": round(0.71 - i * 0.013, 3),
            "val": round(0.75 - i * 0.0105, 3),
        }
        for i in range(epochs)
    ]


def _score_histogram(bins: int = 12) -> List[Dict[str, Any]]:
    return [
        {
            "bin": f"{i / bins:.2f}-{(i + 1) / bins:.2f}",
            "positive": max(3, _round((i + 2) ** 1.4 + (12 if i > 6 else 0))),
            "negative": max(3, _round((bins - i) ** 1.35 + (8 if i < 5 else 0))),
        }
        for i in range(bins)
    ]


def _model_leaderboard() -> List[Dict[str, Any]]:
    models = pd.DataFrame(fallback.MODEL_ROWS)
    baseline_auc = float(models["auc"].iloc[0])

    models["auc_lift_vs_baseline"] = [delta_percent(baseline_auc, auc) for auc in models["auc"]]
    models = models.sort_values("auc", ascending=False).reset_index(drop=True)
    models["rank"] = models.index + 1

    return [
        {
            "rank": int(row.rank),
            "model": row.model,
            "auc": float(row.auc),
            "p8": float(row.p8),
            "r8": float(row.r8),
            "ndcg8": float(row.ndcg8),
            "latency": float(row.latency),
            "auc_lift_vs_baseline": float(row.auc_lift_vs_baseline),
        }
        for row in models.itertuples(index=False)
    ]


def build_model_lab(kpis: LoadState) -> Dict[str, Any]:
    """Model comparison table, feature importance, training curves and live AUC/NDCG"""
    live_auc = fallback.KPI_DEFAULTS["auc"]
    live_ndcg = fallback.KPI_DEFAULTS["ndcg_at_8"]

    if isinstance(kpis, Live):
        payload: KpiPayload = kpis.data
        if payload.auc is not None:
            live_auc = payload.auc
        if payload.ndcg_at_8 is not None:
            live_ndcg = payload.ndcg_at_8

    leaderboard = _model_leaderboard()
    champion = leaderboard[0]

    return {
        "page": "model-lab",
        "offline": not isinstance(kpis, Live),
        "sources": {"kpis": describe(kpis)},
        "models": leaderboard,
        "live": {"auc": live_auc, "ndcg_at_8": live_ndcg},
        "targets": compare_to_targets(
            {"auc": live_auc, "ndcg_at_8": live_ndcg},
            {"auc": champion["auc"], "ndcg_at_8": champion["ndcg8"]},
        ),
        "feature_importance": [dict(row) for row in fallback.FEATURE_IMPORTANCE],
        "loss_curve": _loss_curve(),
        "score_histogram": _score_histogram(),
    }


# Monitoring


def build_monitoring(
    health: LoadState, snapshot: Dict[str, Any], latency_budget_ms: float = 250
) -> Dict[str, Any]:
    """Live ops view built from the health check and observed upstream latencies"""
    healthy = isinstance(health, Live) and isinstance(health.data, HealthPayload) and (
        health.data.status == "healthy"
    )

    percentiles = snapshot.get("percentiles") or dict(fallback.LATENCY_PERCENTILES_FALLBACK)
    percentile_rows = []
    for label in ("p50", "p95", "p99"):
        value = percentiles[label]
        percentile_rows.append(
            {
                "label": label.upper(),
                "value": value,
                "width_percent": min(100.0, value / latency_budget_ms * 100),
                **latency_status(value),
            }
        )

    requests = snapshot.get("requests", 0)
    errors = snapshot.get("errors", 0)

    return {
        "page": "monitoring",
        "offline": not healthy,
        "health": "healthy" if healthy else "down",
        "sources": {"health": describe(health)},
        "percentiles": percentile_rows,
        "heatmap": snapshot.get("heatmap", []),
        "stream": snapshot.get("stream", []),
        "latency_budget_ms": latency_budget_ms,
        "endpoint_coverage": [dict(entry) for entry in fallback.ENDPOINT_COVERAGE],
        "strategy_split": [dict(entry) for entry in fallback.STRATEGY_SPLIT],
        "error_rate": {
            "percent": f"{snapshot.get('error_rate', 0.0) * 100:.2f}%",
            "requests": requests,
            "errors": errors,
        },
    }


# Recommendation demo


def _category(category: str) -> str:
    """Categories without an icon are shown as snacks"""
    return category if category in fallback.EMOJI_MAP else "snack"


def _latency_color(latency_ms: float) -> str:
    if latency_ms < 100:
        return "#4ade80"
    if latency_ms < 200:
        return "#F5A623"
    return "#f87171"


def _cart_entries(
    cart_item_ids: List[str], recommendations: List[Recommendation]
) -> Tuple[List[Dict[str, Any]], List[str]]:
    """Resolve cart ids from the demo catalog, then from the returned recommendations"""
    recommended = {rec.item_id: rec for rec in recommendations}
    entries, unknown = [], []

    for item_id in cart_item_ids:
        if item_id in fallback.ITEM_CATALOG:
            entry = dict(fallback.ITEM_CATALOG[item_id])
        elif item_id in recommended:
            rec = recommended[item_id]
            entry = {
                "item_id": rec.item_id,
                "name": rec.name,
                "category": _category(rec.category),
                "price": rec.price,
            }
        else:
            unknown.append(item_id)
            continue

        entry["emoji"] = fallback.EMOJI_MAP[entry["category"]]
        entry["color"] = fallback.CATEGORY_COLORS[entry["category"]]
        entries.append(entry)

    return entries, unknown


def _meal_slots(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    present = {
        "main" if entry["category"] in fallback.MAIN_DISH_CATEGORIES else entry["category"]
        for entry in entries
    }
    return [
        {"category": category, "complete": category in present, "emoji": fallback.EMOJI_MAP[category]}
        for category in fallback.MEAL_CATEGORIES
    ]


def build_recommendation_demo(result: LoadState, cart_item_ids: List[str]) -> Dict[str, Any]:
    """
    Live cart simulator: recommendations grouped by category, the request's
    strategy and latency, and how complete the cart is as a meal.
    """
    live = isinstance(result, Live)
    data: Optional[RecommendationResult] = result.data if live else None
    recommendations: List[Recommendation] = data.recommendations if data else []
    metadata: Optional[RecommendationMetadata] = data.metadata if data else None

    cart_ids = list(dict.fromkeys(cart_item_ids))
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for rec in recommendations:
        category = _category(rec.category)
        grouped.setdefault(category, []).append(
            {
                "rank": rec.rank,
                "item_id": rec.item_id,
                "name": rec.name,
                "price": rec.price,
                "score": rec.score,
                "score_percent": min(100.0, rec.score * 100),
                "is_veg": rec.is_veg,
                "is_bestseller": rec.is_bestseller,
                "emoji": fallback.EMOJI_MAP[category],
                "color": fallback.CATEGORY_COLORS[category],
                "in_cart": rec.item_id in cart_ids,
            }
        )

    entries, unknown = _cart_entries(cart_ids, recommendations)
    slots = _meal_slots(entries)
    complete = sum(1 for slot in slots if slot["complete"])

    strategy = metadata.strategy if metadata else None
    latency_ms = metadata.latency_ms if metadata else 0

    body = {
        "page": "recommendation-demo",
        "offline": not live,
        "sources": {"recommendations": describe(result)},
        "strategy": {
            # Only the first underscore is replaced
            "label": (strategy or "two_stage").replace("_", "-", 1).upper(),
            "color": "#f7c46e" if strategy == "cold_start" else "#67e9da",
        },
        "latency": {
            "ms": _round(latency_ms),
            "color": _latency_color(latency_ms),
            "within_budget": metadata.within_budget if metadata else None,
        },
        "recommendations": grouped,
        "cart": entries,
        "unknown_cart_item_ids": unknown,
        "cart_total": f"{sum(entry['price'] for entry in entries):.2f}",
        "meal_slots": slots,
        "meal_completeness": _round(complete / len(slots) * 100),
    }
    if isinstance(result, Offline):
        body["error"] = result.reason.to_dict()
    return body


# Static pages


def build_feature_pipeline(open_stage: Optional[str] = None) -> Dict[str, Any]:
    stages = []
    for stage in fallback.FEATURE_STAGES:
        groups = []
        for group, features in stage["groups"].items():
            groups.append(
                {
                    "group": group,
                    "label": fallback.GROUP_LABELS[group],
                    "color": fallback.GROUP_COLORS[group],
                    "features": [{"name": name, "importance": score} for name, score in features],
                }
            )

        scores = [score for features in stage["groups"].values() for _, score in features]
        stages.append(
            {
                "id": stage["id"],
                "title": stage["title"],
                "groups": groups,
                "feature_count": len(scores),
                "mean_importance": sum(scores) / len(scores),
            }
        )

    stage_ids = [stage["id"] for stage in stages]
    if open_stage not in stage_ids:
        open_stage = stage_ids[0]

    return {
        "page": "feature-pipeline",
        "flow": [stage["title"] for stage in stages],
        "open_stage": open_stage,
        "stages": stages,
    }


def build_system_design(latency_budget_ms: float = 250) -> Dict[str, Any]:
    total_latency = sum(entry["ms"] for entry in fallback.LATENCY_BREAKDOWN)

    return {
        "page": "system-design",
        "flow": list(fallback.SERVING_FLOW),
        "latency_breakdown": [dict(entry) for entry in fallback.LATENCY_BREAKDOWN],
        "total_latency_ms": total_latency,
        "latency_budget_ms": latency_budget_ms,
        "remaining_percent": _round((latency_budget_ms - total_latency) / latency_budget_ms * 100),
    }
