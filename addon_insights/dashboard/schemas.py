"""
Dashboard payload schemas
Typed decoding of the recommendation backend's loosely-shaped JSON responses
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Generic, List, Optional, Type, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

logger = structlog.get_logger()

T = TypeVar("T")


class ErrorDetail(BaseModel):
    code: str
    message: str


class Envelope(BaseModel):
    """Standard `{ok, data, error}` wrapper returned by every backend endpoint"""

    ok: bool = False
    data: Any = None
    error: Optional[ErrorDetail] = None
    request_id: Optional[str] = None


class HealthPayload(BaseModel):
    status: str


# KPIs


class AovLift(BaseModel):
    aov_lift_percentage: Optional[float] = None


class AttachRate(BaseModel):
    attach_rate: Optional[float] = None


class LatencySummary(BaseModel):
    p50: Optional[float] = None
    p95: Optional[float] = None
    p99: Optional[float] = None


class KpiPayload(BaseModel):
    aov_lift: Optional[AovLift] = None
    attach_rate: Optional[AttachRate] = None
    latency: Optional[LatencySummary] = None
    auc: Optional[float] = None
    ndcg_at_8: Optional[float] = None


# Breakdowns


class MealTimeStats(BaseModel):
    meal: str
    addon_accept_rate: Optional[float] = None
    avg_cart_value: Optional[float] = None
    sessions: Optional[int] = None


class CityStats(BaseModel):
    city: str
    session_count: int = 0
    addon_accept_rate: Optional[float] = None
    avg_cart_value: Optional[float] = None


class SegmentStats(BaseModel):
    segment: str
    session_count: int = 0
    addon_accept_rate: Optional[float] = None
    avg_cart_value: Optional[float] = None


# A/B test results


class LiveExperiment(BaseModel):
    """Experiment record as sent in the `experiments` list shape"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    control: str = "Control"
    treatment: str = "Treatment"
    acceptance_control: float
    acceptance_treatment: float
    aov_control: float = 322
    aov_treatment: float = 338
    p_value: float = 1
    n_per_arm: Optional[int] = None


class ExperimentArmStats(BaseModel):
    """Experiment record as sent under an `experiment_<slug>` key"""

    control_accept_rate: float = 0
    treatment_accept_rate: float = 0
    p_value: float = 1
    n_per_arm: Optional[int] = None


# Recommendation demo


class RecommendationRequest(BaseModel):
    user_id: str
    restaurant_id: str
    cart_item_ids: List[str] = Field(default_factory=list)
    city: str
    segment: str = "mid"
    veg_preference: bool = False
    preferred_cuisine: Optional[str] = None
    historical_addon_accept_rate: float = Field(default=0, ge=0, le=1)


class Recommendation(BaseModel):
    rank: int
    item_id: str
    name: str
    category: str
    price: float
    score: float
    is_veg: bool = False
    is_bestseller: bool = False
    avg_rating: Optional[float] = None


class RecommendationMetadata(BaseModel):
    strategy: str
    stage1_candidates: int
    stage2_ranked: int
    displayed: int
    latency_ms: float
    latency_budget_ms: float
    within_budget: bool


class RecommendationResult(BaseModel):
    recommendations: List[Recommendation]
    metadata: RecommendationMetadata


@dataclass(frozen=True)
class DecodeError:
    schema: str
    message: str


@dataclass(frozen=True)
class Decoded(Generic[T]):
    """Either a decoded value or the reason decoding failed"""

    value: Optional[T] = None
    error: Optional[DecodeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def decode(model: Type[BaseModel], payload: Any) -> Decoded:
    """Validate a payload against a model without raising"""
    try:
        return Decoded(value=model.model_validate(payload))
    except ValidationError as e:
        logger.warning("Payload failed validation", schema=model.__name__, errors=e.error_count())
        return Decoded(error=DecodeError(schema=model.__name__, message=_summarize(e)))


def decode_rows(model: Type[BaseModel], payload: Any, key: str, name_field: str) -> Decoded:
    """
    Decode a row collection that the backend sends in one of three shapes:
    `{key: [rows]}`, `[rows]` or `{name: stats}` keyed by the row's name.
    """
    if isinstance(payload, Mapping) and key in payload:
        payload = payload[key]

    if isinstance(payload, Mapping):
        payload = [
            {name_field: name, **stats}
            for name, stats in payload.items()
            if isinstance(stats, Mapping)
        ]

    if not isinstance(payload, list):
        return Decoded(
            error=DecodeError(
                schema=model.__name__,
                message=f"Expected a list or mapping of rows, got {type(payload).__name__}",
            )
        )

    try:
        rows = TypeAdapter(List[model]).validate_python(payload)
    except ValidationError as e:
        logger.warning("Row payload failed validation", schema=model.__name__, errors=e.error_count())
        return Decoded(error=DecodeError(schema=model.__name__, message=_summarize(e)))

    return Decoded(value=rows)


def decode_cities(payload: Any) -> Decoded:
    return decode_rows(CityStats, payload, key="cities", name_field="city")


def decode_segments(payload: Any) -> Decoded:
    return decode_rows(SegmentStats, payload, key="segments", name_field="segment")


def decode_meal_times(payload: Any) -> Decoded:
    return decode_rows(MealTimeStats, payload, key="meals", name_field="meal")


def decode_kpis(payload: Any) -> Decoded:
    return decode(KpiPayload, payload)


def decode_health(payload: Any) -> Decoded:
    return decode(HealthPayload, payload)


def decode_recommendation_result(payload: Any) -> Decoded:
    return decode(RecommendationResult, payload)


def _summarize(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "<root>"
    return f"{location}: {first['msg']}"
