"""
Sample data shown when the recommendation backend is offline
"""

KPI_FALLBACK = [
    {
        "key": "aov_lift",
        "label": "AOV Lift",
        "value": 3.22,
        "suffix": "%",
        "decimals": 2,
        "accent": "#E23744",
        "delta": "↑ +3.2% vs last week",
        "delta_tone": "good",
        "spark": [2.1, 2.3, 2.5, 2.7, 2.8, 2.9, 3.0, 3.22],
    },
    {
        "key": "attach_rate",
        "label": "Attach Rate",
        "value": 45.5,
        "suffix": "%",
        "decimals": 1,
        "accent": "#F5A623",
        "delta": "↑ +1.4% vs last week",
        "delta_tone": "good",
        "spark": [38, 39.1, 40.2, 41, 42.7, 43.8, 44.9, 45.5],
    },
    {
        "key": "p50_latency",
        "label": "P50 Latency",
        "value": 37,
        "suffix": "ms",
        "decimals": 0,
        "accent": "#00BFA5",
        "delta": "↓ -6ms vs last week",
        "delta_tone": "good",
        "spark": [55, 52, 49, 46, 42, 41, 39, 37],
    },
    {
        "key": "auc",
        "label": "Model AUC",
        "value": 92,
        "suffix": "%",
        "decimals": 0,
        "accent": "#7C5CBF",
        "delta": "↑ +0.9% vs last week",
        "delta_tone": "good",
        "spark": [86, 87, 88, 89, 90, 90.5, 91.2, 92],
    },
]

# Per-field defaults used when a live KPI payload omits a value
KPI_DEFAULTS = {
    "aov_lift_percentage": 3.22,
    "attach_rate": 0.455,
    "p50": 37,
    "auc": 0.92,
    "ndcg_at_8": 0.863,
}

MEAL_FALLBACK = [
    {"meal": "Breakfast", "acceptance": 14, "avg_cart": 210, "sessions": 5200},
    {"meal": "Lunch", "acceptance": 19, "avg_cart": 248, "sessions": 8400},
    {"meal": "Snacks", "acceptance": 24, "avg_cart": 183, "sessions": 7100},
    {"meal": "Dinner", "acceptance": 31, "avg_cart": 310, "sessions": 11400},
    {"meal": "Late Night", "acceptance": 17, "avg_cart": 228, "sessions": 4600},
]

CITY_FALLBACK = [
    {"city": "Delhi", "volume": 17200, "acceptance": 26, "aov": 364},
    {"city": "Mumbai", "volume": 15500, "acceptance": 24, "aov": 352},
    {"city": "Bangalore", "volume": 14900, "acceptance": 22, "aov": 338},
    {"city": "Hyderabad", "volume": 12100, "acceptance": 21, "aov": 301},
    {"city": "Pune", "volume": 10800, "acceptance": 20, "aov": 288},
]

SEGMENT_COLORS = {"budget": "#F5A623", "mid": "#00BFA5", "premium": "#E23744"}
DEFAULT_SEGMENT_COLOR = "#7C5CBF"
SEGMENT_AOV_DEFAULTS = {"premium": 468, "mid": 302}
DEFAULT_SEGMENT_AOV = 228

SEGMENT_FALLBACK = [
    {"name": "Budget", "users": 18400, "acceptance": 12, "aov": 228, "color": "#F5A623"},
    {"name": "Mid", "users": 21900, "acceptance": 22, "aov": 302, "color": "#00BFA5"},
    {"name": "Premium", "users": 9700, "acceptance": 35, "aov": 468, "color": "#E23744"},
]

MEAL_RADAR = [
    {"slot": "Breakfast", "acceptance_rate": 14, "avg_items": 28, "avg_aov": 35},
    {"slot": "Lunch", "acceptance_rate": 19, "avg_items": 44, "avg_aov": 52},
    {"slot": "Snacks", "acceptance_rate": 24, "avg_items": 38, "avg_aov": 33},
    {"slot": "Dinner", "acceptance_rate": 31, "avg_items": 56, "avg_aov": 68},
    {"slot": "Late Night", "acceptance_rate": 17, "avg_items": 24, "avg_aov": 41},
]

FEED_SEED = [
    "U001234 · Biryani → Salan recommended · accepted",
    "U008844 · Pizza → Garlic Bread recommended · accepted",
    "U008400 · Paneer Bowl → Lassi recommended · skipped",
    "U921100 · Burger → Fries recommended · accepted",
    "U402391 · Dosa → Filter Coffee recommended · accepted",
    "U043981 · Shawarma → Falafel recommended · skipped",
]

RING_METRICS = [
    {"label": "AUC", "value": 92, "color": "#E23744"},
    {"label": "P@8", "value": 33, "color": "#F5A623"},
    {"label": "NDCG@8", "value": 86, "color": "#00BFA5"},
]

MODEL_ROWS = [
    {"model": "Popularity Baseline", "auc": 0.61, "p8": 0.12, "r8": 0.18, "ndcg8": 0.14, "latency": 8},
    {"model": "Collaborative Filter", "auc": 0.72, "p8": 0.21, "r8": 0.27, "ndcg8": 0.23, "latency": 22},
    {"model": "LightGBM v1", "auc": 0.81, "p8": 0.28, "r8": 0.34, "ndcg8": 0.37, "latency": 45},
    {"model": "LightGBM v2", "auc": 0.92, "p8": 0.33, "r8": 0.41, "ndcg8": 0.863, "latency": 53},
]

FEATURE_IMPORTANCE = [
    {"feature": "item_price_vs_user_avg", "score": 100},
    {"feature": "item_popularity_score", "score": 86},
    {"feature": "user_avg_cart_value", "score": 74},
    {"feature": "item_price", "score": 69},
    {"feature": "cart_total_value", "score": 53},
    {"feature": "user_accept_rate", "score": 50},
    {"feature": "item_avg_rating", "score": 48},
    {"feature": "item_affinity_score", "score": 43},
    {"feature": "hour_of_day", "score": 35},
]

GROUP_COLORS = {"A": "#E23744", "B": "#F5A623", "C": "#00BFA5"}
GROUP_LABELS = {"A": "User", "B": "Cart", "C": "Item"}

FEATURE_STAGES = [
    {
        "id": "raw",
        "title": "Raw Data",
        "groups": {
            "A": [("user_order_count", 74), ("user_accept_rate", 88), ("user_avg_cart_value", 70)],
            "B": [("cart_total_value", 84), ("cart_item_count", 64)],
        },
    },
    {
        "id": "extract",
        "title": "Feature Extraction",
        "groups": {
            "A": [("segment_encoded", 56), ("days_since_last_order", 61)],
            "C": [("item_affinity_score", 83), ("item_popularity_score", 79)],
        },
    },
    {
        "id": "store",
        "title": "Feature Store",
        "groups": {
            "A": [("user_state_vector", 52), ("user_cluster_id", 47)],
            "C": [("item_embedding_faiss", 90), ("item_margin_bucket", 38)],
        },
    },
    {
        "id": "serving",
        "title": "Serving",
        "groups": {
            "B": [("cart_context_features", 73), ("meal_time_cross", 65)],
            "C": [("rank_score_calibration", 58), ("diversity_cap_signal", 46)],
        },
    },
]

SERVING_FLOW = [
    "Mobile/Web Client",
    "Flask API Gateway",
    "Cold-Start?",
    "Stage-1 Retrieval (affinity + FAISS)",
    "Stage-2 LightGBM v2 (34 features)",
    "Post-processor (diversity cap)",
    "Response",
]

LATENCY_BREAKDOWN = [
    {"label": "Request overhead", "ms": 10, "color": "#667085"},
    {"label": "Stage-1", "ms": 15, "color": "#F5A623"},
    {"label": "Stage-2", "ms": 20, "color": "#E23744"},
    {"label": "Post-process", "ms": 5, "color": "#00BFA5"},
    {"label": "Network", "ms": 7, "color": "#7C5CBF"},
]

ENDPOINT_COVERAGE = [
    {"name": "/v1/recommendations", "value": 68, "color": "#E23744"},
    {"name": "/v1/dashboard/*", "value": 20, "color": "#00BFA5"},
    {"name": "/health", "value": 12, "color": "#F5A623"},
]

STRATEGY_SPLIT = [
    {"name": "Two-stage", "value": 78, "color": "#E23744"},
    {"name": "Cold-start", "value": 22, "color": "#F5A623"},
]

# Latency percentiles shown before any request has been observed
LATENCY_PERCENTILES_FALLBACK = {"p50": 37, "p95": 121, "p99": 184}

ITEM_CATALOG = {
    "I0000012": {"item_id": "I0000012", "name": "Chicken Biryani", "category": "biryani", "price": 180},
    "I0000155": {"item_id": "I0000155", "name": "Boondi Raita", "category": "side", "price": 60},
    "I0001122": {"item_id": "I0001122", "name": "Cola", "category": "beverage", "price": 40},
    "I0001312": {"item_id": "I0001312", "name": "Gulab Jamun", "category": "dessert", "price": 70},
}

EMOJI_MAP = {
    "main": "🍛",
    "side": "🥗",
    "beverage": "🥤",
    "dessert": "🍮",
    "snack": "🍟",
    "biryani": "🍚",
    "pizza": "🍕",
    "burger": "🍔",
}

CATEGORY_COLORS = {
    "main": "#E23744",
    "side": "#F5A623",
    "beverage": "#00BFA5",
    "dessert": "#7C5CBF",
    "snack": "#f0b429",
    "biryani": "#E23744",
    "pizza": "#F5A623",
    "burger": "#00BFA5",
}

# Slots a complete meal fills; dish categories count as a main
MEAL_CATEGORIES = ["main", "side", "beverage", "dessert", "snack"]
MAIN_DISH_CATEGORIES = {"biryani", "pizza", "burger"}
