from typing import Any, Dict, FrozenSet

# ---------------------------------------------------------------------------
# Lead scoring
# ---------------------------------------------------------------------------

SCORE_CATEGORIES: FrozenSet[str] = frozenset(
    {"demographic", "behavioral", "engagement", "fit"}
)
MAX_LEAD_SCORE: int = 100
SCORE_HISTORY_LIMIT: int = 20

DEFAULT_SCORING_SETTINGS: Dict[str, Any] = {
    "cold_threshold": 0,
    "warm_threshold": 25,
    "hot_threshold": 50,
    "qualified_threshold": 75,
    "auto_convert_enabled": False,
    "auto_convert_threshold": 80,
    "score_decay_enabled": True,
    "score_decay_days": 30,
    "score_decay_percentage": 10,
    "qualification_framework": "bant",
    "qualification_criteria": None,
}

# ---------------------------------------------------------------------------
# Data import / export
# ---------------------------------------------------------------------------

IMPORT_BATCH_SIZE: int = 50
PREVIEW_MAX_ROWS: int = 100
PREVIEW_PROGRESS_EVERY: int = 10
EXPORT_PROGRESS_EVERY: int = 100
DUPLICATE_HANDLING_MODES: FrozenSet[str] = frozenset({"skip", "update", "create_new"})
