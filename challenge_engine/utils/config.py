# challenge_engine/utils/config.py
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load .env file before defining settings
load_dotenv()

class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    # Infrastructure
    database_url: str = "sqlite+aiosqlite:///./challenge_engine.db"
    log_level: str = "INFO"
    selection_timezone: str = "UTC" # Calendar-day boundary for daily selections and streaks
    challenge_seed_csv: str | None = None # Loaded into the challenges table on startup when set

    # Lookback windows (days)
    performance_window_days: int = 30
    recent_window_days: int = 14
    repeat_prevention_days: int = 7
    bias_lookback_days: int = 30
    recent_types_window: int = 5 # Number of latest attempts checked for type monotony

    # Difficulty state machine
    increase_difficulty_threshold: float = 0.85
    decrease_difficulty_threshold: float = 0.40
    min_attempts_for_adjustment: int = 3

    # Composite score (exponents on normalized sub-scores)
    base_score: float = 100.0
    difficulty_fit_weight: float = 0.3
    weakness_focus_weight: float = 0.25
    bias_diversity_weight: float = 0.3
    type_diversity_weight: float = 0.2

    # Sub-score constants
    streak_bonus_weight: float = 0.1
    streak_bonus_cap_days: int = 10
    slow_time_ratio: float = 2.0
    slow_time_penalty: float = 0.7
    weakness_floor: float = 0.1
    neutral_weakness_score: float = 0.5 # Types never attempted are neutral, not weak
    neutral_bias_score: float = 0.7 # Non bias-comparison candidates
    bias_base_score: float = 0.5
    underexposed_bonus: float = 0.5
    opposing_view_bonus: float = 0.3

    # Bias exposure
    underexposed_share_threshold: float = 0.15
    min_bias_attempts: int = 3

    # Progress report
    progress_min_sample: int = 5
    strength_threshold: float = 0.80
    weakness_threshold: float = 0.50
    trend_delta: float = 0.10

    # Batch recommendation job
    batch_concurrency: int = 10
    default_recommendation_count: int = 3


def validate_settings(config: Settings) -> None:
    """Raises ValueError when windows or the timezone are inconsistent."""
    if config.recent_window_days > config.performance_window_days:
        raise ValueError("RECENT_WINDOW_DAYS must not exceed PERFORMANCE_WINDOW_DAYS")
    if config.repeat_prevention_days > config.performance_window_days:
        raise ValueError("REPEAT_PREVENTION_DAYS must not exceed PERFORMANCE_WINDOW_DAYS")
    if config.batch_concurrency < 1:
        raise ValueError("BATCH_CONCURRENCY must be at least 1")
    try:
        ZoneInfo(config.selection_timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"SELECTION_TIMEZONE '{config.selection_timezone}' is not a valid IANA timezone") from e


settings = Settings()

# --- Validate window and timezone configuration on import ---
validate_settings(settings)
