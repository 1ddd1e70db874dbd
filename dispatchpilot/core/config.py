from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./dispatchpilot.db"

    # Scoring
    MAX_SERVICE_RADIUS_METERS: float = 100000.0
    RATING_SCALE_MAX: int = 100
    DEFAULT_MAX_RESULTS: int = 10
    MAX_RESULTS_CAP: int = 50
    MAX_SUGGESTED_SLOTS: int = 3
    SCORING_MAX_WORKERS: int = 8

    # Fatigue limits per contractor local day
    FATIGUE_HARD_STOP_HOURS: float = 12.0
    FATIGUE_SOFT_CAP_HOURS: float = 10.0  # rush jobs may pass it
    FATIGUE_MAX_CONSECUTIVE_JOBS: int = 4
    FATIGUE_MIN_BREAK_MINUTES: int = 15

    # Distance / ETA collaborator
    DISTANCE_PROVIDER: str = "haversine"
    DISTANCE_SERVICE_URL: str = "http://localhost:8081/v1/matrix"
    DISTANCE_TIMEOUT_SECONDS: float = 5.0
    DISTANCE_BATCH_SIZE: int = 25
    DISTANCE_MAX_CONCURRENT_BATCHES: int = 4
    AVERAGE_SPEED_KMH: float = 50.0

    # Weights config store
    WEIGHTS_CACHE_TTL_SECONDS: float = 30.0
    WEIGHTS_MAX_RETRIES: int = 3
    WEIGHTS_SUM_TOLERANCE: float = 0.001

    # Bootstrap weights (version 1 when the store is empty)
    DEFAULT_WEIGHT_AVAILABILITY: float = 0.20
    DEFAULT_WEIGHT_RATING: float = 0.35
    DEFAULT_WEIGHT_DISTANCE: float = 0.45
    DEFAULT_TIE_BREAKERS: list[str] = ["availability", "rating", "distance"]
    DEFAULT_ROTATION_ENABLED: bool = True
    DEFAULT_ROTATION_BOOST: float = 3.0
    DEFAULT_ROTATION_THRESHOLD: float = 0.20

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()
