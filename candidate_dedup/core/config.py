"""Application configuration via pydantic-settings.

Loads all settings from environment variables with sensible defaults.
A global `settings` singleton is available for import throughout the app.

The dedup thresholds are plain settings so they can be tuned per deployment;
``Settings.dedup_thresholds()`` packs them into the explicit
``DedupThresholds`` struct that the match engine and batch checks receive.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from candidate_dedup.models.dedup import DedupThresholds


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Supabase
    SUPABASE_URL: str
    SUPABASE_KEY: str

    # CORS
    ALLOWED_ORIGINS: str = "*"

    # Dedup confidence thresholds
    DEDUP_PHONE_AND_NAME_CONFIDENCE: float = 0.99
    DEDUP_PHONE_ONLY_CONFIDENCE: float = 0.90
    DEDUP_NAME_HIGH: float = 0.90
    DEDUP_NAME_MEDIUM: float = 0.80
    DEDUP_PHONETIC_FLOOR: float = 0.80
    DEDUP_REVIEW_THRESHOLD: float = 0.80
    DEDUP_NEEDS_REVIEW_THRESHOLD: float = 0.85
    DEDUP_AUTO_MERGE_THRESHOLD: float = 0.95

    # Population fetch / batch limits
    DEDUP_POPULATION_PAGE_SIZE: int = 1000
    DEDUP_BATCH_MAX_PROBES: int = 1000

    # Scheduler
    SELF_SCAN_ENABLED: bool = True
    SELF_SCAN_INTERVAL_HOURS: int = 24

    # Logging
    LOG_LEVEL: str = "INFO"

    def dedup_thresholds(self) -> DedupThresholds:
        """Build the threshold struct passed into the matching services."""
        return DedupThresholds(
            phone_and_name=self.DEDUP_PHONE_AND_NAME_CONFIDENCE,
            phone_only=self.DEDUP_PHONE_ONLY_CONFIDENCE,
            name_high=self.DEDUP_NAME_HIGH,
            name_medium=self.DEDUP_NAME_MEDIUM,
            phonetic_floor=self.DEDUP_PHONETIC_FLOOR,
            review_threshold=self.DEDUP_REVIEW_THRESHOLD,
            needs_review=self.DEDUP_NEEDS_REVIEW_THRESHOLD,
            auto_merge=self.DEDUP_AUTO_MERGE_THRESHOLD,
        )


settings = Settings()  # type: ignore[call-arg]
