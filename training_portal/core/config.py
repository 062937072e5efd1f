"""Application configuration from environment."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from env / .env."""

    app_name: str = "Training Portal"
    debug: bool = False
    log_level: str = "INFO"

    # Database (async driver; alembic converts to a sync url)
    database_url: str = "sqlite+aiosqlite:///./training_portal.db"

    # Section completion policy
    default_required_dwell_seconds: int = 60
    visit_only_sections: list[str] = ["welcome", "faq", "resources"]

    # Admin rollup
    inactive_after_days: int = 7
    good_band_threshold: int = 70

    # Quiz credit (fraction of correct answers)
    quiz_pass_score: float = 0.7

    # Accounts hidden from the admin snapshot unless the requester is one of them
    hidden_accounts: list[str] = []

    seed_demo_data: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


def get_settings() -> Settings:
    return Settings()
