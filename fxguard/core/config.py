from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

PROVIDER_KINDS = {"fixer", "exchangerate-api", "static"}


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic's rules (e.g., DEBUG, DATA_DIR,
    FIXER_API_KEY, PRIMARY_RATE_PROVIDER, REFRESH_INTERVAL_MINUTES).
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Basic app metadata
    app_name: str = "FX Margin Guard"
    debug: bool = False
    version: str = "0.1.0"

    # Data & persistence
    data_dir: Path = Path("data")
    db_filename: str = "fxguard.sqlite3"
    db_path: Optional[Path] = None  # derived if not provided
    rate_ttl_days: int = 90
    order_ttl_days: int = 365

    # Tracked pair: rates are quote units per 1 base unit (INR per USD)
    base_currency: str = "USD"
    quote_currency: str = "INR"

    # Providers: primary is tried first, fallback only when primary is unusable
    primary_rate_provider: str = "fixer"
    fallback_rate_provider: str = "exchangerate-api"
    fixer_api_key: str = ""
    fixer_base_url: AnyHttpUrl = "http://data.fixer.io/api"
    # Free Fixer plans only quote EUR; set to None on a paid plan to request the base directly
    fixer_cross_base: Optional[str] = "EUR"
    exchangerate_api_base_url: AnyHttpUrl = "https://api.exchangerate-api.com/v4/latest"

    # Time budgets
    provider_timeout_seconds: float = 10.0
    acquisition_budget_seconds: float = 30.0
    request_timeout_seconds: float = 15.0

    # Scheduling
    scheduler_enabled: bool = False
    refresh_interval_minutes: int = 30

    # Impact policy: losses above this share of the order amount trigger a price suggestion
    loss_alert_threshold: float = 0.02

    cors_allow_origins: List[str] = ["*"]

    @property
    def tracked_pair(self) -> str:
        return f"{self.base_currency.upper()}-{self.quote_currency.upper()}"

    def init_post_load(self) -> None:
        """Finalize derived fields and ensure directories exist."""
        if self.db_path is None:
            self.db_path = self.data_dir / self.db_filename
        # Ensure persistence directory exists
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        for kind in (self.primary_rate_provider, self.fallback_rate_provider):
            if kind not in PROVIDER_KINDS:
                raise ValueError(
                    f"Unsupported rate provider '{kind}'. Allowed: {sorted(PROVIDER_KINDS)}"
                )


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings
