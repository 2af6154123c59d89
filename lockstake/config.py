"""Application configuration loaded from environment variables and .env file."""

from decimal import Decimal
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from environment variables first,
    then from a .env file in the project root as fallback.
    Rates, weights and curvatures are plain decimals ("0.20" == 20%);
    amounts are integer token units; durations are seconds.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    DATABASE_URL: str = "sqlite:///./dev.db"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Roles / addresses
    ADMIN_ADDRESS: str = "admin"
    TREASURY_ADDRESS: str = "treasury"
    CUSTODY_ADDRESS: str = "lockstake"
    SUCCESSOR_ADDRESS: Optional[str] = None

    # Program start (unix seconds); 0 → service start time
    PROGRAM_START: int = 0

    # APR curve
    BASE_APR: Decimal = Decimal("0.20")
    MAX_APR: Decimal = Decimal("0.49")
    BASE_APR_BOOST_PHASE: Decimal = Decimal("0.30")
    MAX_APR_BOOST_PHASE: Decimal = Decimal("0.69")
    W_LOCK: Decimal = Decimal("0.7")
    W_SIZE: Decimal = Decimal("0.3")
    LOCK_CURVATURE: Decimal = Decimal("1.2")
    SIZE_SCALE: int = 50_000

    # Voting / points curves
    VOTING_FLOOR: Decimal = Decimal("0.25")
    VOTING_CURVATURE: Decimal = Decimal("1.0")
    POINTS_MAX: Decimal = Decimal("1.0")
    POINTS_DECAY: Decimal = Decimal("0.05")

    # Lock / claim / boost cohort
    MIN_LOCK_MONTHS: int = 1
    MAX_LOCK_MONTHS: int = 48
    CLAIM_INTERVAL: int = 7 * 24 * 60 * 60
    MIN_BOOST_STAKE: int = 100_000
    MAX_BOOST_STAKERS: int = 100
    BOOST_DURATION: int = 90 * 24 * 60 * 60


settings = Settings()
