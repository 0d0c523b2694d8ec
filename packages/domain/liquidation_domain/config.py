"""Engine configuration.

Settings are read from the environment (prefix ``LIQUIDATION_``) or a local
``.env`` file, so the same engine can be tuned per deployment without code
changes.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LIQUIDATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Interest accrual
    interest_day_count_basis: Decimal = Field(default=Decimal("365.25"), gt=0)

    # Seniority stacking for preferred classes without an explicit rank
    default_stacking: Literal["reverse_issuance", "pari_passu"] = "reverse_issuance"

    # Rank of redeemed convertibles; None = senior to every share class
    convertible_seniority_rank: Optional[int] = None

    # Fixed-point passes when resolving interacting convertibles
    max_conversion_iterations: int = Field(default=10, ge=1)

    # Database
    database_url: str = "sqlite:///liquidation.db"
    database_echo: bool = False


@lru_cache
def get_settings() -> EngineSettings:
    return EngineSettings()
