"""
Tax policy and logging settings read from TIMBRA_* environment variables.

The IVA rate and amount tolerance feed the validator's TaxPolicy; out of
range values are rejected when Settings is built.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from timbra.domain.validation import TaxPolicy


class Settings(BaseSettings):
    """
    IVA rate, amount tolerance and log level for the validator and CLI.

    Each field maps to a TIMBRA_-prefixed variable (TIMBRA_IVA_RATE, ...);
    a local .env file is read as well.
    """

    model_config = SettingsConfigDict(
        env_prefix="TIMBRA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Tax policy
    iva_rate: Decimal = Field(
        default=Decimal("0.16"),
        ge=0,
        le=1,
        description="Flat IVA rate applied to invoice subtotals"
    )
    amount_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Maximum difference tolerated between stored and computed amounts"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode with detailed error messages"
    )

    @property
    def tax_policy(self) -> TaxPolicy:
        """Return the validator tax policy for these settings."""
        return TaxPolicy(iva_rate=self.iva_rate, tolerance=self.amount_tolerance)


@lru_cache
def get_settings() -> Settings:
    """Settings for the process, read from the environment on first call."""
    return Settings()
