"""Operational Truth configuration management.

Loads configuration from environment variables with sensible defaults.
Defaults follow Ontario conventions (CAD currency, 13% HST).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class DBConfig:
    """Database connection configuration."""

    url: str
    echo: bool = False  # SQL logging


@dataclass
class ReconciliationConfig:
    """Heuristic constants used while reconciling project facts."""

    conflict_tolerance: Decimal = Decimal("0.10")  # relative, of the larger value
    progress_basis: str = "cost"  # cost (count fallback) or count
    backfill_labor: bool = True


@dataclass
class FinanceConfig:
    """Currency and tax defaults."""

    currency: str = "CAD"
    tax_rate: Decimal = Decimal("0.13")  # Ontario HST


@dataclass
class AppConfig:
    """Root application configuration.

    Loads from environment variables with fail-fast on missing required values.
    """

    db: DBConfig
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    reconciliation: ReconciliationConfig = field(default_factory=ReconciliationConfig)
    finance: FinanceConfig = field(default_factory=FinanceConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables.

        Required environment variables:
        - DATABASE_URL: SQLAlchemy async connection string

        Optional (with defaults):
        - ENVIRONMENT: development or production (default: "development")
        - LOG_LEVEL: Logging verbosity (default: "INFO")
        - CONFLICT_TOLERANCE, PROGRESS_BASIS, BACKFILL_LABOR
        - DEFAULT_CURRENCY, TAX_RATE

        Raises:
            KeyError: If required environment variables are missing
            ValueError: If PROGRESS_BASIS is not "cost" or "count"
        """
        database_url = os.environ.get("DATABASE_URL")
        if not database_url:
            raise KeyError(
                "DATABASE_URL environment variable is required. "
                "Example: sqlite+aiosqlite:///./optruth.db"
            )

        progress_basis = os.getenv("PROGRESS_BASIS", "cost").lower()
        if progress_basis not in ("cost", "count"):
            raise ValueError(
                f"PROGRESS_BASIS must be 'cost' or 'count', got '{progress_basis}'"
            )

        return cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
            db=DBConfig(
                url=database_url,
                echo=os.getenv("DB_ECHO", "false").lower() == "true",
            ),
            reconciliation=ReconciliationConfig(
                conflict_tolerance=Decimal(os.getenv("CONFLICT_TOLERANCE", "0.10")),
                progress_basis=progress_basis,
                backfill_labor=os.getenv("BACKFILL_LABOR", "true").lower() == "true",
            ),
            finance=FinanceConfig(
                currency=os.getenv("DEFAULT_CURRENCY", "CAD"),
                tax_rate=Decimal(os.getenv("TAX_RATE", "0.13")),
            ),
        )

    @property
    def strict_integrity(self) -> bool:
        """Raise on data-integrity violations outside production."""
        return self.environment != "production"

    @property
    def catalog_path(self) -> Path:
        """Path to the packaged work type catalog."""
        return Path(__file__).parent / "catalog" / "work_types.yaml"


# Singleton instance (lazy-loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create singleton AppConfig instance from environment.

    Returns:
        AppConfig: Application configuration

    Raises:
        KeyError: If required environment variables are missing
    """
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached configuration (used when the environment changes)."""
    global _config
    _config = None
