"""
Runtime configuration for Meu Dinheiro.

Values come from the environment, after a `.env` file at the project
root has been loaded with python-dotenv.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

PROJECT_DIR = Path(__file__).resolve().parent.parent.parent
DEFAULT_DB_PATH = PROJECT_DIR / "src" / "db" / "meudinheiro.db"


@dataclass(frozen=True)
class ProjectionSettings:
    pattern_window_days: int = 60   # history scanned for recurring patterns
    min_occurrences: int = 2        # entries needed before a category counts as recurring
    month_days: int = 30
    horizon_days: int = 30

    @property
    def monthly_scale(self) -> float:
        return self.month_days / self.pattern_window_days


@dataclass(frozen=True)
class ReviewSettings:
    window_days: int = 30
    threshold_multiplier: float = 1.3
    savings_share: float = 0.2
    ignore_days: int = 7


@dataclass(frozen=True)
class Config:
    db_path: str = str(DEFAULT_DB_PATH)
    oracle_api_key: Optional[str] = None
    oracle_model: str = "google/gemini-2.5-flash"
    oracle_base_url: Optional[str] = "https://ai.gateway.lovable.dev/v1"
    oracle_temperature: float = 0.2
    log_dir: str = "logs"
    default_category: str = "Other"
    projection: ProjectionSettings = field(default_factory=ProjectionSettings)
    review: ReviewSettings = field(default_factory=ReviewSettings)


def load_config(env_file: Optional[Path] = None) -> Config:
    """Build a Config from `.env` and the process environment."""
    load_dotenv(dotenv_path=env_file or PROJECT_DIR / ".env")

    return Config(
        db_path=os.getenv("MEUDINHEIRO_DB", str(DEFAULT_DB_PATH)),
        oracle_api_key=os.getenv("OPENAI_API_KEY"),
        oracle_model=os.getenv("ORACLE_MODEL", Config.oracle_model),
        oracle_base_url=os.getenv("ORACLE_BASE_URL", Config.oracle_base_url),
        oracle_temperature=float(os.getenv("ORACLE_TEMPERATURE", Config.oracle_temperature)),
        log_dir=os.getenv("MEUDINHEIRO_LOG_DIR", Config.log_dir),
    )
