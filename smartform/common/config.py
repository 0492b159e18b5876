from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    db_path: Path = Path("./smartform.db")
    hand_max_age_ms: int = 200
    pose_max_age_ms: int = 500
    min_hand_score: float = 0.5
    min_palm_area: float = 0.012
    require_good_posture: bool = False
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings(
        db_path=Path(os.getenv("SMARTFORM_DB_PATH", "./smartform.db")),
        hand_max_age_ms=int(os.getenv("SMARTFORM_HAND_MAX_AGE_MS", "200")),
        pose_max_age_ms=int(os.getenv("SMARTFORM_POSE_MAX_AGE_MS", "500")),
        min_hand_score=float(os.getenv("SMARTFORM_MIN_HAND_SCORE", "0.5")),
        min_palm_area=float(os.getenv("SMARTFORM_MIN_PALM_AREA", "0.012")),
        require_good_posture=_env_bool("SMARTFORM_REQUIRE_GOOD_POSTURE", False),
        log_level=os.getenv("SMARTFORM_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
